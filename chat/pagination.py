# chat/pagination.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from .errors import InvalidInput

T = TypeVar("T")

SESSION_PAGE_DEFAULT = 50
MESSAGE_PAGE_DEFAULT = 20
PAGE_MAX = 100


@dataclass
class Page(Generic[T]):
    """
    One cursor page. ``next_cursor`` is the id of the first row of the next
    page (the cursor row is included in the page it starts).
    """

    items: List[T] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


def clamp_limit(raw, default: int) -> int:
    """Parse a ``limit`` query value; it must be an integer in [1, 100]."""
    if raw is None or raw == "":
        return default
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        raise InvalidInput("limit must be an integer")
    if not 1 <= limit <= PAGE_MAX:
        raise InvalidInput(f"limit must be between 1 and {PAGE_MAX}")
    return limit


def split_page(rows: list, limit: int) -> Page:
    """
    ``rows`` holds up to ``limit + 1`` rows in listing order. The extra row,
    when present, is not returned and its id becomes the next cursor.
    """
    rows = list(rows)
    next_cursor = None
    if len(rows) > limit:
        extra = rows.pop()
        next_cursor = str(extra.id)
    return Page(items=rows, next_cursor=next_cursor)
