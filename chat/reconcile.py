# chat/reconcile.py
"""
Optimistic message state for chat clients.

A conversation on the client is a list of confirmed server records plus the
messages the user has submitted that the server has not yet confirmed. Each
outbound message moves ``sending -> success | failed``; a failed one can be
retried or discarded. Everything here is pure: every transition returns a new
``ConversationState``.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import Conflict, NotFound


class SendStatus(str, Enum):
    SENDING = "sending"
    FAILED = "failed"
    SUCCESS = "success"


class SendInFlight(Conflict):
    default_message = "A message is already being sent in this session"


@dataclass(frozen=True)
class Pending:
    local_id: str
    content: str
    status: SendStatus = SendStatus.SENDING
    error: Optional[str] = None
    # id of the USER message the server stored, once a failed send reports it
    server_id: Optional[int] = None


@dataclass(frozen=True)
class Confirmed:
    record: Dict

    @property
    def id(self):
        return self.record["id"]


DisplayItem = Union[Confirmed, Pending]


@dataclass(frozen=True)
class ConversationState:
    confirmed: Tuple[Confirmed, ...] = ()
    pending: Tuple[Pending, ...] = ()
    typing: bool = False

    @property
    def in_flight(self) -> bool:
        return any(p.status is SendStatus.SENDING for p in self.pending)

    def find(self, local_id: str) -> Pending:
        for p in self.pending:
            if p.local_id == local_id:
                return p
        raise NotFound(f"No pending message {local_id}")


def merge_confirmed(confirmed: Iterable[Confirmed], records: Iterable[Dict]) -> Tuple[Confirmed, ...]:
    """
    Union of known and incoming records keyed by id; incoming wins. Message
    ids are assigned in insertion order, so sorting by id is chronological.
    """
    by_id = {c.id: c for c in confirmed}
    for record in records:
        by_id[record["id"]] = Confirmed(dict(record))
    return tuple(sorted(by_id.values(), key=lambda c: c.id))


def _replace_pending(state: ConversationState, local_id: str, **changes) -> ConversationState:
    state.find(local_id)
    pending = tuple(replace(p, **changes) if p.local_id == local_id else p for p in state.pending)
    return replace(state, pending=pending)


def submit(state: ConversationState, local_id: str, content: str) -> ConversationState:
    if state.in_flight:
        raise SendInFlight()
    return replace(state, pending=state.pending + (Pending(local_id, content),), typing=True)


def succeed(state: ConversationState, local_id: str, records: Iterable[Dict]) -> ConversationState:
    state.find(local_id)
    return ConversationState(
        confirmed=merge_confirmed(state.confirmed, records),
        pending=tuple(p for p in state.pending if p.local_id != local_id),
        typing=False,
    )


def fail(state: ConversationState, local_id: str, error: str, server_id: Optional[int] = None) -> ConversationState:
    current = state.find(local_id)
    state = _replace_pending(
        state, local_id, status=SendStatus.FAILED, error=error,
        server_id=server_id if server_id is not None else current.server_id,
    )
    return replace(state, typing=False)


def retry(state: ConversationState, local_id: str) -> ConversationState:
    if state.in_flight:
        raise SendInFlight()
    state = _replace_pending(state, local_id, status=SendStatus.SENDING, error=None)
    return replace(state, typing=True)


def discard(state: ConversationState, local_id: str) -> ConversationState:
    """Drop a pending message locally. The server is not told."""
    state.find(local_id)
    return replace(state, pending=tuple(p for p in state.pending if p.local_id != local_id))


def load(state: ConversationState, records: Iterable[Dict]) -> ConversationState:
    return replace(state, confirmed=merge_confirmed(state.confirmed, records))


def display_list(state: ConversationState) -> List[DisplayItem]:
    """Confirmed records in chronological order, then pending ones in submission order."""
    # a failed send whose USER message the server already stored shows once, as pending
    shadowed = {p.server_id for p in state.pending if p.server_id is not None}
    items: List[DisplayItem] = [c for c in state.confirmed if c.id not in shadowed]
    items.extend(state.pending)
    return items
