# chat/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from counsel_be.monitoring import track_service_operation
from .models import ChatSession, Message, MessageRole
from .pagination import Page
from .repository import ChatRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionDetail:
    session: ChatSession
    messages: List[Message]
    next_cursor: Optional[str]
    # newest message is a USER turn with no assistant reply yet
    awaiting_reply: bool = False

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class ChatSessionService:
    """Owner-scoped session CRUD. Titles and descriptions arrive already validated."""

    def __init__(self, repository: Optional[ChatRepository] = None) -> None:
        self.repo = repository or ChatRepository()

    def list_sessions(self, *, user_id, limit: int, cursor: Optional[str] = None) -> Page:
        return self.repo.list_sessions(user_id, limit=limit, cursor=cursor)

    @track_service_operation("chat", "create_session")
    def create_session(self, *, user_id, title: str, description: str = "") -> ChatSession:
        session = self.repo.create_session(user_id, title=title, description=description)
        log.info("created chat session %s for user %s", session.id, user_id)
        return session

    def get_session(self, *, user_id, session_id, limit: int, cursor: Optional[str] = None) -> SessionDetail:
        session = self.repo.with_message_count(self.repo.get_owned_session(user_id, session_id))
        page = self.repo.list_messages(session, limit=limit, cursor=cursor)
        newest = self.repo.latest_messages(session, limit=1)
        return SessionDetail(
            session=session,
            messages=page.items,
            next_cursor=page.next_cursor,
            awaiting_reply=bool(newest) and newest[-1].role == MessageRole.USER,
        )

    def list_messages(self, *, user_id, session_id, limit: int, cursor: Optional[str] = None) -> Page:
        session = self.repo.get_owned_session(user_id, session_id)
        return self.repo.list_messages(session, limit=limit, cursor=cursor)

    @track_service_operation("chat", "update_session")
    def update_session(self, *, user_id, session_id, title: str, description: Optional[str] = None) -> ChatSession:
        session = self.repo.get_owned_session(user_id, session_id)
        self.repo.update_session(session, title=title, description=description)
        return self.repo.with_message_count(session)

    @track_service_operation("chat", "delete_session")
    def delete_session(self, *, user_id, session_id) -> None:
        session = self.repo.get_owned_session(user_id, session_id)
        self.repo.soft_delete(session)
        log.info("soft-deleted chat session %s", session.id)
