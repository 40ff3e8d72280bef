# chat/repository.py
from __future__ import annotations

import uuid
from typing import List, Optional

from django.db.models import Count, Q
from django.utils import timezone

from .errors import InvalidInput, NotFound
from .models import ChatSession, Message, MessageRole
from .pagination import Page, split_page


class ChatRepository:
    """
    ORM gateway for sessions and messages.

    Every session lookup filters by id, owner and ``is_active`` together, so a
    missing session, a soft-deleted one and another user's session all look
    the same to callers (``NotFound``).
    """

    def _owned(self, user_id):
        return ChatSession.objects.filter(user_id=user_id, is_active=True)

    # ---- sessions ----

    def get_owned_session(self, user_id, session_id) -> ChatSession:
        try:
            session_uuid = uuid.UUID(str(session_id))
        except (TypeError, ValueError):
            raise NotFound()
        session = self._owned(user_id).filter(pk=session_uuid).first()
        if session is None:
            raise NotFound()
        return session

    def with_message_count(self, session: ChatSession) -> ChatSession:
        session.message_count = session.messages.count()
        return session

    def list_sessions(self, user_id, *, limit: int, cursor: Optional[str] = None) -> Page:
        qs = self._owned(user_id).annotate(message_count=Count("messages"))

        if cursor:
            try:
                anchor = self._owned(user_id).filter(pk=uuid.UUID(str(cursor))).first()
            except (TypeError, ValueError):
                anchor = None
            if anchor is None:
                raise InvalidInput("Invalid cursor")
            qs = qs.filter(
                Q(updated_at__lt=anchor.updated_at) | Q(updated_at=anchor.updated_at, id__lte=anchor.id)
            )

        rows = list(qs.order_by("-updated_at", "-id")[: limit + 1])
        return split_page(rows, limit)

    def create_session(self, user_id, *, title: str, description: str = "") -> ChatSession:
        session = ChatSession.objects.create(user_id=user_id, title=title, description=description or "")
        session.message_count = 0
        return session

    def update_session(self, session: ChatSession, *, title: str, description: Optional[str] = None) -> ChatSession:
        session.title = title
        fields = ["title", "updated_at"]
        if description is not None:
            session.description = description
            fields.append("description")
        session.updated_at = timezone.now()
        session.save(update_fields=fields)
        return session

    def soft_delete(self, session: ChatSession) -> None:
        ChatSession.objects.filter(pk=session.pk).update(is_active=False)
        session.is_active = False

    def touch_session(self, session: ChatSession) -> None:
        now = timezone.now()
        ChatSession.objects.filter(pk=session.pk).update(updated_at=now)
        session.updated_at = now

    # ---- messages ----

    def add_message(self, session: ChatSession, *, role: str, content: str) -> Message:
        return Message.objects.create(session=session, role=role, content=content)

    def list_messages(self, session: ChatSession, *, limit: int, cursor: Optional[str] = None) -> Page:
        """Newest ``limit`` messages at or before the cursor, returned oldest first."""
        qs = session.messages.all()

        if cursor:
            try:
                anchor = session.messages.filter(pk=int(cursor)).first()
            except (TypeError, ValueError):
                anchor = None
            if anchor is None:
                raise InvalidInput("Invalid cursor")
            qs = qs.filter(
                Q(created_at__lt=anchor.created_at) | Q(created_at=anchor.created_at, id__lte=anchor.id)
            )

        rows = list(qs.order_by("-created_at", "-id")[: limit + 1])
        page = split_page(rows, limit)
        page.items.reverse()
        return page

    def recent_history(self, session: ChatSession, *, before: Message, limit: int) -> List[Message]:
        """The ``limit`` most recent messages strictly preceding ``before``, oldest first."""
        rows = list(
            session.messages.filter(
                Q(created_at__lt=before.created_at) | Q(created_at=before.created_at, id__lt=before.id)
            ).order_by("-created_at", "-id")[:limit]
        )
        rows.reverse()
        return rows

    def latest_messages(self, session: ChatSession, *, limit: int) -> List[Message]:
        rows = list(session.messages.order_by("-created_at", "-id")[:limit])
        rows.reverse()
        return rows

    def find_retry_target(self, session: ChatSession, *, content: str, retry_of=None) -> Optional[Message]:
        """
        The USER message a retry refers to: the one named by ``retry_of``, or
        else the most recent USER message with identical content.
        """
        user_messages = session.messages.filter(role=MessageRole.USER)
        if retry_of is not None:
            try:
                message = user_messages.filter(pk=int(retry_of)).first()
            except (TypeError, ValueError):
                message = None
            if message is None:
                raise NotFound("Message not found")
            return message
        return user_messages.filter(content=content).order_by("-created_at", "-id").first()
