# chat/pipeline.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from django.conf import settings
from django.db import transaction

from counsel_be.monitoring import track_service_operation
from .errors import InvalidInput, UpstreamFailure
from .llm import (
    CAREER_COUNSELOR_PROMPT,
    CHAT_GENCFG,
    SUMMARY_GENCFG,
    SUMMARY_PROMPT,
    CompletionClient,
    Turn,
    build_summary_turns,
)
from .models import MESSAGE_MAX_LENGTH, Message, MessageRole
from .repository import ChatRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    user_message: Message
    assistant_message: Message


def validate_content(content) -> str:
    """Return the trimmed message text or raise InvalidInput. Length is checked on the raw text."""
    if not isinstance(content, str):
        raise InvalidInput("Message content must be a string")
    if len(content) > MESSAGE_MAX_LENGTH:
        raise InvalidInput(f"Message too long (max {MESSAGE_MAX_LENGTH} characters)")
    text = content.strip()
    if not text:
        raise InvalidInput("Message cannot be empty")
    return text


def _turns(messages: List[Message]) -> List[Turn]:
    return [Turn(m.role, m.content) for m in messages]


def _failed_send(user_message: Message) -> UpstreamFailure:
    failure = UpstreamFailure()
    failure.user_message = user_message
    return failure


class MessagePipeline:
    """
    validate -> authorize -> persist (or locate) the user turn -> load history
    -> one completion call -> persist the assistant turn -> bump the session.
    """

    def __init__(
        self,
        *,
        completion_client: CompletionClient,
        repository: Optional[ChatRepository] = None,
        history_limit: Optional[int] = None,
        summary_history_limit: Optional[int] = None,
    ) -> None:
        self.llm = completion_client
        self.repo = repository or ChatRepository()
        self.history_limit = (
            history_limit if history_limit is not None else getattr(settings, "CHAT_HISTORY_LIMIT", 20)
        )
        self.summary_history_limit = (
            summary_history_limit if summary_history_limit is not None
            else getattr(settings, "CHAT_SUMMARY_HISTORY_LIMIT", 50)
        )

    def _user_turn(self, session, text: str, is_retry: bool, retry_of) -> Message:
        if is_retry:
            existing = self.repo.find_retry_target(session, content=text, retry_of=retry_of)
            if existing is not None:
                log.info("retry reuses message %s in session %s", existing.id, session.id)
                return existing
        return self.repo.add_message(session, role=MessageRole.USER, content=text)

    @track_service_operation("chat", "send_message")
    def send(self, *, user_id, session_id, content, is_retry: bool = False, retry_of=None) -> SendResult:
        text = validate_content(content)
        session = self.repo.get_owned_session(user_id, session_id)

        user_message = self._user_turn(session, text, is_retry, retry_of)
        history = self.repo.recent_history(session, before=user_message, limit=self.history_limit)
        turns = _turns(history) + [Turn(MessageRole.USER, user_message.content)]

        try:
            reply = self.llm.complete(CAREER_COUNSELOR_PROMPT, turns, generation_config=CHAT_GENCFG)
        except UpstreamFailure as e:
            log.warning("completion failed for session %s: %s", session.id, e)
            e.user_message = user_message
            raise
        except Exception as e:
            log.warning("completion failed for session %s: %s: %s", session.id, type(e).__name__, e)
            raise _failed_send(user_message) from e

        if not isinstance(reply, str) or not reply.strip():
            log.warning("empty completion for session %s: %r", session.id, reply)
            raise _failed_send(user_message)

        with transaction.atomic():
            assistant_message = self.repo.add_message(session, role=MessageRole.ASSISTANT, content=reply)
            self.repo.touch_session(session)

        return SendResult(user_message=user_message, assistant_message=assistant_message)

    @track_service_operation("chat", "summarize")
    def summarize(self, *, user_id, session_id) -> str:
        """2-3 sentence summary of the session. Empty string when there is nothing to summarize or the call fails."""
        session = self.repo.get_owned_session(user_id, session_id)
        messages = self.repo.latest_messages(session, limit=self.summary_history_limit)
        if not messages:
            return ""

        try:
            return self.llm.complete(
                SUMMARY_PROMPT, build_summary_turns(_turns(messages)), generation_config=SUMMARY_GENCFG
            )
        except Exception as e:
            log.warning("summary failed for session %s: %s: %s", session.id, type(e).__name__, e)
            return ""
