# chat/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500
    code = "internal_error"
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None, *, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def as_payload(self) -> Dict[str, Any]:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class InvalidInput(ChatError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input"


class Unauthorized(ChatError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required"


class NotFound(ChatError):
    # Same signal for "absent" and "owned by someone else".
    status_code = 404
    code = "not_found"
    default_message = "Chat session not found"


class Conflict(ChatError):
    status_code = 409
    code = "conflict"
    default_message = "Conflicting update"


class UpstreamFailure(ChatError):
    status_code = 502
    code = "upstream_failure"
    default_message = "Failed to get AI response"
    # the persisted USER message of a failed send, so the client can retry by id
    user_message = None
