import logging

from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

from chat.errors import ChatError

logger = logging.getLogger(__name__)


def _first_message(detail):
    """Flatten DRF's nested ValidationError detail into one readable line."""
    if isinstance(detail, dict):
        for field, value in detail.items():
            msg = _first_message(value)
            return msg if field == "non_field_errors" else f"{field}: {msg}"
        return "Invalid input"
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else "Invalid input"
    return str(detail)


def api_exception_handler(exc, context):
    """
    Render every API failure with the same {"error", "message"} envelope.

    Domain errors from the chat pipeline carry their own status code; DRF's
    validation and authentication failures are folded into the same codes.
    """
    if isinstance(exc, ChatError):
        if exc.status_code >= 500:
            logger.warning(f"{type(exc).__name__} in {context.get('view').__class__.__name__}: {exc.message}")
        return Response(exc.as_payload(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            "error": "invalid_input",
            "message": _first_message(exc.detail),
            "fields": exc.detail,
        }
    elif isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        response.data = {"error": "unauthorized", "message": str(exc.detail)}
    elif isinstance(exc, exceptions.NotFound):
        response.data = {"error": "not_found", "message": str(exc.detail)}
    else:
        response.data = {"error": exc.default_code, "message": str(exc.detail)}
    return response
