"""
Security middleware for request size limiting.
"""
import logging

from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware:
    """
    Reject write requests whose declared body is larger than REQUEST_MAX_BYTES.

    Chat messages are capped at a few thousand characters, so anything past the
    limit is not a legitimate call and never reaches a view.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    @property
    def max_size(self):
        return getattr(settings, "REQUEST_MAX_BYTES", 1024 * 1024)

    def __call__(self, request):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.META.get("CONTENT_LENGTH")

            if content_length:
                try:
                    content_length = int(content_length)
                except (ValueError, TypeError):
                    # malformed header, let Django deal with the body
                    content_length = 0

                if content_length > self.max_size:
                    logger.warning(
                        f"Request size limit exceeded: {content_length} bytes from IP {request.META.get('REMOTE_ADDR')}"
                    )
                    return JsonResponse({
                        "error": "payload_too_large",
                        "message": "Request too large",
                        "maxBytes": self.max_size,
                    }, status=413)

        return self.get_response(request)
