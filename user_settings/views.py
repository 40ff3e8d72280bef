import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from counsel_be.monitoring import SentryMonitor, capture_user_event, track_transaction
from .serializers import ProfileUpdateSerializer
from .services.profiles import DjangoUserRepository, ProfileService

logger = logging.getLogger(__name__)

_user_repository = DjangoUserRepository()
_profile_service = ProfileService(user_repository=_user_repository)

monitor = SentryMonitor("user_settings")


@api_view(["GET", "PATCH"])
@track_transaction("user_settings", "profile")
def user_profile(request):
    """
    GET returns the caller's profile; PATCH updates the display name.

    Expected PATCH payload: {"name": "New Name"}

    Returns:
    - 200: the (updated) user record
    - 400: validation errors
    - 401: not logged in
    """
    user = request.user
    if request.method == "GET":
        return Response(user.to_dict())

    monitor.add_breadcrumb("Validating profile payload", data={"user_id": str(user.user_id)})
    if not isinstance(request.data, dict):
        return Response(
            {"error": "invalid_input", "message": "Request body must be a JSON object"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    form = ProfileUpdateSerializer(data=request.data)
    if not form.is_valid():
        fields = {field: str(errors[0]) for field, errors in form.errors.items()}
        logger.warning(f"⚠️ Invalid profile update for user {user.username}: {fields}")
        return Response(
            {"error": "invalid_input", "message": next(iter(fields.values())), "fields": fields},
            status=status.HTTP_400_BAD_REQUEST,
        )

    result = _profile_service.update_profile(user=user, name=form.cleaned_data["name"])
    if result.changed:
        capture_user_event("profile_updated", {"username": user.username})
    return Response(result.user.to_dict())
