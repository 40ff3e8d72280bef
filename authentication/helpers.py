import json
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from authentication.models import User

INVALID_PAYLOAD_MSG = "invalid payload"


def parse_json_body(request):
    raw = request.body or b''
    if not raw.strip():
        return {}, None
    try:
        data = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None, JsonResponse({"error": "invalid_input", "message": INVALID_PAYLOAD_MSG}, status=400)
    if not isinstance(data, dict):
        return None, JsonResponse({"error": "invalid_input", "message": INVALID_PAYLOAD_MSG}, status=400)
    return data, None


def form_error_response(form):
    fields = {field: str(errors[0]) for field, errors in form.errors.items()}
    message = fields.pop('__all__', None) or next(iter(fields.values()), "Invalid input")
    return JsonResponse({"error": "invalid_input", "message": message, "fields": fields}, status=400)


def get_user_or_none(username):
    try:
        return User.objects.get(username=username)
    except User.DoesNotExist:
        return None


def get_session_user(request):
    """Resolve the user stored in the Django session, or None."""
    user_id = request.session.get('user_id')
    if not user_id:
        return None
    try:
        return User.objects.get(user_id=user_id, is_active=True)
    except (User.DoesNotExist, ValidationError, ValueError):
        return None


def handle_failed_login(user):
    account_locked = user.increment_failed_login()
    if account_locked:
        return JsonResponse({
            "error": "account_locked",
            "message": "Account temporarily locked. Please try again later."
        }, status=423)
    return JsonResponse({
        "error": "unauthorized",
        "message": "Invalid credentials",
        "remainingAttempts": user.get_remaining_login_attempts(),
    }, status=401)


def set_user_session(request, user):
    # new session key on login so a pre-login cookie cannot be fixated
    request.session.cycle_key()
    request.session['user_id'] = str(user.user_id)
    request.session['username'] = user.username


def build_success_response(user):
    return {
        "message": "Login successful",
        "user": user.to_dict(),
    }
