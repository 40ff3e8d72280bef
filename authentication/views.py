import logging

from django.contrib.auth.hashers import make_password
from django.db import IntegrityError, transaction
from django.http import JsonResponse
from django.middleware.csrf import get_token
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST

from authentication.forms import LoginForm, RegistrationForm
from authentication.helpers import (
    build_success_response,
    form_error_response,
    get_session_user,
    get_user_or_none,
    handle_failed_login,
    parse_json_body,
    set_user_session,
)
from authentication.models import User
from counsel_be.monitoring import capture_user_event

logger = logging.getLogger(__name__)


@require_POST
def register_profile(request):
    data, error = parse_json_body(request)
    if error:
        return error

    form = RegistrationForm.from_payload(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        with transaction.atomic():
            user = User.objects.create(
                username=form.cleaned_data['username'],
                password=make_password(form.cleaned_data['password']),
                display_name=form.cleaned_data['display_name'],
                email=form.cleaned_data['email'],
            )
    except IntegrityError:
        return JsonResponse({"error": "conflict", "message": "User already exists"}, status=409)

    logger.info(f"Registered user {user.username}")
    capture_user_event("user_registered", {"username": user.username})
    return JsonResponse(
        {"message": "Registration successful", "user": user.to_dict()},
        status=201
    )


@require_POST
def login(request):
    data, error = parse_json_body(request)
    if error:
        return error

    form = LoginForm(data)
    if not form.is_valid():
        return form_error_response(form)

    user = get_user_or_none(form.cleaned_data['username'])
    if user is None or not user.is_active:
        return JsonResponse({"error": "unauthorized", "message": "Invalid credentials"}, status=401)

    if user.is_account_locked():
        return JsonResponse({
            "error": "account_locked",
            "message": "Account temporarily locked. Please try again later."
        }, status=423)

    if form.authenticate() is None:
        logger.warning(f"Failed login for {user.username}")
        return handle_failed_login(user)

    user.reset_failed_login_attempts()
    set_user_session(request, user)
    logger.info(f"User {user.username} logged in")
    return JsonResponse(build_success_response(user), status=200)


@require_POST
def logout(request):
    request.session.flush()
    return JsonResponse({'message': 'Logged out'}, status=200)


@require_GET
def session_info(request):
    user = get_session_user(request)
    if user is None or not user.is_authenticated:
        return JsonResponse({"authenticated": False}, status=200)
    return JsonResponse({"authenticated": True, "user": user.to_dict()}, status=200)


@require_GET
@ensure_csrf_cookie
def csrf_token(request):
    return JsonResponse({"csrfToken": get_token(request)})
