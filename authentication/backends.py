from rest_framework.authentication import SessionAuthentication

from authentication.helpers import get_session_user


class SessionUserAuthentication(SessionAuthentication):
    """
    DRF authentication backed by the ``user_id`` the login view stores in the
    Django session. CSRF is enforced exactly like DRF's own session auth.
    """

    def authenticate(self, request):
        user = get_session_user(request._request)
        if user is None or not user.is_authenticated:
            return None

        self.enforce_csrf(request)
        return (user, None)

    def authenticate_header(self, request):
        # any value here makes DRF answer 401 instead of 403
        return 'Session'
