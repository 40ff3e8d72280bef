from django.urls import path
from authentication.views import register_profile, login, logout, session_info, csrf_token

app_name = 'authentication'

urlpatterns = [
    path("register/", register_profile, name="register"),
    path("login/", login, name="login"),
    path("logout/", logout, name="logout"),
    path("session/", session_info, name="session"),
    path("csrf/", csrf_token, name="csrf"),
]
