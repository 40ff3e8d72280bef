from django.urls import path, include

urlpatterns = [
    path("auth/", include("authentication.urls")),
    path("api/chat/", include("chat.urls")),
    path("api/user-settings/", include("user_settings.urls")),
    path("", include("django_prometheus.urls")),
]
