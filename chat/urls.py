from django.urls import path
from . import views

app_name = "chat"

urlpatterns = [
    # Sessions
    path("sessions/", views.sessions, name="sessions"),
    path("sessions/<uuid:sid>/", views.session_detail, name="session_detail"),
    path("sessions/<uuid:sid>/messages/", views.session_messages, name="session_messages"),
    path("sessions/<uuid:sid>/summary/", views.session_summary, name="session_summary"),

    # Messages
    path("messages/", views.send_message, name="send_message"),
]
