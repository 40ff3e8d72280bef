from django.db import models
import uuid

from authentication.models import User

SESSION_TITLE_MAX_LENGTH = 100
SESSION_DESCRIPTION_MAX_LENGTH = 500
MESSAGE_MAX_LENGTH = 4000


class MessageRole(models.TextChoices):
    USER = "USER", "User"
    ASSISTANT = "ASSISTANT", "Assistant"


class ChatSession(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="chat_sessions")
    title = models.CharField(max_length=SESSION_TITLE_MAX_LENGTH)
    description = models.CharField(max_length=SESSION_DESCRIPTION_MAX_LENGTH, blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    # set explicitly on every assistant reply; auto_now would also fire on soft delete
    updated_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "chat_session"
        ordering = ["-updated_at", "-id"]
        indexes = [
            models.Index(fields=["user", "is_active", "-updated_at"], name="chat_sess_user_active_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.id})"


class Message(models.Model):
    id = models.BigAutoField(primary_key=True)
    session = models.ForeignKey(ChatSession, on_delete=models.CASCADE, related_name="messages")
    role = models.CharField(max_length=10, choices=MessageRole.choices)
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["session", "created_at"], name="chat_msg_session_created_idx"),
        ]

    def __str__(self):
        return f"{self.role}: {self.content[:40]}"
