# chat/serializers.py
from rest_framework import serializers

from .models import (
    SESSION_DESCRIPTION_MAX_LENGTH,
    SESSION_TITLE_MAX_LENGTH,
    ChatSession,
    Message,
)


class ChatSessionSerializer(serializers.ModelSerializer):
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    messageCount = serializers.SerializerMethodField()

    class Meta:
        model = ChatSession
        fields = ["id", "title", "description", "createdAt", "updatedAt", "isActive", "messageCount"]

    def get_messageCount(self, obj):
        count = getattr(obj, "message_count", None)
        return count if count is not None else obj.messages.count()


class MessageSerializer(serializers.ModelSerializer):
    sessionId = serializers.UUIDField(source="session_id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Message
        fields = ["id", "sessionId", "role", "content", "createdAt"]


class SessionInputSerializer(serializers.Serializer):
    """Create / update payload: title 1-100 chars after trimming, optional description up to 500."""

    title = serializers.CharField(max_length=SESSION_TITLE_MAX_LENGTH, trim_whitespace=True)
    description = serializers.CharField(
        max_length=SESSION_DESCRIPTION_MAX_LENGTH, required=False, allow_blank=True, trim_whitespace=True
    )


class SendMessageSerializer(serializers.Serializer):
    # content is validated by the pipeline (raw length, then trimmed emptiness)
    content = serializers.CharField(trim_whitespace=False, allow_blank=True)
    # resolved (or rejected as not found) by the repository
    chatSessionId = serializers.CharField()
    isRetry = serializers.BooleanField(required=False, default=False)
    retryOf = serializers.IntegerField(required=False, allow_null=True, min_value=1)

