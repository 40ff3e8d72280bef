# chat/views.py
from django.conf import settings
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
import logging

from counsel_be.monitoring import capture_user_event, track_transaction
from .errors import UpstreamFailure
from .llm import build_completion_client
from .pagination import MESSAGE_PAGE_DEFAULT, SESSION_PAGE_DEFAULT, clamp_limit
from .pipeline import MessagePipeline
from .serializers import ChatSessionSerializer, MessageSerializer, SendMessageSerializer, SessionInputSerializer
from .service import ChatSessionService

log = logging.getLogger(__name__)

_sessions = ChatSessionService()


def _send_rate(group, request):
    return getattr(settings, "CHAT_SEND_RATE", "30/m")


def _page_args(request, default_limit):
    return {
        "limit": clamp_limit(request.query_params.get("limit"), default_limit),
        "cursor": request.query_params.get("cursor") or None,
    }


@api_view(["GET", "POST"])
@track_transaction("chat", "sessions")
def sessions(request):
    """
    GET: the caller's active sessions, most recently active first.
    POST: create a session from {title, description?}.
    """
    if request.method == "GET":
        page = _sessions.list_sessions(user_id=request.user.pk, **_page_args(request, SESSION_PAGE_DEFAULT))
        return Response({
            "sessions": ChatSessionSerializer(page.items, many=True).data,
            "nextCursor": page.next_cursor,
        })

    payload = SessionInputSerializer(data=request.data)
    payload.is_valid(raise_exception=True)
    session = _sessions.create_session(
        user_id=request.user.pk,
        title=payload.validated_data["title"],
        description=payload.validated_data.get("description", ""),
    )
    return Response(ChatSessionSerializer(session).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@track_transaction("chat", "session_detail")
def session_detail(request, sid):
    user_id = request.user.pk

    if request.method == "GET":
        detail = _sessions.get_session(user_id=user_id, session_id=sid, **_page_args(request, MESSAGE_PAGE_DEFAULT))
        return Response({
            "session": ChatSessionSerializer(detail.session).data,
            "messages": MessageSerializer(detail.messages, many=True).data,
            "nextCursor": detail.next_cursor,
            "hasMore": detail.has_more,
            "awaitingReply": detail.awaiting_reply,
        })

    if request.method == "PATCH":
        payload = SessionInputSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        session = _sessions.update_session(
            user_id=user_id,
            session_id=sid,
            title=payload.validated_data["title"],
            description=payload.validated_data.get("description"),
        )
        return Response(ChatSessionSerializer(session).data)

    _sessions.delete_session(user_id=user_id, session_id=sid)
    return Response({"success": True})


@api_view(["GET"])
@track_transaction("chat", "session_messages")
def session_messages(request, sid):
    """Messages of one session, oldest first within the page; page backwards with nextCursor."""
    page = _sessions.list_messages(user_id=request.user.pk, session_id=sid, **_page_args(request, MESSAGE_PAGE_DEFAULT))
    return Response({
        "messages": MessageSerializer(page.items, many=True).data,
        "nextCursor": page.next_cursor,
        "hasMore": page.has_more,
    })


@api_view(["POST"])
@track_transaction("chat", "send_message")
@ratelimit(key="user_or_ip", rate=_send_rate, method="POST", block=False)
def send_message(request):
    """
    Persist the user turn, ask the counselor model, persist and return both turns.

    Expected payload: {"content", "chatSessionId", "isRetry", "retryOf"?}
    Returns 200 {"userMessage", "aiMessage"}. On a completion failure the
    502 body carries the stored "userMessage" so the client can retry by id.
    """
    if getattr(request, "limited", False):
        log.warning(f"Chat send rate limit exceeded for user {request.user.pk}")
        return Response({
            "error": "too_many_requests",
            "message": "Too many requests. Please try again later.",
        }, status=status.HTTP_429_TOO_MANY_REQUESTS)

    payload = SendMessageSerializer(data=request.data)
    payload.is_valid(raise_exception=True)
    data = payload.validated_data

    pipeline = MessagePipeline(completion_client=build_completion_client())
    try:
        result = pipeline.send(
            user_id=request.user.pk,
            session_id=data["chatSessionId"],
            content=data["content"],
            is_retry=data.get("isRetry", False),
            retry_of=data.get("retryOf"),
        )
    except UpstreamFailure as e:
        if e.user_message is not None:
            e.details["userMessage"] = MessageSerializer(e.user_message).data
        raise

    capture_user_event(
        "chat_message_sent",
        {"username": request.user.username},
        {"session_id": data["chatSessionId"], "is_retry": data.get("isRetry", False)},
    )
    return Response({
        "userMessage": MessageSerializer(result.user_message).data,
        "aiMessage": MessageSerializer(result.assistant_message).data,
    })


@api_view(["GET"])
@track_transaction("chat", "summary")
def session_summary(request, sid):
    pipeline = MessagePipeline(completion_client=build_completion_client())
    return Response({"summary": pipeline.summarize(user_id=request.user.pk, session_id=sid)})
