"""
Sentry monitoring utilities shared by the chat and user settings apps.
Provides decorators and helpers for tracking performance and errors.

All sentry_sdk calls are no-ops until ``sentry_sdk.init`` runs (see settings),
so the decorators are safe in tests and local development.
"""

import functools
import logging
import time
from typing import Callable, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Performance thresholds (in seconds)
SLOW_OPERATION_THRESHOLD = 2.0
CRITICAL_OPERATION_THRESHOLD = 10.0


class SentryMonitor:
    """Breadcrumbs, context and result tracking for one module's operations."""

    COMPONENT_VIEW = "view"
    COMPONENT_SERVICE = "service"

    def __init__(self, module: str):
        self.module = module

    def set_operation_context(self, operation: str, username: str, additional_data: Optional[Dict] = None):
        context = {"operation": operation, "username": username, "module": self.module,
                   "timestamp": time.time(), **(additional_data or {})}
        sentry_sdk.set_context("operation_context", context)
        sentry_sdk.set_tag("module", self.module)
        sentry_sdk.set_tag("operation", operation)

    def add_breadcrumb(self, message: str, component: str = COMPONENT_VIEW, level: str = "info",
                       data: Optional[Dict] = None):
        sentry_sdk.add_breadcrumb(
            category=f"{self.module}.{component}", message=message, level=level, data=data or {}
        )

    @staticmethod
    def level_for_execution_time(execution_time: float) -> str:
        if execution_time > CRITICAL_OPERATION_THRESHOLD:
            return "error"
        if execution_time > SLOW_OPERATION_THRESHOLD:
            return "warning"
        return "info"

    def track_operation_result(self, operation: str, username: str, success: bool, execution_time: float,
                               status_code: int = 200, error_message: Optional[str] = None):
        """Record measurements and log the outcome of an operation."""
        sentry_sdk.set_measurement("execution_time", execution_time)
        sentry_sdk.set_tag("operation_success", str(success))
        sentry_sdk.set_tag("http_status", status_code)

        context = {"operation": operation, "username": username, "success": success,
                   "execution_time": execution_time, "status_code": status_code}
        if error_message:
            context["error_message"] = error_message
        sentry_sdk.set_context("operation_result", context)

        level = self.level_for_execution_time(execution_time)
        if not success:
            logger.error(f"❌ {self.module} {operation} failed for {username}: {error_message or 'Unknown error'}")
        elif level == "error":
            logger.error(f"🚨 CRITICAL: {self.module} {operation} took {execution_time:.3f}s for {username}")
        elif level == "warning":
            logger.warning(f"⚠️ SLOW: {self.module} {operation} took {execution_time:.3f}s for {username}")
        else:
            logger.info(f"✅ {self.module} {operation} completed in {execution_time:.3f}s for {username}")


def _session_username(request) -> str:
    session = getattr(request, "session", None)
    if session is None:
        return "unknown"
    return session.get("username", "unknown")


def track_transaction(module: str, operation_name: str):
    """
    Decorator to wrap a view in a Sentry transaction.

    Monitors execution time and HTTP status, and captures unexpected
    exceptions. Exceptions that carry a 4xx ``status_code`` (domain errors
    rendered by the API exception handler) are treated as client errors and
    are not reported to Sentry.

    Usage:
        @api_view(["POST"])
        @track_transaction("chat", "send_message")
        def send_message(request):
            ...
    """
    monitor = SentryMonitor(module)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(request, *args, **kwargs):
            username = _session_username(request)
            monitor.set_operation_context(operation_name, username)
            monitor.add_breadcrumb(f"Starting {operation_name}", data={"function": func.__name__})

            with sentry_sdk.start_transaction(op=module, name=f"{module}.{operation_name}") as transaction:
                start_time = time.time()
                try:
                    result = func(request, *args, **kwargs)
                except Exception as e:
                    execution_time = time.time() - start_time
                    status_code = getattr(e, "status_code", 500)
                    if status_code >= 500:
                        sentry_sdk.capture_exception(e)
                        transaction.set_status("internal_error")
                    else:
                        transaction.set_status("invalid_argument")
                    monitor.track_operation_result(
                        operation_name, username, success=False, execution_time=execution_time,
                        status_code=status_code, error_message=f"{type(e).__name__}: {e}",
                    )
                    raise

                execution_time = time.time() - start_time
                status_code = getattr(result, "status_code", 200)
                is_success = 200 <= status_code < 300
                transaction.set_status("ok" if is_success else "unknown_error")
                monitor.track_operation_result(
                    operation_name, username, success=is_success,
                    execution_time=execution_time, status_code=status_code,
                )
                return result
        return wrapper
    return decorator


def track_service_operation(module: str, operation_name: str):
    """
    Decorator to track service layer operations with Sentry spans.

    Creates a child span within the parent transaction so service time is
    measured separately from view logic.
    """
    monitor = SentryMonitor(module)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            monitor.add_breadcrumb(
                f"Starting service operation: {operation_name}",
                component=SentryMonitor.COMPONENT_SERVICE,
                data={"function": func.__name__},
            )
            with sentry_sdk.start_span(op=f"service.{module}", name=f"service.{operation_name}") as span:
                span.set_tag("operation", operation_name)
                start_time = time.time()
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    execution_time = time.time() - start_time
                    span.set_data("execution_time", execution_time)
                    span.set_data("error_type", type(e).__name__)
                    logger.warning(
                        f"⚠️ Service operation '{operation_name}' failed after {execution_time:.3f}s "
                        f"[error={type(e).__name__}: {e}]"
                    )
                    raise

                execution_time = time.time() - start_time
                span.set_data("execution_time", execution_time)
                logger.debug(f"Service operation '{operation_name}' completed in {execution_time:.3f}s")
                return result
        return wrapper
    return decorator


def capture_user_event(event_name: str, user_data: dict, extra_data: Optional[dict] = None):
    """Record a custom user event (breadcrumb + context) in Sentry."""
    sentry_sdk.set_context("user_event", {
        "event": event_name,
        "timestamp": time.time(),
        **user_data,
        **(extra_data or {}),
    })
    sentry_sdk.add_breadcrumb(
        category="user_event",
        message=event_name,
        level="info",
        data={**user_data, **(extra_data or {})},
    )
    logger.info(f"📊 Captured user event: {event_name} for user {user_data.get('username', 'unknown')}")
