# chat/client.py
"""
HTTP client for the counseling API and a conversation controller that keeps
optimistic message state in sync with it.

    client = CounselClient("http://localhost:8000")
    client.login("jane", "Secret123")
    session = client.create_session("Career Change Guidance")
    convo = Conversation(client, session["id"])
    convo.send("What should I do?")
"""
from __future__ import annotations

import itertools
import logging
from typing import Dict, Iterator, List, Optional
from urllib.parse import urljoin

import requests

from . import reconcile
from .errors import ChatError, Conflict, InvalidInput, NotFound, Unauthorized, UpstreamFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60

_ERRORS_BY_STATUS = {
    400: InvalidInput,
    401: Unauthorized,
    404: NotFound,
    409: Conflict,
    502: UpstreamFailure,
}


def error_from_response(resp: requests.Response) -> ChatError:
    """Turn an error response into the matching ChatError subclass."""
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    details = {k: v for k, v in body.items() if k not in ("error", "message")}
    cls = _ERRORS_BY_STATUS.get(resp.status_code)
    if cls is None:
        err = ChatError(body.get("message") or resp.reason, details=details)
        err.status_code = resp.status_code
        err.code = body.get("error") or err.code
        return err
    return cls(body.get("message"), details=details)


class CounselClient:
    """Session-cookie client. CSRF token is fetched once and sent on every write."""

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_TIMEOUT_S, http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.http = http or requests.Session()
        self._csrf_token: Optional[str] = None

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def _ensure_csrf(self) -> str:
        if self._csrf_token is None:
            self._csrf_token = self._request("GET", "auth/csrf/")["csrfToken"]
        return self._csrf_token

    def _request(self, method: str, path: str, *, json=None, params=None):
        headers = {"Accept": "application/json"}
        if method not in ("GET", "HEAD", "OPTIONS"):
            headers["X-CSRFToken"] = self._ensure_csrf()
            headers["Referer"] = self.base_url
        resp = self.http.request(
            method, self._url(path), json=json, params=params, headers=headers, timeout=self.timeout
        )
        if resp.status_code >= 400:
            err = error_from_response(resp)
            logger.debug("%s %s -> %s %s", method, path, resp.status_code, err.code)
            raise err
        return resp.json() if resp.content else {}

    # ---- auth ----

    def register(self, *, username: str, password: str, display_name: str, email: str) -> Dict:
        return self._request("POST", "auth/register/", json={
            "username": username,
            "password": password,
            "confirmPassword": password,
            "displayName": display_name,
            "email": email,
        })

    def login(self, username: str, password: str) -> Dict:
        data = self._request("POST", "auth/login/", json={"username": username, "password": password})
        return data["user"]

    def logout(self) -> None:
        self._request("POST", "auth/logout/")

    def current_session(self) -> Dict:
        return self._request("GET", "auth/session/")

    # ---- profile ----

    def get_profile(self) -> Dict:
        return self._request("GET", "api/user-settings/profile/")

    def update_profile(self, name: str) -> Dict:
        return self._request("PATCH", "api/user-settings/profile/", json={"name": name})

    # ---- sessions ----

    def list_sessions(self, *, limit: Optional[int] = None, cursor: Optional[str] = None) -> Dict:
        params = {k: v for k, v in (("limit", limit), ("cursor", cursor)) if v is not None}
        return self._request("GET", "api/chat/sessions/", params=params)

    def create_session(self, title: str, description: Optional[str] = None) -> Dict:
        payload = {"title": title}
        if description is not None:
            payload["description"] = description
        return self._request("POST", "api/chat/sessions/", json=payload)

    def get_session(self, session_id: str, *, limit: Optional[int] = None, cursor: Optional[str] = None) -> Dict:
        params = {k: v for k, v in (("limit", limit), ("cursor", cursor)) if v is not None}
        return self._request("GET", f"api/chat/sessions/{session_id}/", params=params)

    def update_session(self, session_id: str, title: str, description: Optional[str] = None) -> Dict:
        payload = {"title": title}
        if description is not None:
            payload["description"] = description
        return self._request("PATCH", f"api/chat/sessions/{session_id}/", json=payload)

    def delete_session(self, session_id: str) -> None:
        self._request("DELETE", f"api/chat/sessions/{session_id}/")

    def list_messages(self, session_id: str, *, limit: Optional[int] = None, cursor: Optional[str] = None) -> Dict:
        params = {k: v for k, v in (("limit", limit), ("cursor", cursor)) if v is not None}
        return self._request("GET", f"api/chat/sessions/{session_id}/messages/", params=params)

    def iter_message_pages(self, session_id: str, *, limit: Optional[int] = None) -> Iterator[List[Dict]]:
        """Pages newest first; each page is chronological."""
        cursor = None
        while True:
            page = self.list_messages(session_id, limit=limit, cursor=cursor)
            yield page["messages"]
            cursor = page.get("nextCursor")
            if not cursor:
                return

    def transcript(self, session_id: str, *, limit: Optional[int] = None) -> List[Dict]:
        pages = list(self.iter_message_pages(session_id, limit=limit))
        return [m for page in reversed(pages) for m in page]

    def summary(self, session_id: str) -> str:
        return self._request("GET", f"api/chat/sessions/{session_id}/summary/")["summary"]

    # ---- messages ----

    def send_message(self, session_id: str, content: str, *, is_retry: bool = False,
                     retry_of: Optional[int] = None) -> Dict:
        payload = {"content": content, "chatSessionId": session_id, "isRetry": is_retry}
        if retry_of is not None:
            payload["retryOf"] = retry_of
        return self._request("POST", "api/chat/messages/", json=payload)


class Conversation:
    """
    Drives the optimistic state of one session with real calls.

    ``messages`` is what a UI renders: confirmed records, then pending sends.
    """

    def __init__(self, client: CounselClient, session_id: str, *, page_size: int = 20):
        self.client = client
        self.session_id = session_id
        self.page_size = page_size
        self.state = reconcile.ConversationState()
        self.next_cursor: Optional[str] = None
        self._ids = itertools.count(1)

    @property
    def messages(self) -> List[reconcile.DisplayItem]:
        return reconcile.display_list(self.state)

    @property
    def typing(self) -> bool:
        return self.state.typing

    def load(self) -> None:
        page = self.client.list_messages(self.session_id, limit=self.page_size)
        self.state = reconcile.load(self.state, page["messages"])
        self.next_cursor = page.get("nextCursor")

    def load_older(self) -> bool:
        """Fetch the next older page. Returns False when there is nothing left."""
        if not self.next_cursor:
            return False
        page = self.client.list_messages(self.session_id, limit=self.page_size, cursor=self.next_cursor)
        self.state = reconcile.load(self.state, page["messages"])
        self.next_cursor = page.get("nextCursor")
        return True

    def _deliver(self, local_id: str, *, is_retry: bool) -> bool:
        pending = self.state.find(local_id)
        try:
            result = self.client.send_message(
                self.session_id, pending.content, is_retry=is_retry, retry_of=pending.server_id,
            )
        except ChatError as e:
            server_id = (e.details.get("userMessage") or {}).get("id")
            self.state = reconcile.fail(self.state, local_id, e.message, server_id=server_id)
            return False
        except requests.RequestException as e:
            self.state = reconcile.fail(self.state, local_id, str(e))
            return False
        self.state = reconcile.succeed(self.state, local_id, [result["userMessage"], result["aiMessage"]])
        return True

    def send(self, content: str) -> Optional[str]:
        """
        Submit a message. Returns None on success, or the local id of the
        failed pending message so it can be retried or discarded.
        """
        content = content.strip()
        if not content:
            raise InvalidInput("Message cannot be empty")
        local_id = f"local-{next(self._ids)}"
        self.state = reconcile.submit(self.state, local_id, content)
        return None if self._deliver(local_id, is_retry=False) else local_id

    def retry(self, local_id: str) -> bool:
        self.state = reconcile.retry(self.state, local_id)
        return self._deliver(local_id, is_retry=True)

    def discard(self, local_id: str) -> None:
        self.state = reconcile.discard(self.state, local_id)
