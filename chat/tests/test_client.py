import json
from unittest.mock import Mock

import requests
from django.test import SimpleTestCase

from chat.client import Conversation, CounselClient, error_from_response
from chat.errors import ChatError, InvalidInput, NotFound, UpstreamFailure
from chat.reconcile import Confirmed, Pending, SendStatus


def _resp(status, body=None, reason="OK"):
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp._content = json.dumps(body).encode() if body is not None else b""
    resp.headers["Content-Type"] = "application/json"
    return resp


def _msg(id, role="USER", content="hi"):
    return {"id": id, "sessionId": "s1", "role": role, "content": content, "createdAt": "2024-01-01T00:00:00Z"}


class ErrorMappingTests(SimpleTestCase):

    def test_known_statuses(self):
        self.assertIsInstance(error_from_response(_resp(400, {"error": "invalid_input", "message": "bad"})), InvalidInput)
        self.assertIsInstance(error_from_response(_resp(404, {"error": "not_found", "message": "x"})), NotFound)

    def test_upstream_failure_keeps_details(self):
        err = error_from_response(_resp(502, {"error": "upstream_failure", "message": "m", "userMessage": _msg(7)}))
        self.assertIsInstance(err, UpstreamFailure)
        self.assertEqual(err.details["userMessage"]["id"], 7)

    def test_other_status(self):
        err = error_from_response(_resp(429, {"error": "too_many_requests", "message": "slow down"}))
        self.assertIs(type(err), ChatError)
        self.assertEqual(err.status_code, 429)
        self.assertEqual(err.code, "too_many_requests")


class CounselClientTests(SimpleTestCase):

    def setUp(self):
        self.http = Mock(spec=requests.Session)
        self.client = CounselClient("http://testserver", http=self.http)

    def test_csrf_fetched_once_for_writes(self):
        self.http.request.side_effect = [
            _resp(200, {"csrfToken": "tok"}),
            _resp(201, {"id": "s1", "title": "T"}),
            _resp(201, {"id": "s2", "title": "U"}),
        ]

        self.client.create_session("T")
        self.client.create_session("U", description="d")

        calls = self.http.request.call_args_list
        self.assertEqual(calls[0].args[:2], ("GET", "http://testserver/auth/csrf/"))
        self.assertEqual(calls[1].kwargs["headers"]["X-CSRFToken"], "tok")
        self.assertEqual(calls[2].kwargs["json"], {"title": "U", "description": "d"})

    def test_error_raises(self):
        self.http.request.return_value = _resp(404, {"error": "not_found", "message": "Chat session not found"})
        with self.assertRaises(NotFound):
            self.client.get_session("missing")

    def test_transcript_walks_pages_backwards(self):
        self.http.request.side_effect = [
            _resp(200, {"messages": [_msg(3), _msg(4)], "nextCursor": "2", "hasMore": True}),
            _resp(200, {"messages": [_msg(1), _msg(2)], "nextCursor": None, "hasMore": False}),
        ]

        transcript = self.client.transcript("s1", limit=2)

        self.assertEqual([m["id"] for m in transcript], [1, 2, 3, 4])
        self.assertEqual(self.http.request.call_args_list[1].kwargs["params"], {"limit": 2, "cursor": "2"})


class ConversationTests(SimpleTestCase):

    def setUp(self):
        self.api = Mock(spec=CounselClient)
        self.api.list_messages.return_value = {"messages": [_msg(1), _msg(2, "ASSISTANT")], "nextCursor": None}
        self.convo = Conversation(self.api, "s1")
        self.convo.load()

    def test_send_success(self):
        self.api.send_message.return_value = {"userMessage": _msg(3, content="What should I do?"),
                                              "aiMessage": _msg(4, "ASSISTANT", "Reflect on your strengths.")}

        self.assertIsNone(self.convo.send("  What should I do? "))

        self.api.send_message.assert_called_once_with("s1", "What should I do?", is_retry=False, retry_of=None)
        self.assertTrue(all(isinstance(m, Confirmed) for m in self.convo.messages))
        self.assertEqual([m.id for m in self.convo.messages], [1, 2, 3, 4])
        self.assertFalse(self.convo.typing)

    def test_failure_then_retry_by_id(self):
        self.api.send_message.side_effect = [
            UpstreamFailure(details={"userMessage": _msg(3, content="hello")}),
            {"userMessage": _msg(3, content="hello"), "aiMessage": _msg(4, "ASSISTANT", "hi there")},
        ]

        local_id = self.convo.send("hello")

        pending = self.convo.messages[-1]
        self.assertIsInstance(pending, Pending)
        self.assertEqual(pending.status, SendStatus.FAILED)
        self.assertEqual(pending.error, "Failed to get AI response")

        self.assertTrue(self.convo.retry(local_id))
        self.api.send_message.assert_called_with("s1", "hello", is_retry=True, retry_of=3)
        self.assertEqual([m.id for m in self.convo.messages], [1, 2, 3, 4])

    def test_network_error_marks_failed(self):
        self.api.send_message.side_effect = requests.ConnectionError("down")
        local_id = self.convo.send("hello")
        self.assertEqual(self.convo.state.find(local_id).status, SendStatus.FAILED)

    def test_discard_failed(self):
        self.api.send_message.side_effect = UpstreamFailure()
        local_id = self.convo.send("hello")
        self.convo.discard(local_id)
        self.assertEqual([m.id for m in self.convo.messages], [1, 2])

    def test_empty_message_rejected_locally(self):
        with self.assertRaises(InvalidInput):
            self.convo.send("   ")
        self.api.send_message.assert_not_called()

    def test_load_older(self):
        self.assertFalse(self.convo.load_older())
