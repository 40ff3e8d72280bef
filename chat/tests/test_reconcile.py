from django.test import SimpleTestCase

from chat import reconcile
from chat.errors import NotFound
from chat.reconcile import Confirmed, ConversationState, Pending, SendInFlight, SendStatus


def _record(id, role="USER", content=None):
    return {"id": id, "sessionId": "s1", "role": role, "content": content or f"msg {id}", "createdAt": None}


class ReducerTests(SimpleTestCase):

    def setUp(self):
        self.state = reconcile.load(ConversationState(), [_record(1), _record(2, "ASSISTANT")])

    def test_submit_appends_pending_and_shows_typing(self):
        state = reconcile.submit(self.state, "local-1", "What should I do?")

        self.assertTrue(state.typing)
        self.assertEqual(state.pending, (Pending("local-1", "What should I do?"),))
        items = reconcile.display_list(state)
        self.assertEqual([type(i) for i in items], [Confirmed, Confirmed, Pending])

    def test_second_submit_while_sending_is_rejected(self):
        state = reconcile.submit(self.state, "local-1", "first")
        with self.assertRaises(SendInFlight):
            reconcile.submit(state, "local-2", "second")

    def test_success_replaces_pending_with_server_truth(self):
        state = reconcile.submit(self.state, "local-1", "What should I do?")
        state = reconcile.succeed(state, "local-1", [_record(3, content="What should I do?"), _record(4, "ASSISTANT")])

        self.assertFalse(state.typing)
        self.assertEqual(state.pending, ())
        self.assertEqual([c.id for c in state.confirmed], [1, 2, 3, 4])

    def test_failure_marks_pending_and_stops_typing(self):
        state = reconcile.submit(self.state, "local-1", "hello")
        state = reconcile.fail(state, "local-1", "Failed to get AI response", server_id=3)

        pending = state.find("local-1")
        self.assertEqual(pending.status, SendStatus.FAILED)
        self.assertEqual(pending.error, "Failed to get AI response")
        self.assertEqual(pending.server_id, 3)
        self.assertFalse(state.typing)
        self.assertFalse(state.in_flight)

    def test_retry_moves_failed_back_to_sending(self):
        state = reconcile.submit(self.state, "local-1", "hello")
        state = reconcile.fail(state, "local-1", "boom", server_id=3)
        state = reconcile.retry(state, "local-1")

        pending = state.find("local-1")
        self.assertEqual(pending.status, SendStatus.SENDING)
        self.assertIsNone(pending.error)
        self.assertEqual(pending.server_id, 3)
        self.assertTrue(state.typing)

        # a second failure without an id keeps the one already known
        state = reconcile.fail(state, "local-1", "boom again")
        self.assertEqual(state.find("local-1").server_id, 3)

    def test_discard_is_local_only(self):
        state = reconcile.submit(self.state, "local-1", "hello")
        state = reconcile.fail(state, "local-1", "boom")
        state = reconcile.discard(state, "local-1")

        self.assertEqual(state.pending, ())
        self.assertEqual(state.confirmed, self.state.confirmed)

    def test_unknown_local_id(self):
        with self.assertRaises(NotFound):
            reconcile.discard(self.state, "missing")

    def test_merge_dedupes_and_orders(self):
        merged = reconcile.merge_confirmed(self.state.confirmed, [_record(2, "ASSISTANT", "edited"), _record(0)])
        self.assertEqual([c.id for c in merged], [0, 1, 2])
        self.assertEqual(merged[2].record["content"], "edited")

    def test_stored_failed_message_shows_once(self):
        state = reconcile.submit(self.state, "local-1", "hello")
        state = reconcile.fail(state, "local-1", "boom", server_id=3)
        state = reconcile.load(state, [_record(3, content="hello")])

        items = reconcile.display_list(state)
        self.assertEqual([getattr(i, "id", None) for i in items if isinstance(i, Confirmed)], [1, 2])
        self.assertEqual(items[-1].local_id, "local-1")

    def test_display_list_keeps_submission_order(self):
        state = reconcile.submit(self.state, "a", "first")
        state = reconcile.fail(state, "a", "boom")
        state = reconcile.submit(state, "b", "second")
        self.assertEqual([p.local_id for p in reconcile.display_list(state)[2:]], ["a", "b"])
