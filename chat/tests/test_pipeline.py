from django.test import TestCase

from chat.errors import InvalidInput, NotFound, UpstreamFailure
from chat.llm import CAREER_COUNSELOR_PROMPT, SUMMARY_PROMPT, GeminiBlocked
from chat.models import ChatSession, Message, MessageRole
from chat.pipeline import MessagePipeline, validate_content
from .fakes import FakeCompletionClient, make_user


class PipelineTestCase(TestCase):

    def setUp(self):
        self.user = make_user("counselee")
        self.session = ChatSession.objects.create(user=self.user, title="Career Change Guidance")
        self.llm = FakeCompletionClient(reply="Start by listing your transferable skills.")
        self.pipeline = MessagePipeline(completion_client=self.llm, history_limit=20)

    def _send(self, content, **kwargs):
        kwargs.setdefault("user_id", self.user.pk)
        kwargs.setdefault("session_id", self.session.id)
        return self.pipeline.send(content=content, **kwargs)

    def _user_messages(self, content=None):
        qs = Message.objects.filter(session=self.session, role=MessageRole.USER)
        return qs.filter(content=content) if content is not None else qs


class SendTests(PipelineTestCase):

    def test_send_persists_both_turns(self):
        before = self.session.updated_at

        result = self._send("  What should I do?  ")

        self.assertEqual(result.user_message.role, MessageRole.USER)
        self.assertEqual(result.user_message.content, "What should I do?")
        self.assertEqual(result.assistant_message.role, MessageRole.ASSISTANT)
        self.assertEqual(result.assistant_message.content, "Start by listing your transferable skills.")
        self.assertGreater(result.assistant_message.id, result.user_message.id)
        self.assertEqual(Message.objects.filter(session=self.session).count(), 2)

        self.session.refresh_from_db()
        self.assertGreater(self.session.updated_at, before)

    def test_completion_gets_prompt_and_user_turn(self):
        self._send("What should I do?")

        call = self.llm.calls[0]
        self.assertEqual(call["system_instruction"], CAREER_COUNSELOR_PROMPT)
        self.assertEqual(len(call["turns"]), 1)
        self.assertEqual(call["turns"][-1].role, MessageRole.USER)
        self.assertEqual(call["turns"][-1].content, "What should I do?")

    def test_history_is_bounded_and_chronological(self):
        for i in range(30):
            role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
            Message.objects.create(session=self.session, role=role, content=f"old {i}")

        self._send("latest question")

        turns = self.llm.calls[0]["turns"]
        self.assertEqual(len(turns), 21)
        self.assertEqual([t.content for t in turns[:20]], [f"old {i}" for i in range(10, 30)])
        self.assertEqual(turns[-1].content, "latest question")

    def test_invalid_content_writes_nothing(self):
        for content in ["", "   ", "x" * 4001, None, 42]:
            with self.subTest(content=content), self.assertRaises(InvalidInput):
                self._send(content)
        self.assertFalse(Message.objects.exists())
        self.assertEqual(self.llm.calls, [])

    def test_length_is_checked_before_trimming(self):
        self._send("x" * 4000)
        with self.assertRaises(InvalidInput):
            self._send("x" * 3999 + "  ")

    def test_other_users_session_is_not_found(self):
        stranger = make_user("stranger")
        with self.assertRaises(NotFound):
            self._send("hello", user_id=stranger.pk)
        self.assertFalse(Message.objects.exists())

    def test_deleted_session_is_not_found(self):
        ChatSession.objects.filter(pk=self.session.pk).update(is_active=False)
        with self.assertRaises(NotFound):
            self._send("hello")


class FailureAndRetryTests(PipelineTestCase):

    def test_upstream_failure_keeps_user_message(self):
        self.llm.error = GeminiBlocked("blocked: SAFETY")
        before = ChatSession.objects.get(pk=self.session.pk).updated_at

        with self.assertRaises(UpstreamFailure) as ctx:
            self._send("What should I do?")

        stored = self._user_messages("What should I do?").get()
        self.assertEqual(ctx.exception.user_message, stored)
        self.assertFalse(Message.objects.filter(role=MessageRole.ASSISTANT).exists())
        self.assertEqual(ChatSession.objects.get(pk=self.session.pk).updated_at, before)

    def test_unexpected_client_error_becomes_upstream_failure(self):
        self.llm.error = RuntimeError("socket closed")
        with self.assertRaises(UpstreamFailure) as ctx:
            self._send("hello")
        self.assertEqual(ctx.exception.message, "Failed to get AI response")
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_blank_reply_is_upstream_failure(self):
        for reply in ("   ", "", None, {"text": "not a string"}):
            with self.subTest(reply=reply):
                self.llm.reply = reply
                with self.assertRaises(UpstreamFailure) as ctx:
                    self._send("Is a bootcamp worth it?", is_retry=True)
                self.assertEqual(ctx.exception.user_message, self._user_messages("Is a bootcamp worth it?").get())
        self.assertFalse(Message.objects.filter(role=MessageRole.ASSISTANT).exists())

    def test_zero_history_limit_sends_only_current_turn(self):
        Message.objects.create(session=self.session, role=MessageRole.USER, content="earlier question")
        Message.objects.create(session=self.session, role=MessageRole.ASSISTANT, content="earlier answer")
        pipeline = MessagePipeline(completion_client=self.llm, history_limit=0)

        pipeline.send(user_id=self.user.pk, session_id=self.session.id, content="now")

        self.assertEqual([t.content for t in self.llm.calls[-1]["turns"]], ["now"])

    def test_retry_after_failure_reuses_user_message(self):
        self.llm.error = UpstreamFailure()
        with self.assertRaises(UpstreamFailure):
            self._send("What should I do?")

        self.llm.error = None
        result = self._send("What should I do?", is_retry=True)

        self.assertEqual(self._user_messages("What should I do?").count(), 1)
        self.assertEqual(result.user_message, self._user_messages().get())
        self.assertEqual(Message.objects.filter(role=MessageRole.ASSISTANT).count(), 1)

    def test_retry_excludes_reused_turn_from_history(self):
        Message.objects.create(session=self.session, role=MessageRole.USER, content="earlier")
        Message.objects.create(session=self.session, role=MessageRole.ASSISTANT, content="earlier reply")
        self.llm.error = UpstreamFailure()
        with self.assertRaises(UpstreamFailure):
            self._send("follow up")

        self.llm.error = None
        self._send("follow up", is_retry=True)

        contents = [t.content for t in self.llm.calls[-1]["turns"]]
        self.assertEqual(contents, ["earlier", "earlier reply", "follow up"])

    def test_retry_by_id(self):
        self.llm.error = UpstreamFailure()
        with self.assertRaises(UpstreamFailure) as ctx:
            self._send("first wording")
        failed_id = ctx.exception.user_message.id

        self.llm.error = None
        result = self._send("edited wording", is_retry=True, retry_of=failed_id)

        self.assertEqual(result.user_message.id, failed_id)
        self.assertEqual(self._user_messages().count(), 1)
        self.assertEqual(self.llm.calls[-1]["turns"][-1].content, "first wording")

    def test_retry_of_unknown_or_assistant_message_is_not_found(self):
        reply = Message.objects.create(session=self.session, role=MessageRole.ASSISTANT, content="hi")
        for retry_of in (reply.id, 999999):
            with self.subTest(retry_of=retry_of), self.assertRaises(NotFound):
                self._send("hi", is_retry=True, retry_of=retry_of)
        self.assertEqual(self._user_messages().count(), 0)

    def test_retry_without_match_inserts_new_message(self):
        result = self._send("never sent before", is_retry=True)
        self.assertEqual(self._user_messages().get(), result.user_message)


class SummaryTests(PipelineTestCase):

    def test_empty_session_summary_skips_client(self):
        self.assertEqual(self.pipeline.summarize(user_id=self.user.pk, session_id=self.session.id), "")
        self.assertEqual(self.llm.calls, [])

    def test_summary_uses_recent_transcript(self):
        Message.objects.create(session=self.session, role=MessageRole.USER, content="I want to change careers")
        Message.objects.create(session=self.session, role=MessageRole.ASSISTANT, content="Tell me more")
        self.llm.reply = "The user wants a career change."

        summary = self.pipeline.summarize(user_id=self.user.pk, session_id=self.session.id)

        self.assertEqual(summary, "The user wants a career change.")
        call = self.llm.calls[0]
        self.assertEqual(call["system_instruction"], SUMMARY_PROMPT)
        self.assertIn("USER: I want to change careers\nASSISTANT: Tell me more", call["turns"][0].content)

    def test_summary_failure_returns_empty_string(self):
        Message.objects.create(session=self.session, role=MessageRole.USER, content="hello")
        self.llm.error = UpstreamFailure()
        self.assertEqual(self.pipeline.summarize(user_id=self.user.pk, session_id=self.session.id), "")

    def test_summary_requires_ownership(self):
        stranger = make_user("stranger")
        with self.assertRaises(NotFound):
            self.pipeline.summarize(user_id=stranger.pk, session_id=self.session.id)


class ValidateContentTests(TestCase):

    def test_trims(self):
        self.assertEqual(validate_content("  hi \n"), "hi")

    def test_boundaries(self):
        self.assertEqual(len(validate_content("a" * 4000)), 4000)
        with self.assertRaises(InvalidInput):
            validate_content("a" * 4001)
