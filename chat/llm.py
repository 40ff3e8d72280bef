# chat/llm.py

import os
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Sequence
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FUTimeout

# Quiet down gRPC noise from the SDK
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GRPC_TRACE", "")

from django.conf import settings
from django.utils.module_loading import import_string
import google.generativeai as genai

from .errors import UpstreamFailure
from .models import MessageRole

logger = logging.getLogger(__name__)


# ===== Exceptions =====
# All of them surface to API callers as a 502 "Failed to get AI response";
# ``reason`` is kept for logs only.

class GeminiError(UpstreamFailure):
    def __init__(self, reason: str = "gemini_error"):
        super().__init__()
        self.reason = reason

    def __str__(self):
        return f"{type(self).__name__}({self.reason})"


class GeminiBlocked(GeminiError):
    ...


class GeminiUnavailable(GeminiError):
    ...


class GeminiConfigError(GeminiError):
    ...


# ===== Prompts =====

CAREER_COUNSELOR_PROMPT = (
    "You are an expert career counselor and advisor. Your role is to provide thoughtful, "
    "personalized career guidance to help individuals navigate their professional journey.\n\n"
    "Key responsibilities:\n"
    "- Assess career interests, skills, and goals\n"
    "- Provide industry insights and job market trends\n"
    "- Suggest career paths and development opportunities\n"
    "- Offer resume and interview guidance\n"
    "- Help with skill development recommendations\n"
    "- Address work-life balance concerns\n"
    "- Provide salary negotiation advice\n\n"
    "Guidelines:\n"
    "- Ask clarifying questions to better understand their situation\n"
    "- Provide actionable, practical advice\n"
    "- Be supportive and encouraging\n"
    "- Keep responses concise but comprehensive\n"
    "- Reference current job market trends when relevant\n"
    "- Maintain professional yet approachable tone\n\n"
    "Always tailor your responses to the individual's specific situation, experience level, "
    "and career goals."
)

SUMMARY_PROMPT = (
    "You are a helpful assistant that creates concise summaries of career counseling "
    "conversations. Summarize the key topics discussed and main advice given in 2-3 sentences."
)

CHAT_GENCFG = {"temperature": 0.7}
SUMMARY_GENCFG = {"temperature": 0.3, "max_output_tokens": 200}

# MessageRole -> Gemini content role. Every MessageRole must appear here.
GEMINI_ROLES: Dict[str, str] = {
    MessageRole.USER: "user",
    MessageRole.ASSISTANT: "model",
}


@dataclass(frozen=True)
class Turn:
    """One conversation turn handed to a completion client."""

    role: str
    content: str


def to_gemini_contents(turns: Sequence[Turn]) -> list:
    contents = []
    for turn in turns:
        try:
            role = GEMINI_ROLES[turn.role]
        except KeyError:
            raise ValueError(f"unsupported message role: {turn.role!r}")
        contents.append({"role": role, "parts": [turn.content]})
    return contents


def build_summary_turns(turns: Sequence[Turn]) -> list:
    """Flatten a transcript into the single user turn the summary prompt expects."""
    transcript = "\n".join(f"{t.role}: {t.content}" for t in turns)
    return [Turn(MessageRole.USER, f"Please summarize this career counseling conversation:\n\n{transcript}")]


# ===== Response helpers =====

def _extract_text(resp) -> str:
    """
    Safely extract text from Gemini SDK / mock responses.

    Supports resp.candidates[..].content.parts[..].text, resp.text and a
    plain string. Always returns a str.
    """
    if isinstance(resp, str):
        return resp.strip()

    try:
        candidates = getattr(resp, "candidates", None) or []
        for c in candidates:
            content = getattr(c, "content", None)
            parts = getattr(content, "parts", None) or []
            for p in parts:
                txt = getattr(p, "text", "") or ""
                if isinstance(txt, str) and txt.strip():
                    return txt.strip()
    except (AttributeError, TypeError):
        pass

    # resp.text raises ValueError on the real SDK when there are no parts
    try:
        t = getattr(resp, "text", "") or ""
    except ValueError:
        return ""
    return t.strip() if isinstance(t, str) else ""


def _check_block(resp) -> None:
    fb = getattr(resp, "prompt_feedback", None)
    if fb:
        br = getattr(fb, "block_reason", None)
        br_name = getattr(br, "name", br)
        if isinstance(br_name, str) and br_name and br_name != "BLOCK_REASON_UNSPECIFIED":
            raise GeminiBlocked(f"blocked: {br_name}")

    candidates = getattr(resp, "candidates", None) or []
    if not isinstance(candidates, (list, tuple)) or not candidates:
        return
    finish = getattr(candidates[0], "finish_reason", None)
    finish_name = getattr(finish, "name", finish)
    if isinstance(finish_name, str) and finish_name.lower() in {"safety", "blocked", "prohibited_content"}:
        raise GeminiBlocked(f"finish_reason={finish_name}")


# ===== Components =====

class CompletionClient(Protocol):
    def complete(
        self, system_instruction: str, turns: Sequence[Turn], *, generation_config: Optional[dict] = None
    ) -> str:
        ...


@dataclass
class ResilientCaller:
    """Owns the application-level timeout. No retries: one call per request."""

    app_timeout_s: float = 40

    def run(self, fn: Callable[[], object]) -> object:
        ex = ThreadPoolExecutor(max_workers=1)
        try:
            fut = ex.submit(fn)
            try:
                return fut.result(timeout=self.app_timeout_s)
            except FUTimeout:
                logger.warning("gemini_app_timeout after %ss", self.app_timeout_s)
                raise GeminiUnavailable("app_timeout")
        finally:
            # do not block the request on a hung SDK call
            ex.shutdown(wait=False)


class GeminiCompletionClient:
    """Adapter over google.generativeai GenerativeModel."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        deadline_s: Optional[float] = None,
        caller: Optional[ResilientCaller] = None,
        model_factory: Optional[Callable[..., object]] = None,
    ):
        self.api_key = api_key if api_key is not None else getattr(settings, "GEMINI_API_KEY", None)
        self.model_name = model_name or getattr(settings, "GEMINI_MODEL", None) or "gemini-2.5-flash"
        self.deadline_s = deadline_s or getattr(settings, "GEMINI_DEADLINE_S", 30)
        self.caller = caller or ResilientCaller(app_timeout_s=getattr(settings, "GEMINI_APP_TIMEOUT_S", 40))
        self._model_factory = model_factory or genai.GenerativeModel
        self._models: Dict[str, object] = {}
        self._configured = False

    def _model_for(self, system_instruction: str):
        """Create and cache one GenerativeModel per system instruction."""
        model = self._models.get(system_instruction)
        if model is not None:
            return model

        if not self.api_key:
            raise GeminiConfigError("GEMINI_API_KEY missing")
        try:
            if not self._configured:
                genai.configure(api_key=self.api_key)
                self._configured = True
            model = self._model_factory(self.model_name, system_instruction=system_instruction)
        except Exception as e:
            raise GeminiConfigError(f"gemini_config_error: {e}") from e
        self._models[system_instruction] = model
        return model

    def complete(
        self, system_instruction: str, turns: Sequence[Turn], *, generation_config: Optional[dict] = None
    ) -> str:
        contents = to_gemini_contents(turns)
        if not contents:
            raise ValueError("at least one turn is required")
        model = self._model_for(system_instruction)

        def _call():
            return model.generate_content(
                contents,
                generation_config=generation_config or CHAT_GENCFG,
                request_options={"timeout": self.deadline_s},
            )

        try:
            resp = self.caller.run(_call)
        except GeminiError:
            raise
        except Exception as e:
            logger.warning("gemini_call_failed %s: %s", type(e).__name__, e)
            raise GeminiError(f"{type(e).__name__}: {e}") from e

        _check_block(resp)
        text = _extract_text(resp)
        if not text:
            raise GeminiError("empty_response")
        return text


# ===== Factory =====

DEFAULT_COMPLETION_CLIENT = "chat.llm.GeminiCompletionClient"


def build_completion_client(factory=None) -> CompletionClient:
    """
    Construct a fresh completion client.

    ``factory`` (or the CHAT_COMPLETION_CLIENT setting) is a dotted path or a
    zero-argument callable returning an object with ``complete()``.
    """
    if factory is None:
        factory = getattr(settings, "CHAT_COMPLETION_CLIENT", None) or DEFAULT_COMPLETION_CLIENT
    if isinstance(factory, str):
        factory = import_string(factory)
    return factory()
