# proxy/llm.py

import os
import logging
from dataclasses import dataclass
from typing import Callable, List, Protocol
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FUTimeout

# Quiet down gRPC noise from the SDK
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GRPC_TRACE", "")

from django.conf import settings
import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from chat.errors import ConfigError, UpstreamError

logger = logging.getLogger(__name__)

# ===== Base config =====

GENCFG = {
    "temperature": 0.7,
    "top_k": 40,
    "top_p": 0.95,
    "max_output_tokens": 4048,
}

FALLBACK_REPLY = "Sorry, I couldn't generate a response."

# ===== Lazy Gemini client =====

_model = None


def _model_name() -> str:
    return getattr(settings, "GEMINI_MODEL", None) or "gemini-2.5-flash"


def _get_model():
    """Create and cache the Gemini model client."""
    global _model
    if _model is not None:
        return _model

    api_key = getattr(settings, "GEMINI_API_KEY", None)
    if not api_key:
        raise ConfigError("Gemini API key not configured in environment")

    try:
        genai.configure(api_key=api_key)
        _m = genai.GenerativeModel(_model_name())
    except Exception as e:
        raise ConfigError(f"gemini_config_error: {e}") from e
    _model = _m
    return _model


def extract_reply(resp) -> str:
    """
    First candidate's first text part, or "" when the shape is not there.

    Works on SDK responses and on plain objects/mocks shaped the same way.
    """
    try:
        candidates = getattr(resp, "candidates", None) or []
        if not candidates:
            return ""
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        if not parts:
            return ""
        txt = getattr(parts[0], "text", "") or ""
    except (AttributeError, IndexError, TypeError):
        return ""
    return txt if isinstance(txt, str) else ""


# ===== Components =====

class LLMClient(Protocol):
    def generate(self, contents: List[dict], *, generation_config: dict, timeout_s: int) -> object:
        ...


@dataclass
class TimeoutGuard:
    """App-level deadline around a blocking call. No retries: the caller decides."""

    app_timeout_s: int = 60

    def run(self, fn: Callable[[], object]) -> object:
        ex = ThreadPoolExecutor(max_workers=1)
        fut = ex.submit(fn)
        try:
            return fut.result(timeout=self.app_timeout_s)
        except FUTimeout:
            logger.warning("gemini_app_timeout after %ss", self.app_timeout_s)
            raise UpstreamError("Gemini request timed out", status=504, body="app_timeout")
        finally:
            # do not block on a hung call; the worker finishes in the background
            ex.shutdown(wait=False)


class GeminiLLMClient:
    """Adapter over google.generativeai GenerativeModel."""

    def __init__(self, model=None):
        self._model = model or _get_model()

    def generate(self, contents: List[dict], *, generation_config: dict, timeout_s: int) -> object:
        try:
            return self._model.generate_content(
                contents,
                generation_config=generation_config,
                request_options={"timeout": timeout_s},
            )
        except google_exceptions.GoogleAPICallError as e:
            status = getattr(e, "code", None)
            logger.error("Gemini API error status=%s: %s", status, e.message)
            raise UpstreamError(
                "Failed to get response from Gemini",
                status=int(status) if isinstance(status, int) else 502,
                body=str(e.message or e),
            ) from e


class ReplyGenerator:
    """Runs one model call under the deadline and turns the response into text."""

    def __init__(self, llm: LLMClient, guard: TimeoutGuard):
        self.llm = llm
        self.guard = guard

    def _log_block(self, resp) -> None:
        fb = getattr(resp, "prompt_feedback", None)
        br = getattr(fb, "block_reason", None) if fb else None
        if br:
            logger.info("Gemini blocked prompt: %s", br)

    def reply(self, contents: List[dict]) -> str:
        def _call():
            return self.llm.generate(
                contents,
                generation_config=GENCFG,
                timeout_s=self.guard.app_timeout_s,
            )

        resp = self.guard.run(_call)
        text = extract_reply(resp)
        if not text:
            self._log_block(resp)
            logger.warning("Gemini returned no text part; using fallback reply")
            return FALLBACK_REPLY
        return text


def default_reply_generator() -> ReplyGenerator:
    return ReplyGenerator(
        llm=GeminiLLMClient(),
        guard=TimeoutGuard(app_timeout_s=getattr(settings, "GEMINI_TIMEOUT_S", 60)),
    )
