# proxy/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Protocol, Sequence, Tuple

from chat.window import WindowTurn, validate_window
from .images import load_inline_image
from .llm import default_reply_generator
from .prompts import SYSTEM_PROMPT

log = logging.getLogger(__name__)

# window role -> Gemini content role
ROLE_MAP = {"user": "user", "assistant": "model"}


# =========================
# Ports
# =========================

class ReplySource(Protocol):
    def reply(self, contents: List[dict]) -> str: ...


ImageLoader = Callable[[str], Tuple[str, str]]


# =========================
# Prompt assembly
# =========================

@dataclass(frozen=True)
class PromptAssembler:
    system_prompt: str = SYSTEM_PROMPT

    def text_contents(self, window: Sequence[WindowTurn]) -> List[dict]:
        """System prompt as the opening user turn, then every non-blank turn."""
        contents = [{"role": "user", "parts": [{"text": self.system_prompt}]}]
        for turn in window:
            if turn.content and turn.content.strip():
                contents.append({"role": ROLE_MAP[turn.role], "parts": [{"text": turn.content}]})
        return contents

    def image_contents(self, turn: WindowTurn, mime_type: str, data_b64: str) -> List[dict]:
        """Single multimodal turn: system prompt, the turn's text, the inline image."""
        parts: List[dict] = [{"text": self.system_prompt}]
        if turn.content and turn.content.strip():
            parts.append({"text": turn.content})
        parts.append({"inline_data": {"mime_type": mime_type, "data": data_b64}})
        return [{"role": "user", "parts": parts}]


# =========================
# Application service
# =========================

@dataclass
class AnswerService:
    """Stateless: window in, plain text out. No persistence."""
    replies: ReplySource
    load_image: ImageLoader = load_inline_image
    assembler: PromptAssembler = PromptAssembler()

    def build_contents(self, window: Sequence[WindowTurn]) -> List[dict]:
        last = window[-1]
        if last.image_url:
            # newest turn is an image: earlier turns are deliberately dropped
            mime_type, data = self.load_image(last.image_url)
            log.info("image path mime=%s bytes_b64=%d", mime_type, len(data))
            return self.assembler.image_contents(last, mime_type, data)
        return self.assembler.text_contents(window)

    def answer(self, messages: Any) -> str:
        window = validate_window(messages)
        contents = self.build_contents(window)
        return self.replies.reply(contents)


# =========================
# Public API
# =========================

def answer(messages: Any) -> str:
    """
    Validate a wire context window, call Gemini, return the reply text.

    Raises ValidationError, AttachmentFetchError, UpstreamError, ConfigError.
    """
    service = AnswerService(replies=default_reply_generator())
    return service.answer(messages)
