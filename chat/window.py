# chat/window.py
"""
Context-window contract shared by the controller and the proxy.

The wire shape of one entry is ``{"role", "content", "imageUrl"?}``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .errors import ValidationError
from .types import ROLES, Turn

WINDOW_SIZE = 5


@dataclass(frozen=True)
class WindowTurn:
    role: str
    content: str
    image_url: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.image_url:
            out["imageUrl"] = self.image_url
        return out


def build_context_window(turns: Sequence[Turn], size: int = WINDOW_SIZE) -> List[WindowTurn]:
    """Last `size` turns, oldest first, reduced to role/content/image."""
    tail = list(turns)[-size:] if size > 0 else []
    return [WindowTurn(role=t.role, content=t.content, image_url=t.image_url) for t in tail]


def to_wire(window: Sequence[WindowTurn]) -> List[Dict[str, Any]]:
    return [w.to_wire() for w in window]


def validate_window(messages: Any, size: int = WINDOW_SIZE) -> List[WindowTurn]:
    """
    Parse a wire payload into WindowTurns.

    Raises ValidationError for a missing/empty list or a malformed entry.
    Lists longer than `size` are cut to their last `size` entries.
    """
    if not isinstance(messages, list) or not messages:
        raise ValidationError("Messages array is required and cannot be empty")

    out: List[WindowTurn] = []
    for i, item in enumerate(messages):
        if not isinstance(item, dict):
            raise ValidationError(f"messages[{i}] must be an object")

        role = item.get("role")
        if role not in ROLES:
            raise ValidationError(f"messages[{i}].role must be one of {', '.join(ROLES)}")

        content = item.get("content")
        if not isinstance(content, str):
            raise ValidationError(f"messages[{i}].content must be a string")

        image_url = item.get("imageUrl")
        if image_url is not None and (not isinstance(image_url, str) or not image_url.strip()):
            raise ValidationError(f"messages[{i}].imageUrl must be a non-empty string")

        out.append(WindowTurn(role=role, content=content, image_url=image_url or None))

    return out[-size:]
