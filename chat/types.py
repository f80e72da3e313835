# chat/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Conversation:
    id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str

    @classmethod
    def from_model(cls, chat) -> "Conversation":
        return cls(
            id=str(chat.id),
            user_id=str(chat.user_id),
            title=chat.title,
            created_at=chat.created_at.isoformat(),
            updated_at=chat.updated_at.isoformat(),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Turn:
    """One stored message. Immutable once persisted."""
    id: str
    chat_id: str
    role: str
    content: str
    image_url: Optional[str]
    created_at: str

    @classmethod
    def from_model(cls, message) -> "Turn":
        return cls(
            id=str(message.id),
            chat_id=str(message.chat_id),
            role=message.role,
            content=message.content,
            image_url=message.image_url or None,
            created_at=message.created_at.isoformat(),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Turn":
        return cls(
            id=str(row["id"]),
            chat_id=str(row["chat_id"]),
            role=row["role"],
            content=row.get("content") or "",
            image_url=row.get("image_url") or None,
            created_at=str(row.get("created_at") or ""),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "role": self.role,
            "content": self.content,
            "image_url": self.image_url,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Attachment:
    """An image picked by the user, not yet uploaded."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
