# chat/repo.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Protocol

from django.db import transaction
from django.utils import timezone

from .models import Chat, Message, DEFAULT_TITLE
from .types import Conversation, Turn

log = logging.getLogger(__name__)


def _as_uuid(value) -> Optional[uuid.UUID]:
    """Parse an id; malformed ids are treated as not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


class ConversationRepository(Protocol):
    def create_chat(self, user_id: str, title: str = DEFAULT_TITLE) -> Conversation: ...

    def get_chat(self, chat_id: str) -> Optional[Conversation]: ...

    def list_chats(self, user_id: str, limit: int = 50) -> List[Conversation]: ...

    def update_chat(self, chat_id: str, *, title: Optional[str] = None) -> None: ...

    def delete_chat(self, chat_id: str) -> List[str]: ...

    def list_turns(self, chat_id: str) -> List[Turn]: ...

    def add_turn(self, chat_id: str, role: str, content: str, image_url: Optional[str] = None) -> Turn: ...


class OrmConversationRepository:
    """
    Conversation/turn storage over the Django ORM.

    Inserts and deletes fire model signals, which feed the live feed; callers
    never publish change events themselves.
    """

    def create_chat(self, user_id: str, title: str = DEFAULT_TITLE) -> Conversation:
        chat = Chat.objects.create(user_id=user_id, title=title)
        return Conversation.from_model(chat)

    def get_chat(self, chat_id: str) -> Optional[Conversation]:
        pk = _as_uuid(chat_id)
        if pk is None:
            return None
        chat = Chat.objects.filter(pk=pk).first()
        return Conversation.from_model(chat) if chat else None

    def list_chats(self, user_id: str, limit: int = 50) -> List[Conversation]:
        qs = Chat.objects.filter(user_id=user_id).order_by("-updated_at", "-created_at")
        return [Conversation.from_model(c) for c in qs[:limit]]

    def update_chat(self, chat_id: str, *, title: Optional[str] = None) -> None:
        """Set the title (when given) and always touch updated_at."""
        pk = _as_uuid(chat_id)
        chat = Chat.objects.filter(pk=pk).first() if pk else None
        if chat is None:
            log.warning("update_chat: chat %s not found", chat_id)
            return
        fields = ["updated_at"]
        if title is not None:
            chat.title = title
            fields.append("title")
        chat.updated_at = timezone.now()
        chat.save(update_fields=fields)

    def delete_chat(self, chat_id: str) -> List[str]:
        """Delete a chat and its messages. Returns the image URLs they referenced."""
        chat_id = _as_uuid(chat_id)
        if chat_id is None:
            return []
        with transaction.atomic():
            image_urls = list(
                Message.objects.filter(chat_id=chat_id, image_url__isnull=False)
                .exclude(image_url="")
                .values_list("image_url", flat=True)
            )
            deleted, _ = Chat.objects.filter(pk=chat_id).delete()
        if not deleted:
            log.info("delete_chat: chat %s already gone", chat_id)
        return image_urls

    def list_turns(self, chat_id: str) -> List[Turn]:
        pk = _as_uuid(chat_id)
        if pk is None:
            return []
        qs = Message.objects.filter(chat_id=pk).order_by("created_at", "seq")
        return [Turn.from_model(m) for m in qs]

    def add_turn(self, chat_id: str, role: str, content: str, image_url: Optional[str] = None) -> Turn:
        with transaction.atomic():
            # row lock on the chat serialises seq allocation per conversation
            Chat.objects.select_for_update().filter(pk=chat_id).first()
            message = Message.objects.create(chat_id=chat_id, role=role, content=content, image_url=image_url)
        return Turn.from_model(message)
