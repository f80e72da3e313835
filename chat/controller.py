# chat/controller.py
"""
Conversation controller: owns the message list for one bound conversation,
keeps it in sync with the database through the live feed, and runs the send
pipeline (upload → persist user turn → window → proxy → persist reply).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Callable, List, Optional

from notification.feed import ChangeEvent, LiveFeed, Subscription, feed as default_feed
from notification.sse import subscription_token
from .errors import (
    SEND_ERROR_MSG,
    AttachmentError,
    ChatError,
    ConfigError,
)
from .proxy_client import AnswerClient, default_proxy_client
from .repo import ConversationRepository, OrmConversationRepository
from .storage import BlobStore, default_blob_store, upload_attachment
from .sync import reconcile
from .types import Attachment, Conversation, Turn
from .window import WINDOW_SIZE, build_context_window, to_wire

log = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = "Please analyze this image"
IMAGE_TITLE = "Image Analysis"
TITLE_MAX_CHARS = 50


class ControllerState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    ERROR = "error"


@dataclass
class Draft:
    text: str = ""
    image: Optional[Attachment] = None


def derive_title(text: str) -> str:
    return text[:TITLE_MAX_CHARS] if text else IMAGE_TITLE


class ConversationController:
    def __init__(
        self,
        user_id,
        *,
        repo: Optional[ConversationRepository] = None,
        blobs: Optional[BlobStore] = None,
        proxy: Optional[AnswerClient] = None,
        live_feed: Optional[LiveFeed] = None,
        window_size: int = WINDOW_SIZE,
        on_change: Optional[Callable[[List[Turn]], None]] = None,
    ):
        self.user_id = str(user_id)
        self.repo = repo or OrmConversationRepository()
        self.proxy = proxy or default_proxy_client()
        self.feed = live_feed or default_feed
        self.window_size = window_size
        self.on_change = on_change

        self.state = ControllerState.IDLE
        self.error: Optional[str] = None
        self.last_exception: Optional[BaseException] = None
        self.draft = Draft()
        self.chat_id: Optional[str] = None

        self._blobs = blobs
        self._turns: List[Turn] = []
        self._subscription: Optional[Subscription] = None
        self._lock = RLock()

    # ---------- read side ----------

    @property
    def turns(self) -> List[Turn]:
        with self._lock:
            return list(self._turns)

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def _blob_store(self) -> BlobStore:
        if self._blobs is None:
            try:
                self._blobs = default_blob_store()
            except ConfigError as e:
                raise AttachmentError(f"blob storage misconfigured: {e}") from e
        return self._blobs

    # ---------- lifecycle ----------

    def on_bind(self, chat_id) -> None:
        """Bind to a conversation: fresh subscription, then a full reload."""
        chat_id = str(chat_id)
        self.on_unbind()

        with self._lock:
            self.chat_id = chat_id
            self._turns = []
        # subscribe before loading; reconcile dedups anything seen twice
        self._subscription = self.feed.subscribe("messages", {"chat_id": chat_id}, self._on_event)

        loaded = self.repo.list_turns(chat_id)
        with self._lock:
            loaded_ids = {t.id for t in loaded}
            self._turns = loaded + [t for t in self._turns if t.id not in loaded_ids]
        log.debug("bound chat=%s turns=%d", chat_id, len(loaded))
        self._notify()

    def on_unbind(self) -> None:
        """Release the live-feed subscription synchronously and forget the list."""
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.unsubscribe()
        with self._lock:
            self.chat_id = None
            self._turns = []

    def close(self) -> None:
        self.on_unbind()

    def _on_event(self, event: ChangeEvent) -> None:
        with self._lock:
            if str((event.row or {}).get("chat_id")) != self.chat_id:
                return
            before = len(self._turns)
            self._turns = reconcile(self._turns, event)
            changed = len(self._turns) != before
        if changed:
            self._notify()

    def _append(self, turn: Turn) -> None:
        # optimistic local append; the feed echo is deduplicated by id
        with self._lock:
            if any(t.id == turn.id for t in self._turns):
                return
            self._turns.append(turn)
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.turns)

    def feed_token(self, table: str = "messages") -> str:
        """SSE token for the bound conversation's messages, or the user's chat list."""
        if table == "chats":
            return subscription_token("chats", self.user_id)
        if not self.chat_id:
            raise LookupError("no conversation bound")
        return subscription_token("messages", self.chat_id)

    # ---------- conversations ----------

    def list_conversations(self) -> List[Conversation]:
        return self.repo.list_chats(self.user_id)

    def open(self) -> str:
        """Bind to the most recent conversation, creating one if there is none."""
        if self.chat_id:
            return self.chat_id
        chats = self.list_conversations()
        if chats:
            self.select_conversation(chats[0].id)
            return chats[0].id
        return self.create_conversation()

    def select_conversation(self, chat_id) -> None:
        chat = self.repo.get_chat(str(chat_id))
        if chat is None or chat.user_id != self.user_id:
            raise LookupError(f"chat {chat_id} not found")
        self.on_bind(chat.id)

    def create_conversation(self) -> str:
        chat = self.repo.create_chat(self.user_id)
        log.info("created chat=%s user=%s", chat.id, self.user_id)
        self.on_bind(chat.id)
        return chat.id

    def delete_conversation(self, chat_id) -> None:
        chat = self.repo.get_chat(str(chat_id))
        if chat is None or chat.user_id != self.user_id:
            raise LookupError(f"chat {chat_id} not found")
        chat_id = chat.id
        was_bound = chat_id == self.chat_id
        if was_bound:
            self.on_unbind()

        image_urls = self.repo.delete_chat(chat_id)
        if image_urls:
            self._delete_images(image_urls)

        if was_bound:
            self.create_conversation()

    def _delete_images(self, urls: List[str]) -> None:
        try:
            if not self._blob_store().delete(urls):
                log.warning("some chat images were not deleted: %s", urls)
        except Exception:
            log.exception("image cleanup failed for %d objects", len(urls))

    # ---------- compose / send ----------

    def compose(self, text: str = "", image: Optional[Attachment] = None) -> None:
        self.draft = Draft(text=text, image=image)

    def dismiss_error(self) -> None:
        if self.state == ControllerState.ERROR:
            self.state = ControllerState.IDLE
        self.error = None

    def send(self, text: Optional[str] = None, image: Optional[Attachment] = None) -> Optional[Turn]:
        """
        Run the send pipeline. Returns the assistant turn, or None when the
        send was refused or failed (see `state` / `error`).

        A failure after the user turn is persisted leaves that turn in place;
        sending again produces a new reply attempt.
        """
        if self.state == ControllerState.SENDING:
            log.warning("send ignored: already sending chat=%s", self.chat_id)
            return None

        if text is None and image is None:
            text, image = self.draft.text, self.draft.image
        text = (text or "").strip()

        if not text and image is None:
            return None
        if not self.chat_id:
            log.warning("send ignored: no conversation bound")
            return None

        chat_id = self.chat_id
        self.state = ControllerState.SENDING
        self.error = None
        self.last_exception = None

        try:
            image_url = upload_attachment(self._blob_store(), self.user_id, image) if image else None

            is_first = not self.turns
            user_turn = self.repo.add_turn(chat_id, "user", text or IMAGE_PLACEHOLDER, image_url)
            self._append(user_turn)
            self.draft = Draft()

            if is_first:
                self.repo.update_chat(chat_id, title=derive_title(text))

            window = build_context_window(self.turns, self.window_size)
            reply = self.proxy.answer(to_wire(window))

            assistant_turn = self.repo.add_turn(chat_id, "assistant", reply)
            self._append(assistant_turn)
            self.repo.update_chat(chat_id)

        except ChatError as e:
            log.warning("send failed chat=%s: %s: %s", chat_id, type(e).__name__, e)
            self._fail(e)
            return None
        except Exception as e:
            log.exception("send failed chat=%s", chat_id)
            self._fail(e)
            return None

        self.state = ControllerState.IDLE
        return assistant_turn

    def _fail(self, exc: BaseException) -> None:
        self.state = ControllerState.ERROR
        self.last_exception = exc
        self.error = getattr(exc, "user_message", SEND_ERROR_MSG)
