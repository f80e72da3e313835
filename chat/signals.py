import logging
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from notification.feed import feed, INSERT, UPDATE, DELETE
from .models import Chat, Message
from .types import Conversation, Turn

logger = logging.getLogger(__name__)


def _publish(table, event_type, row):
    # deliver after commit so subscribers never see rows that get rolled back
    transaction.on_commit(lambda: feed.publish(table, event_type, row))


@receiver(post_save, sender=Message)
def publish_message_insert(sender, instance: Message, created, **kwargs):
    if not created:
        logger.debug("Ignoring update of immutable message %s", instance.pk)
        return
    _publish("messages", INSERT, Turn.from_model(instance).to_row())


@receiver(post_delete, sender=Message)
def publish_message_delete(sender, instance: Message, **kwargs):
    _publish("messages", DELETE, {"id": str(instance.pk), "chat_id": str(instance.chat_id)})


@receiver(post_save, sender=Chat)
def publish_chat_change(sender, instance: Chat, created, **kwargs):
    _publish("chats", INSERT if created else UPDATE, Conversation.from_model(instance).to_row())


@receiver(post_delete, sender=Chat)
def publish_chat_delete(sender, instance: Chat, **kwargs):
    _publish("chats", DELETE, {"id": str(instance.pk), "user_id": str(instance.user_id)})
