from django.db import models
from django.db.models import Max
import uuid

DEFAULT_TITLE = "New Chat"


class Chat(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField(db_index=True)
    title = models.TextField(default=DEFAULT_TITLE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        db_table = "chats"
        ordering = ["-updated_at"]

    def __str__(self):
        return f"{self.title} ({self.id})"


class Message(models.Model):
    ROLE_CHOICES = [("user", "user"), ("assistant", "assistant")]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name="messages")
    role = models.CharField(max_length=10, choices=ROLE_CHOICES)
    content = models.TextField()
    image_url = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    # insertion order within the chat; breaks created_at ties
    seq = models.PositiveIntegerField(editable=False)

    class Meta:
        db_table = "messages"
        ordering = ["created_at", "seq"]
        constraints = [
            models.UniqueConstraint(fields=["chat", "seq"], name="messages_chat_seq_unique"),
            models.CheckConstraint(
                condition=models.Q(role__in=["user", "assistant"]),
                name="messages_role_check",
            ),
        ]

    def save(self, *args, **kwargs):
        if self.seq is None:
            last = Message.objects.filter(chat_id=self.chat_id).aggregate(m=Max("seq"))["m"]
            self.seq = (last or 0) + 1
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.role}: {self.content[:40]}"
