# chat/errors.py
from typing import Optional

# ===== User-facing messages =====
ATTACHMENT_ERROR_MSG = "Image upload failed. Please check the storage configuration and try again."
ATTACHMENT_FETCH_ERROR_MSG = "The attached image could not be read. Please upload it again."
SEND_ERROR_MSG = "Failed to send message. Please try again."


class ChatError(RuntimeError):
    """Base class for every failure of the send pipeline."""

    user_message = SEND_ERROR_MSG


class ValidationError(ChatError):
    """Malformed or empty context window."""


class AttachmentError(ChatError):
    """The image could not be stored in the blob store."""

    user_message = ATTACHMENT_ERROR_MSG


class AttachmentFetchError(ChatError):
    """The proxy could not retrieve the image behind an imageUrl."""

    user_message = ATTACHMENT_FETCH_ERROR_MSG


class UpstreamError(ChatError):
    """The model endpoint failed. Carries the upstream status and raw body."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        return f"{base} (status={self.status})"


class NetworkError(ChatError):
    """Transport failure between the controller and the proxy."""


class ConfigError(ChatError):
    """Required credentials or settings are missing."""
