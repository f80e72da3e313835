# proxy/images.py
import base64
import logging
import re
from typing import Tuple
from urllib.parse import urlparse

import requests
from django.conf import settings

from chat.errors import AttachmentFetchError

logger = logging.getLogger(__name__)

DEFAULT_SUBTYPE = "jpeg"
_EXT = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.I)


def media_type_for(url: str) -> str:
    """
    MIME type from the URL path suffix.

    Unknown or missing suffix falls back to image/jpeg; "jpg" maps to "jpeg".
    """
    path = urlparse(url or "").path
    m = _EXT.search(path)
    subtype = m.group(1).lower() if m else DEFAULT_SUBTYPE
    if subtype == "jpg":
        subtype = "jpeg"
    return f"image/{subtype}"


def fetch_image(url: str, timeout: float = None) -> bytes:
    """GET the image bytes. Any transport error or non-2xx raises AttachmentFetchError."""
    timeout = timeout or getattr(settings, "IMAGE_FETCH_TIMEOUT_S", 10)
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.warning("image fetch failed url=%s: %s", url, e)
        raise AttachmentFetchError(f"Failed to fetch image: {e}") from e
    return r.content


def encode_image(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def load_inline_image(url: str) -> Tuple[str, str]:
    """Fetch and re-encode an image. Returns (mime_type, base64 data)."""
    return media_type_for(url), encode_image(fetch_image(url))
