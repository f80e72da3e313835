import re
import time
import logging
from typing import List, Optional, Protocol
from urllib.parse import urlparse, unquote

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from supabase import Client, create_client

from .errors import AttachmentError, ConfigError
from .types import Attachment

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def upload(self, key: str, data: bytes, content_type: str) -> str: ...

    def delete(self, urls: List[str]) -> bool: ...


def image_key(user_id: str, filename: str) -> str:
    """Per-user, time-unique storage key: ``<user_id>/<epoch_ms>-<safe name>``."""
    ts = int(time.time() * 1000)
    safe_name = re.sub(r"[^A-Za-z0-9_.-]+", "_", filename or "image") or "image"
    return f"{user_id}/{ts}-{safe_name}"


def upload_attachment(store: BlobStore, user_id: str, attachment: Attachment) -> str:
    """Upload an attachment and return its public URL. Raises AttachmentError."""
    key = image_key(user_id, attachment.filename)
    try:
        url = store.upload(key, attachment.content, attachment.content_type)
    except AttachmentError:
        raise
    except Exception as e:
        logger.exception("Image upload failed key=%s", key)
        raise AttachmentError(f"upload failed: {e}") from e
    if not url:
        raise AttachmentError(f"no public URL for {key}")
    return url


class SupabaseBlobStore:
    """Public bucket in Supabase Storage."""

    PUBLIC_MARKER = "/storage/v1/object/public/"

    def __init__(self, client: Client, bucket: str):
        self.supabase = client
        self.bucket_name = bucket

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        storage = self.supabase.storage.from_(self.bucket_name)
        file_opts = {"contentType": content_type, "upsert": "false"}
        storage.upload(path=key, file=data, file_options=file_opts)
        return self._extract_url_from_response(storage.get_public_url(key))

    def delete(self, urls: List[str]) -> bool:
        """Best-effort removal of objects behind public URLs."""
        paths = [p for p in (self._path_from_url(u) for u in urls) if p]
        if not paths:
            return False
        try:
            res = self.supabase.storage.from_(self.bucket_name).remove(paths)
        except Exception:
            logger.exception("Supabase remove failed bucket=%s paths=%s", self.bucket_name, paths)
            return False

        if isinstance(res, dict):
            error = res.get("error") or res.get("message")
        else:
            error = getattr(res, "error", None)
        if error:
            logger.error("Supabase remove failed: %r", error)
            return False
        return True

    def _path_from_url(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        raw_path = unquote(urlparse(url).path)
        if self.PUBLIC_MARKER not in raw_path:
            logger.debug("Not a public storage URL: %r", url)
            return None
        tail = raw_path.split(self.PUBLIC_MARKER, 1)[1]
        prefix = self.bucket_name + "/"
        if not tail.startswith(prefix):
            return None
        return tail[len(prefix):].strip("/") or None

    def _extract_url_from_response(self, val) -> str:
        if isinstance(val, str):
            return val.rstrip("?")
        if isinstance(val, dict):
            url = val.get("publicURL") or val.get("public_url") or val.get("url")
            if url:
                return url.rstrip("?")
        raise AttachmentError(f"unexpected public URL response: {val!r}")


class LocalBlobStore:
    """Blob store over Django's default_storage (MEDIA_ROOT)."""

    def __init__(self, storage=None, base_url: str = ""):
        self.storage = storage or default_storage
        self.base_url = base_url.rstrip("/")

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        stored_path = self.storage.save(f"chat-images/{key}", ContentFile(data))
        try:
            url = self.storage.url(stored_path)
        except Exception:
            url = settings.MEDIA_URL.rstrip("/") + "/" + stored_path.lstrip("/")
        return f"{self.base_url}{url}" if url.startswith("/") else url

    def delete(self, urls: List[str]) -> bool:
        media_url = settings.MEDIA_URL.rstrip("/") + "/"
        ok = True
        for url in urls:
            path = unquote(urlparse(url).path)
            if not path.startswith(media_url):
                ok = False
                continue
            name = path[len(media_url):]
            try:
                self.storage.delete(name)
            except Exception:
                logger.exception("Local blob delete failed: %s", name)
                ok = False
        return ok


def _create_supabase_client() -> Client:
    url = getattr(settings, "SUPABASE_URL", None)
    key = getattr(settings, "SUPABASE_SERVICE_ROLE_KEY", None)
    if not (url and key):
        raise ConfigError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")
    return create_client(url, key)


def default_blob_store() -> BlobStore:
    backend = getattr(settings, "CHAT_BLOB_BACKEND", "supabase")
    if backend == "local":
        return LocalBlobStore(base_url=getattr(settings, "CHAT_MEDIA_BASE_URL", ""))
    if backend == "supabase":
        return SupabaseBlobStore(_create_supabase_client(), settings.SUPABASE_BUCKET_IMAGES)
    raise ConfigError(f"unknown CHAT_BLOB_BACKEND: {backend}")
