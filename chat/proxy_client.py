# chat/proxy_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import requests
from django.conf import settings

from .errors import AttachmentFetchError, NetworkError, UpstreamError, ValidationError

log = logging.getLogger(__name__)


class AnswerClient(Protocol):
    def answer(self, messages: List[Dict[str, Any]]) -> str: ...


class HttpProxyClient:
    """Calls POST <base_url>/answer with the application credential."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 90, session: Optional[requests.Session] = None):
        self.url = base_url.rstrip("/") + "/answer"
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def answer(self, messages: List[Dict[str, Any]]) -> str:
        try:
            resp = self.session.post(
                self.url,
                json={"messages": messages},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning("proxy unreachable url=%s: %s", self.url, e)
            raise NetworkError(f"proxy unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code == 200:
            text = body.get("response")
            if not isinstance(text, str):
                raise UpstreamError("proxy returned no response field", status=200, body=resp.text)
            return text

        error = body.get("error") or resp.reason or "proxy error"
        details = body.get("details") or resp.text
        if resp.status_code == 400:
            if body.get("code") == "attachment_fetch":
                raise AttachmentFetchError(f"{error}: {details}")
            raise ValidationError(error)
        raise UpstreamError(error, status=resp.status_code, body=details)


class LocalProxyClient:
    """Runs the proxy service in-process; same contract as the HTTP client."""

    def answer(self, messages: List[Dict[str, Any]]) -> str:
        from proxy import service as proxy_service

        return proxy_service.answer(messages)


def default_proxy_client() -> AnswerClient:
    base_url = getattr(settings, "CHAT_PROXY_URL", "")
    if not base_url:
        return LocalProxyClient()
    return HttpProxyClient(
        base_url,
        token=getattr(settings, "PROXY_CLIENT_TOKEN", ""),
        timeout=getattr(settings, "CHAT_PROXY_TIMEOUT_S", 90),
    )
