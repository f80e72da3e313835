# proxy/views.py
import hmac
import logging

import sentry_sdk
from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import ParseError
from rest_framework.permissions import BasePermission
from rest_framework.response import Response
from rest_framework.views import exception_handler

from chat.errors import (
    AttachmentFetchError,
    ConfigError,
    UpstreamError,
    ValidationError,
)
from . import service as proxy_service

log = logging.getLogger(__name__)


class HasProxyCredential(BasePermission):
    """
    Checks the calling application's bearer token against PROXY_CLIENT_TOKEN.
    An empty setting disables the check. Preflight requests always pass.
    """
    message = "Invalid or missing application credential."

    def has_permission(self, request, view):
        if request.method == "OPTIONS":
            return True
        expected = getattr(settings, "PROXY_CLIENT_TOKEN", "")
        if not expected:
            return True
        header = request.META.get("HTTP_AUTHORIZATION", "")
        scheme, _, token = header.partition(" ")
        return scheme.lower() == "bearer" and hmac.compare_digest(token.strip(), expected)


def _error(status, error, code, details=None):
    body = {"error": error, "code": code}
    if details is not None:
        body["details"] = details
    return Response(body, status=status)


def proxy_exception_handler(exc, context):
    """DRF errors (403, 405, 415, parse) in the same {error, code} shape as the view's own."""
    response = exception_handler(exc, context)
    if response is None:
        return None
    detail = response.data.get("detail", response.data) if isinstance(response.data, dict) else response.data
    if response.status_code in (401, 403):
        code = "forbidden"
    elif response.status_code < 500:
        code = "invalid_request"
    else:
        code = "internal"
    response.data = {"error": str(detail), "code": code}
    return response


@csrf_exempt
def health(request):
    return JsonResponse({"status": "ok"}, status=200)


@api_view(["POST", "OPTIONS"])
@authentication_classes([])
@permission_classes([HasProxyCredential])
def answer(request):
    """
    Prompt-assembly proxy.

    Body: {"messages": [{"role", "content", "imageUrl"?}, ...]}
    200 {"response"}; 400 bad input / unreachable image; 500 upstream or internal.
    """
    if request.method == "OPTIONS":
        return Response(status=200)

    try:
        data = request.data
    except ParseError as e:
        return _error(400, "Invalid JSON body", "invalid_request", str(e))

    messages = data.get("messages") if hasattr(data, "get") else None

    try:
        text = proxy_service.answer(messages)

    except ValidationError as e:
        return _error(400, str(e), "invalid_request")

    except AttachmentFetchError as e:
        log.warning("Error processing image: %s", e)
        return _error(400, "Failed to process image", "attachment_fetch", str(e))

    except UpstreamError as e:
        log.error("Gemini upstream failure status=%s body=%s", e.status, e.body[:500])
        return _error(500, "Failed to get response from Gemini", "upstream", e.body or str(e))

    except ConfigError as e:
        log.error("Proxy misconfigured: %s", e)
        return _error(500, str(e), "config", str(e))

    except Exception as e:
        log.exception("Error in answer proxy")
        sentry_sdk.capture_exception(e)
        return _error(500, "Internal server error", "internal", str(e))

    return Response({"response": text}, status=200)
