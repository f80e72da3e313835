import json
from queue import Queue

from django.conf import settings
from django.core import signing
from django.http import StreamingHttpResponse, HttpResponseBadRequest, HttpResponseForbidden

from .feed import feed

# table -> column a browser may filter on
SUBSCRIBABLE = {
    "messages": "chat_id",
    "chats": "user_id",
}

TOKEN_SALT = "notification.sse.subscribe"


def subscription_token(table, value):
    """Signed grant for one (table, filter value) stream, issued server-side to the owner."""
    return signing.dumps({"t": table, "v": str(value)}, salt=TOKEN_SALT)


def _token_allows(token, table, value):
    max_age = getattr(settings, "SSE_TOKEN_MAX_AGE_S", 3600)
    try:
        grant = signing.loads(token, salt=TOKEN_SALT, max_age=max_age)
    except signing.BadSignature:
        return False
    return isinstance(grant, dict) and grant.get("t") == table and grant.get("v") == str(value)


def sse_subscribe(request):
    table = request.GET.get("table") or "messages"
    column = SUBSCRIBABLE.get(table)
    if column is None:
        return HttpResponseBadRequest("unknown table")

    value = request.GET.get(column)
    if not value:
        return HttpResponseBadRequest(f"{column} required")

    if not _token_allows(request.GET.get("token", ""), table, value):
        return HttpResponseForbidden("invalid or expired token")

    def stream():
        q = Queue()
        # subscribed once the client starts reading; released when the stream closes
        subscription = feed.subscribe(table, {column: value}, lambda event: q.put(json.dumps(event.to_payload())))
        try:
            yield "retry: 3000\n\n"
            while True:
                data = q.get()
                yield f"data: {data}\n\n"
        finally:
            subscription.unsubscribe()

    resp = StreamingHttpResponse(stream(), content_type="text/event-stream")
    resp["Cache-Control"] = "no-cache"
    return resp
