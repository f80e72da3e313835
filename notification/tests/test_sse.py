import json
import threading
import time
from django.test import TestCase, override_settings
from django.urls import reverse
from notification.feed import feed, INSERT, DELETE
from notification.sse import subscription_token

SLEEP = 0.05  # small delay so the server-side generator is active before we push

class SSETests(TestCase):
    def setUp(self):
        self.base = reverse("sse-subscribe")

    def tearDown(self):
        feed.clear()

    def _url(self, table, column, value, token=None):
        token = subscription_token(table, value) if token is None else token
        return f"{self.base}?table={table}&{column}={value}&token={token}"

    @staticmethod
    def _read_chunk(gen):
        """Read one chunk from a streaming generator and normalize to str."""
        chunk = next(gen)
        return chunk.decode() if isinstance(chunk, (bytes, bytearray)) else chunk

    def _read_retry(self, gen):
        """Consume the initial retry hint line."""
        first = self._read_chunk(gen)
        self.assertIn("retry:", first)
        return first

    def _read_event(self, gen):
        """Read a 'data: ...' line and parse its JSON payload."""
        line = self._read_chunk(gen)
        self.assertTrue(line.startswith("data: "))
        return json.loads(line[len("data: "):].strip())

    def test_requires_filter_value(self):
        r = self.client.get(self.base)
        self.assertEqual(r.status_code, 400)

        r = self.client.get(f"{self.base}?table=chats")
        self.assertEqual(r.status_code, 400)

    def test_unknown_table_rejected(self):
        r = self.client.get(f"{self.base}?table=users&id=1")
        self.assertEqual(r.status_code, 400)

    def test_streams_message_insert_for_chat(self):
        r = self.client.get(self._url("messages", "chat_id", "c1"))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r["Content-Type"], "text/event-stream")

        g = iter(r.streaming_content)
        self._read_retry(g)

        def push():
            time.sleep(SLEEP)
            feed.publish("messages", INSERT, {"id": "m1", "chat_id": "c1", "role": "user", "content": "hi"})

        t = threading.Thread(target=push, daemon=True)
        t.start()

        payload = self._read_event(g)
        self.assertEqual(payload["table"], "messages")
        self.assertEqual(payload["eventType"], "INSERT")
        self.assertEqual(payload["row"]["id"], "m1")

        t.join(timeout=1)
        r.close()

    def test_clients_only_see_their_chat(self):
        r1 = self.client.get(self._url("messages", "chat_id", "c1"))
        r2 = self.client.get(self._url("messages", "chat_id", "c2"))

        g1 = iter(r1.streaming_content)
        g2 = iter(r2.streaming_content)
        self._read_retry(g1)
        self._read_retry(g2)

        def push():
            time.sleep(SLEEP)
            feed.publish("messages", INSERT, {"id": "m1", "chat_id": "c1"})
            feed.publish("messages", INSERT, {"id": "m2", "chat_id": "c2"})

        t = threading.Thread(target=push, daemon=True)
        t.start()

        ev1 = self._read_event(g1)
        ev2 = self._read_event(g2)
        t.join(timeout=1)

        self.assertEqual(ev1["row"]["id"], "m1")
        self.assertEqual(ev2["row"]["id"], "m2")
        r1.close()
        r2.close()

    def test_chat_list_stream_by_user(self):
        r = self.client.get(self._url("chats", "user_id", "u1"))
        g = iter(r.streaming_content)
        self._read_retry(g)

        def push():
            time.sleep(SLEEP)
            feed.publish("chats", DELETE, {"id": "c9", "user_id": "u1"})

        t = threading.Thread(target=push, daemon=True)
        t.start()

        ev = self._read_event(g)
        t.join(timeout=1)
        self.assertEqual(ev["eventType"], "DELETE")
        self.assertEqual(ev["row"]["id"], "c9")
        r.close()

    def test_event_ordering_is_preserved(self):
        r = self.client.get(self._url("messages", "chat_id", "order"))
        g = iter(r.streaming_content)
        self._read_retry(g)

        def push_all():
            for n in (1, 2, 3):
                feed.publish("messages", INSERT, {"id": f"m{n}", "chat_id": "order"})
        t = threading.Thread(target=push_all, daemon=True); t.start()

        ids = [self._read_event(g)["row"]["id"] for _ in range(3)]
        t.join(timeout=1)

        self.assertEqual(ids, ["m1", "m2", "m3"])
        r.close()

    def test_closing_stream_releases_subscription(self):
        r = self.client.get(self._url("messages", "chat_id", "gone"))
        g = iter(r.streaming_content)
        self._read_retry(g)
        self.assertEqual(feed.subscriber_count("messages"), 1)

        r.close()

        self.assertEqual(feed.subscriber_count("messages"), 0)

    def test_missing_or_foreign_token_is_forbidden(self):
        r = self.client.get(f"{self.base}?table=chats&user_id=u1")
        self.assertEqual(r.status_code, 403)

        r = self.client.get(self._url("chats", "user_id", "u1", token="forged"))
        self.assertEqual(r.status_code, 403)

        # a token for one user does not open another user's stream
        r = self.client.get(self._url("chats", "user_id", "u2", token=subscription_token("chats", "u1")))
        self.assertEqual(r.status_code, 403)

        # nor does a chat-list token open a message stream
        r = self.client.get(self._url("messages", "chat_id", "u1", token=subscription_token("chats", "u1")))
        self.assertEqual(r.status_code, 403)
        self.assertEqual(feed.subscriber_count(), 0)

    @override_settings(SSE_TOKEN_MAX_AGE_S=0)
    def test_expired_token_is_forbidden(self):
        token = subscription_token("messages", "c1")
        time.sleep(1.1)
        r = self.client.get(self._url("messages", "chat_id", "c1", token=token))
        self.assertEqual(r.status_code, 403)
