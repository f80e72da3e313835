# notification/feed.py
"""
In-process live feed: row-level change notifications keyed by table + filter.

Subscribers register a callback for ``(table, {column: value, ...})`` and get
every published event whose row matches all filter columns. Unsubscribing is
synchronous: once ``Subscription.unsubscribe()`` returns, the callback is
never invoked again.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENT_TYPES = (INSERT, UPDATE, DELETE)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    row: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {"table": self.table, "eventType": self.event_type, "row": self.row}


Callback = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: "LiveFeed", sub_id: int, table: str, filters: Dict[str, str]):
        self._feed = feed
        self.id = sub_id
        self.table = table
        self.filters = filters

    @property
    def active(self) -> bool:
        return self._feed.is_active(self.id)

    def unsubscribe(self) -> None:
        """Remove the callback now. Safe to call more than once."""
        self._feed.remove(self.id)

    def __repr__(self) -> str:
        return f"<Subscription {self.id} {self.table} {self.filters}>"


@dataclass
class _Entry:
    table: str
    filters: Dict[str, str]
    callback: Callback


class LiveFeed:
    def __init__(self):
        self._entries: Dict[int, _Entry] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def subscribe(self, table: str, filters: Optional[Dict[str, Any]], callback: Callback) -> Subscription:
        normalized = {k: str(v) for k, v in (filters or {}).items()}
        with self._lock:
            sub_id = next(self._ids)
            self._entries[sub_id] = _Entry(table=table, filters=normalized, callback=callback)
        logger.debug("feed subscribe id=%s table=%s filters=%s", sub_id, table, normalized)
        return Subscription(self, sub_id, table, normalized)

    def remove(self, sub_id: int) -> None:
        with self._lock:
            removed = self._entries.pop(sub_id, None)
        if removed is not None:
            logger.debug("feed unsubscribe id=%s table=%s", sub_id, removed.table)

    def is_active(self, sub_id: int) -> bool:
        with self._lock:
            return sub_id in self._entries

    def subscriber_count(self, table: Optional[str] = None) -> int:
        with self._lock:
            if table is None:
                return len(self._entries)
            return sum(1 for e in self._entries.values() if e.table == table)

    def publish(self, table: str, event_type: str, row: Dict[str, Any]) -> int:
        """Deliver an event to every matching subscriber. Returns how many got it."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type: {event_type}")

        event = ChangeEvent(table=table, event_type=event_type, row=dict(row))
        with self._lock:
            targets = [
                (sub_id, e.callback)
                for sub_id, e in self._entries.items()
                if e.table == table and _matches(e.filters, row)
            ]

        delivered = 0
        for sub_id, callback in targets:
            # skip anyone who unsubscribed after the snapshot
            if not self.is_active(sub_id):
                continue
            try:
                callback(event)
                delivered += 1
            except Exception:
                logger.exception("feed callback failed id=%s table=%s", sub_id, table)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def _matches(filters: Dict[str, str], row: Dict[str, Any]) -> bool:
    return all(str(row.get(k)) == v for k, v in filters.items())


# process-wide feed used by model signals, the SSE endpoint and controllers
feed = LiveFeed()
