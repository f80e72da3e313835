# chat/sync.py
from __future__ import annotations

from typing import List, Sequence

from notification.feed import ChangeEvent, DELETE, INSERT
from .types import Turn


def reconcile(turns: Sequence[Turn], event: ChangeEvent) -> List[Turn]:
    """
    Merge one live-feed event into a local turn list and return the new list.

    INSERT appends unless a turn with that id is already present (the
    optimistic local append and its echo must not both show). DELETE removes
    by id. Anything else leaves the list untouched. The input is not mutated.
    """
    current = list(turns)
    row = event.row or {}
    turn_id = str(row.get("id") or "")
    if not turn_id:
        return current

    if event.event_type == INSERT:
        if any(t.id == turn_id for t in current):
            return current
        current.append(Turn.from_row(row))
        return current

    if event.event_type == DELETE:
        return [t for t in current if t.id != turn_id]

    return current
