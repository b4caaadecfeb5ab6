"""Circular log of recently reported Motion capture events."""
from __future__ import annotations

import time
from dataclasses import dataclass

from .changes import ChangeNotifier

EVENT_CAPACITY = 8


@dataclass(frozen=True, slots=True)
class EventRecord:
    """A capture event reported as completed by Motion."""

    id: str
    recorded_at: float


class EventBuffer:
    """Fixed-capacity ring of the most recently completed events.

    Event ids are expected to be fragments of the files Motion writes for
    the event (the configured movie filename includes the event id), so the
    buffer acts as an oracle telling whether a recording has been closed.
    """

    def __init__(
        self,
        notifier: ChangeNotifier | None = None,
        *,
        capacity: int = EVENT_CAPACITY,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._slots: list[EventRecord | None] = [None] * capacity
        self._cursor = 0
        self._notifier = notifier

    def record(self, event_id: str, now: float | None = None) -> EventRecord | None:
        """Store *event_id* in the next slot, overwriting the oldest write."""

        cleaned = event_id.strip() if isinstance(event_id, str) else ""
        if not cleaned:
            return None
        stamp = time.time() if now is None else float(now)
        entry = EventRecord(id=cleaned, recorded_at=stamp)
        self._slots[self._cursor] = entry
        self._cursor = (self._cursor + 1) % len(self._slots)
        if self._notifier is not None:
            self._notifier.touch(stamp)
        return entry

    def _newest_first(self):
        size = len(self._slots)
        for offset in range(1, size + 1):
            entry = self._slots[(self._cursor - offset) % size]
            if entry is not None:
                yield entry

    def match_time(self, candidate_name: str) -> float | None:
        """Return the time of the latest-written event whose id is in *candidate_name*.

        The search walks slots from the most recently written one backward
        and stops at the first containment match. After wraparound this is
        write order rather than event-time order, and an id that is a prefix
        of another may shadow it: the match is a best-effort heuristic.
        """

        for entry in self._newest_first():
            if entry.id in candidate_name:
                return entry.recorded_at
        return None

    def records(self) -> list[EventRecord]:
        """Return the buffered events, most recently written first."""

        return list(self._newest_first())

    def __len__(self) -> int:
        return sum(1 for entry in self._slots if entry is not None)


__all__ = ["EVENT_CAPACITY", "EventBuffer", "EventRecord"]
