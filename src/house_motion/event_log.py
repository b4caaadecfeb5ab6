"""House event log: what happened to which subject, grouped by category.

Each event names a category (``service``, ``motion``, ``storage``), the
subject it concerns (a camera, a file, the service itself), an upper-case
action and a free-form description. The most recent events are kept in
memory and, when a path is configured, mirrored to a JSON lines file.

The file holds at most twice the in-memory capacity. Once it reaches that
size it is rewritten with the retained events only.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 256


@dataclass(frozen=True, slots=True)
class LoggedEvent:
    timestamp: float
    category: str
    subject: str
    action: str
    description: str = ""
    metadata: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "timestamp": self.timestamp,
            "category": self.category,
            "subject": self.subject,
            "action": self.action,
            "description": self.description,
        }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    @classmethod
    def from_line(cls, line: str) -> "LoggedEvent | None":
        """Decode one stored line, or return None when it is unusable."""

        try:
            raw = json.loads(line)
            return cls(
                timestamp=float(raw["timestamp"]),
                category=str(raw["category"]),
                subject=str(raw["subject"]),
                action=str(raw["action"]),
                description=str(raw.get("description", "")),
                metadata=dict(raw.get("metadata") or {}),
            )
        except (ValueError, TypeError, KeyError, AttributeError):
            return None


class EventLog:
    """In-memory ring of recent events with an optional compacted file."""

    def __init__(self, path: Path | str | None = None, *, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.path = Path(path) if path is not None else None
        self._events: deque[LoggedEvent] = deque(maxlen=capacity)
        self._lines_on_disk = 0
        if self.path is not None:
            self._restore()

    def __len__(self) -> int:
        return len(self._events)

    def record(
        self,
        category: str,
        subject: str,
        action: str,
        description: str = "",
        *,
        metadata: dict[str, object | None] | None = None,
    ) -> LoggedEvent:
        event = LoggedEvent(
            timestamp=time.time(),
            category=category.strip() or "general",
            subject=subject,
            action=action,
            description=description,
            metadata={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        self._events.append(event)
        if self.path is not None:
            self._write(event)
        return event

    def recent(self, limit: int | None = None, *, category: str | None = None) -> list[LoggedEvent]:
        """Return up to *limit* events, oldest first, optionally of one category."""

        wanted = category.strip() if category else ""
        selected = [e for e in self._events if not wanted or e.category == wanted]
        if limit is None:
            return selected
        return selected[-limit:] if limit > 0 else []

    def _restore(self) -> None:
        assert self.path is not None
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    self._lines_on_disk += 1
                    event = LoggedEvent.from_line(line)
                    if event is not None:
                        self._events.append(event)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Cannot read event log %s: %s", self.path, exc)
            return
        if self._lines_on_disk > len(self._events):
            self._compact()

    def _write(self, event: LoggedEvent) -> None:
        assert self.path is not None
        if self._lines_on_disk + 1 >= 2 * self.capacity:
            self._compact()
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(_encode(event))
        except OSError as exc:
            logger.warning("Cannot append to event log %s: %s", self.path, exc)
            return
        self._lines_on_disk += 1

    def _compact(self) -> None:
        """Rewrite the file so that it holds exactly the retained events."""

        assert self.path is not None
        staging = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with staging.open("w", encoding="utf-8") as handle:
                handle.writelines(_encode(event) for event in self._events)
            os.replace(staging, self.path)
        except OSError as exc:
            logger.warning("Cannot compact event log %s: %s", self.path, exc)
            return
        self._lines_on_disk = len(self._events)
        logger.debug("Compacted event log %s to %d events", self.path, self._lines_on_disk)


def _encode(event: LoggedEvent) -> str:
    return json.dumps(event.to_dict(), separators=(",", ":")) + "\n"


__all__ = ["DEFAULT_CAPACITY", "EventLog", "LoggedEvent"]
