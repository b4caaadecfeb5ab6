"""Logical clock advanced whenever the published recording state changes."""
from __future__ import annotations

import time


class ChangeNotifier:
    """Monotonic change marker polled by clients through ``/cctv/check``."""

    def __init__(self) -> None:
        self._marker: float | None = None

    def touch(self, now: float | None = None) -> None:
        """Advance the marker to *now* (defaults to the current time)."""

        stamp = time.time() if now is None else float(now)
        if self._marker is None or stamp > self._marker:
            self._marker = stamp

    def read(self) -> int:
        """Return the marker in milliseconds, initialising it on first use."""

        if self._marker is None:
            self._marker = time.time()
        return int(self._marker * 1000)


__all__ = ["ChangeNotifier"]
