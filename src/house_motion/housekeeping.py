"""Storage housekeeping state and the periodic background tick."""
from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Callable

from .catalog import RecordingEntry, scan
from .changes import ChangeNotifier
from .events import EventBuffer, EventRecord
from .metrics import MetricsRing, read_memory_available
from .quota import DiskUsage, EvictionResult, QuotaMonitor

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 10


class Housekeeper:
    """Owns every piece of housekeeping state for the storage root.

    All methods are meant to be called from the event loop thread only: the
    rings, the storage root and the eviction policy are never shared with
    another thread, so no locking is involved.
    """

    def __init__(
        self,
        storage_root: Path | str | None = None,
        *,
        quota: QuotaMonitor | None = None,
        notifier: ChangeNotifier | None = None,
        metrics: MetricsRing | None = None,
        memory_reader: Callable[[], int | None] = read_memory_available,
        check_interval: float = CHECK_INTERVAL,
    ) -> None:
        self.notifier = notifier if notifier is not None else ChangeNotifier()
        self.events = EventBuffer(self.notifier)
        self.metrics = metrics if metrics is not None else MetricsRing()
        self.quota = quota if quota is not None else QuotaMonitor()
        self._memory_reader = memory_reader
        self._check_interval = float(check_interval)
        self._storage_root: Path | None = None
        self._last_call = 0
        self._last_check = 0.0
        self._last_eviction: EvictionResult | None = None
        if storage_root is not None:
            self._storage_root = Path(os.path.abspath(storage_root))

    @property
    def storage_root(self) -> Path | None:
        return self._storage_root

    @property
    def last_eviction(self) -> EvictionResult | None:
        return self._last_eviction

    def set_storage_root(self, path: Path | str | None) -> bool:
        """Replace the storage root. Return True if it changed."""

        new_root = Path(os.path.abspath(path)) if path else None
        if new_root == self._storage_root:
            return False
        logger.info("Storage root changed from %s to %s", self._storage_root, new_root)
        self._storage_root = new_root
        self.notifier.touch()
        return True

    def record_event(self, event_id: str, now: float | None = None) -> EventRecord | None:
        return self.events.record(event_id, now)

    def scan(self, now: float | None = None) -> list[RecordingEntry]:
        root = self._storage_root
        if root is None:
            return []
        return scan(root, self.events, now)

    def disk_usage(self) -> DiskUsage | None:
        """Query the current disk usage of the storage root."""

        if self._storage_root is None:
            return None
        return self.quota.read_usage(self._storage_root)

    def background(self, now: float) -> None:
        """Run the periodic work, at most once per second and per check interval."""

        second = int(now)
        if self._last_call >= second:
            return
        self._last_call = second

        root = self._storage_root
        if root is None or now < self._last_check + self._check_interval:
            return
        self._last_check = now

        usage = self.quota.read_usage(root)
        if usage is None:
            return

        self._last_eviction = self.quota.try_evict_one(root, usage)
        if self._last_eviction.deleted:
            self.notifier.touch(now)
            usage = self.quota.read_usage(root) or usage

        self.metrics.sample(now, usage.available_bytes, self._memory_reader())


class BackgroundTicker:
    """Asyncio task invoking the housekeeping tick once per second."""

    def __init__(
        self,
        callbacks: list[Callable[[float], object]],
        *,
        interval: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._callbacks = list(callbacks)
        self._interval = float(interval)
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._task = loop.create_task(self._run())

    async def aclose(self) -> None:
        task = self._task
        if task is None:
            return
        assert self._stop_event is not None
        self._stop_event.set()
        try:
            await task
        finally:
            self._task = None
            self._stop_event = None

    def tick(self, now: float | None = None) -> None:
        if now is None:
            now = self._clock()
        for callback in self._callbacks:
            try:
                callback(now)
            except Exception:  # pragma: no cover
                logger.exception("Background callback %r failed", callback)

    async def _run(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            self.tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue


__all__ = ["BackgroundTicker", "CHECK_INTERVAL", "Housekeeper"]
