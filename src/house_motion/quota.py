"""Disk usage monitoring and oldest-file eviction for the storage root."""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from .catalog import walk_files

logger = logging.getLogger(__name__)

# Seed for the oldest-file search, later than any real modification time.
_FAR_FUTURE = float("inf")


def parse_threshold(value: object) -> int:
    """Return the eviction threshold percentage, 0 when unset.

    Values outside 0 to 100 are rejected with :class:`ValueError`.
    """

    if value is None or value == "":
        return 0
    try:
        numeric = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Storage clean threshold must be an integer percentage") from exc
    if numeric < 0 or numeric > 100:
        raise ValueError("Storage clean threshold must be between 0 and 100")
    return numeric


@dataclass(frozen=True, slots=True)
class DiskUsage:
    """Capacity figures for the filesystem hosting the storage root."""

    total_bytes: int
    available_bytes: int

    @property
    def used_percent(self) -> int:
        if self.total_bytes <= 0:
            return 0
        used = self.total_bytes - self.available_bytes
        return int((used * 100) // self.total_bytes)


def read_disk_usage(root: Path | str) -> DiskUsage | None:
    """Return the disk usage for *root*, or ``None`` if it cannot be queried."""

    try:
        usage = shutil.disk_usage(root)
    except OSError as exc:
        logger.debug("Disk usage query failed for %s: %s", root, exc)
        return None
    total = int(getattr(usage, "total", 0))
    free = int(getattr(usage, "free", 0))
    return DiskUsage(total_bytes=total, available_bytes=free)


def find_oldest(root: Path | str) -> Path | None:
    """Return the file with the smallest modification time below *root*."""

    oldest_time = _FAR_FUTURE
    oldest: str | None = None
    for relative, info in walk_files(root):
        if info.st_mtime < oldest_time:
            oldest_time = info.st_mtime
            oldest = relative
    if oldest is None:
        return None
    return Path(root) / oldest


class QuotaState(str, Enum):
    NORMAL = "normal"
    EVICTING = "evicting"


@dataclass(frozen=True, slots=True)
class EvictionResult:
    """Outcome of a single quota check."""

    state: QuotaState
    deleted: bool = False
    path: Path | None = None
    used_percent: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "state": self.state.value,
            "deleted": self.deleted,
        }
        if self.path is not None:
            payload["path"] = str(self.path)
        if self.used_percent is not None:
            payload["used_percent"] = self.used_percent
        if self.error:
            payload["error"] = self.error
        return payload


class QuotaMonitor:
    """Evict the oldest recording, one per check, while usage is too high.

    Removing a single file per check bounds the deletion rate to the check
    interval, which leaves consumers of the recordings a grace window.
    """

    def __init__(
        self,
        threshold_percent: int = 0,
        *,
        usage_reader: Callable[[Path | str], DiskUsage | None] = read_disk_usage,
        on_evicted: Callable[[EvictionResult], None] | None = None,
    ) -> None:
        self._threshold = parse_threshold(threshold_percent)
        self._usage_reader = usage_reader
        self._on_evicted = on_evicted
        self._state = QuotaState.NORMAL

    @property
    def threshold_percent(self) -> int:
        return self._threshold

    @property
    def state(self) -> QuotaState:
        return self._state

    def read_usage(self, root: Path | str) -> DiskUsage | None:
        return self._usage_reader(root)

    def try_evict_one(
        self,
        root: Path | str,
        usage: DiskUsage | None = None,
    ) -> EvictionResult:
        """Delete the oldest file under *root* if usage crossed the threshold."""

        if self._threshold <= 0:
            self._state = QuotaState.NORMAL
            return EvictionResult(state=self._state)
        if usage is None:
            usage = self._usage_reader(root)
            if usage is None:
                return EvictionResult(state=self._state, error="disk usage unavailable")
        used_percent = usage.used_percent
        if used_percent < self._threshold:
            self._state = QuotaState.NORMAL
            return EvictionResult(state=self._state, used_percent=used_percent)

        self._state = QuotaState.EVICTING
        oldest = find_oldest(root)
        if oldest is None:
            logger.warning(
                "Storage %s is %d%% full but holds no recording to evict",
                root,
                used_percent,
            )
            return EvictionResult(
                state=self._state,
                used_percent=used_percent,
                error="no file to evict",
            )

        try:
            oldest.unlink()
        except OSError as exc:
            logger.warning("Unable to evict %s: %s", oldest, exc)
            return EvictionResult(
                state=self._state,
                path=oldest,
                used_percent=used_percent,
                error=str(exc),
            )

        logger.info("Evicted %s (storage %d%% full)", oldest, used_percent)
        self._remove_empty_parent(Path(root), oldest.parent)
        result = EvictionResult(
            state=self._state,
            deleted=True,
            path=oldest,
            used_percent=used_percent,
        )
        if self._on_evicted is not None:
            self._on_evicted(result)
        return result

    @staticmethod
    def _remove_empty_parent(root: Path, parent: Path) -> None:
        if os.path.abspath(parent) == os.path.abspath(root):
            return
        try:
            parent.rmdir()
        except OSError:
            # Siblings remain, or the directory is already gone.
            pass


__all__ = [
    "DiskUsage",
    "EvictionResult",
    "QuotaMonitor",
    "QuotaState",
    "find_oldest",
    "parse_threshold",
    "read_disk_usage",
]
