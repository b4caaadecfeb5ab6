"""Inventory of the recordings present under the storage root."""
from __future__ import annotations

import logging
import os
import stat
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .events import EventBuffer

logger = logging.getLogger(__name__)

STABLE_AGE_SECONDS = 60


@dataclass(frozen=True, slots=True)
class RecordingEntry:
    """A recording file observed during a scan."""

    modified_at: int
    relative_path: str
    size_bytes: int
    stable: bool

    def to_list(self) -> list[object]:
        return [self.modified_at, self.relative_path, self.size_bytes, self.stable]


def walk_files(root: Path | str) -> Iterator[tuple[str, os.stat_result]]:
    """Yield ``(relative_path, stat)`` for every regular file below *root*.

    Directories are visited depth-first in the order the filesystem returns
    them. Entries that disappear or cannot be read while walking are skipped.
    """

    base = os.fspath(root)
    pending: list[tuple[str, str]] = [(base, "")]
    while pending:
        directory, prefix = pending.pop()
        try:
            with os.scandir(directory) as iterator:
                entries = list(iterator)
        except OSError as exc:
            logger.debug("Unable to list %s: %s", directory, exc)
            continue
        subdirectories: list[tuple[str, str]] = []
        for entry in entries:
            relative = f"{prefix}{entry.name}"
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirectories.append((entry.path, f"{relative}/"))
                    continue
                info = entry.stat()
            except OSError as exc:
                logger.debug("Skipping %s: %s", entry.path, exc)
                continue
            if not stat.S_ISREG(info.st_mode):
                continue
            yield relative, info
        # Reversed so that the stack pops subdirectories in listing order.
        pending.extend(reversed(subdirectories))


def is_stable(
    relative_path: str,
    modified_at: float,
    events: EventBuffer,
    now: float,
) -> bool:
    """Tell whether Motion is done writing the file at *relative_path*."""

    if modified_at < now - STABLE_AGE_SECONDS:
        return True
    event_time = events.match_time(relative_path)
    return event_time is not None and modified_at <= event_time


def scan(
    root: Path | str,
    events: EventBuffer,
    now: float | None = None,
) -> list[RecordingEntry]:
    """Return the current recording inventory under *root*."""

    reference = time.time() if now is None else float(now)
    recordings: list[RecordingEntry] = []
    for relative, info in walk_files(root):
        recordings.append(
            RecordingEntry(
                modified_at=int(info.st_mtime),
                relative_path=relative,
                size_bytes=int(info.st_size),
                stable=is_stable(relative, info.st_mtime, events, reference),
            )
        )
    return recordings


__all__ = [
    "RecordingEntry",
    "STABLE_AGE_SECONDS",
    "is_stable",
    "scan",
    "walk_files",
]
