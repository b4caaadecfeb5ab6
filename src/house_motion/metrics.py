"""Short time series of storage and memory availability."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


METRICS_PERIOD = 10
METRICS_DEPTH = 30  # Five minutes at METRICS_PERIOD granularity.


@dataclass(frozen=True, slots=True)
class MetricSample:
    """Resource availability captured at ``sampled_at``."""

    sampled_at: int
    storage_available_bytes: int
    memory_available_bytes: int

    def to_dict(self) -> dict[str, int]:
        return {
            "time": self.sampled_at,
            "memavailable": self.memory_available_bytes,
            "storageavailable": self.storage_available_bytes,
        }


def read_memory_available(path: str = "/proc/meminfo") -> int | None:
    """Return the host's available memory in bytes, if it can be read."""

    try:
        with open(path, "r", encoding="utf-8") as handle:
            lines = handle.readlines()
    except OSError:  # pragma: no cover - depends on platform
        return None

    for line in lines:
        if not line.startswith("MemAvailable:"):
            continue
        parts = line.split()
        if len(parts) < 2:
            return None
        try:
            available_kib = int(parts[1])
        except ValueError:
            return None
        return max(0, available_kib * 1024)
    return None


class MetricsRing:
    """Ring of samples addressed by time of day rather than insertion order.

    A sample lands in slot ``floor(now / period) mod depth``, so each slot is
    overwritten once per window and a sample older than the window is
    replaced the next time its phase comes round.
    """

    def __init__(self, *, period: int = METRICS_PERIOD, depth: int = METRICS_DEPTH) -> None:
        if period <= 0 or depth <= 0:
            raise ValueError("period and depth must be positive")
        self._period = int(period)
        self._slots: list[MetricSample | None] = [None] * depth
        self._position = 0

    def sample(
        self,
        now: float,
        storage_available: int,
        memory_available: int | None,
    ) -> MetricSample:
        index = (int(now) // self._period) % len(self._slots)
        entry = MetricSample(
            sampled_at=int(now),
            storage_available_bytes=int(storage_available),
            memory_available_bytes=int(memory_available or 0),
        )
        self._slots[index] = entry
        self._position = index
        return entry

    def render(self) -> Iterator[MetricSample]:
        """Yield the stored samples oldest first, skipping unwritten slots."""

        depth = len(self._slots)
        start = self._position + 1
        for offset in range(depth):
            entry = self._slots[(start + offset) % depth]
            if entry is not None:
                yield entry


__all__ = [
    "METRICS_DEPTH",
    "METRICS_PERIOD",
    "MetricSample",
    "MetricsRing",
    "read_memory_available",
]
