"""Assembly of the ``/cctv/check`` and ``/cctv/status`` documents."""
from __future__ import annotations

import json
import logging
import time

from .feeds import FeedRegistry
from .housekeeping import Housekeeper

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * 1024
GB = 1024 * 1024 * 1024


class PayloadTooLargeError(RuntimeError):
    """Raised when a status document does not fit the configured limit."""

    def __init__(self, size: int, limit: int, truncated: bytes) -> None:
        super().__init__(f"Status payload of {size} bytes exceeds {limit} bytes")
        self.size = size
        self.limit = limit
        self.truncated = truncated


def format_size(value: int) -> str:
    """Return *value* in bytes as the short form used by the web UI."""

    value = max(0, int(value))
    for unit, suffix in ((GB, "GB"), (MB, "MB")):
        if value > unit:
            tenths = (value * 10) // unit
            return f"{tenths // 10}.{tenths % 10}{suffix}"
    return f"{value // KB}KB"


def _updated(housekeeper: Housekeeper, feeds: FeedRegistry | None) -> int:
    updated = housekeeper.notifier.read()
    if feeds is not None:
        updated = max(updated, feeds.check())
    return updated


def build_check_payload(
    housekeeper: Housekeeper,
    feeds: FeedRegistry | None,
    *,
    host: str,
    proxy: str = "",
    now: float | None = None,
) -> dict[str, object]:
    return {
        "host": host,
        "proxy": proxy,
        "timestamp": int(time.time() if now is None else now),
        "updated": _updated(housekeeper, feeds),
    }


def build_storage_status(
    housekeeper: Housekeeper,
    now: float | None = None,
) -> dict[str, object]:
    """Return the storage fields, or an empty mapping when no root is set."""

    root = housekeeper.storage_root
    if root is None:
        return {}
    payload: dict[str, object] = {"path": str(root)}
    usage = housekeeper.disk_usage()
    if usage is not None:
        payload["available"] = format_size(usage.available_bytes)
        payload["total"] = format_size(usage.total_bytes)
        payload["used"] = f"{usage.used_percent}%"
    payload["recordings"] = [entry.to_list() for entry in housekeeper.scan(now)]
    payload["metrics"] = [sample.to_dict() for sample in housekeeper.metrics.render()]
    return payload


def build_status_payload(
    housekeeper: Housekeeper,
    feeds: FeedRegistry | None,
    *,
    host: str,
    proxy: str = "",
    now: float | None = None,
) -> dict[str, object]:
    payload = build_check_payload(housekeeper, feeds, host=host, proxy=proxy, now=now)
    cctv: dict[str, object] = {}
    if feeds is not None:
        cctv.update(feeds.to_status())
    cctv.update(build_storage_status(housekeeper, now))
    payload["cctv"] = cctv
    return payload


def _dumps(payload: object) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def render_payload(payload: dict[str, object], limit: int) -> bytes:
    """Serialise *payload*, raising :class:`PayloadTooLargeError` past *limit*.

    The error carries a copy truncated at the last recording that still fits,
    for diagnostics.
    """

    body = _dumps(payload)
    if len(body) <= limit:
        return body

    logger.warning("Status payload overflow: %d bytes, limit %d", len(body), limit)
    cctv = payload.get("cctv")
    recordings = cctv.get("recordings") if isinstance(cctv, dict) else None
    truncated = b""
    if isinstance(recordings, list):
        low, high = 0, len(recordings) - 1
        while low <= high:
            middle = (low + high) // 2
            candidate = _dumps({**payload, "cctv": {**cctv, "recordings": recordings[:middle]}})
            if len(candidate) <= limit:
                truncated = candidate
                low = middle + 1
            else:
                high = middle - 1
    raise PayloadTooLargeError(len(body), limit, truncated)


__all__ = [
    "PayloadTooLargeError",
    "build_check_payload",
    "build_status_payload",
    "build_storage_status",
    "format_size",
    "render_payload",
]
