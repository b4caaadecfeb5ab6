"""FastAPI application exposing the HouseMotion ``cctv`` web API."""
from __future__ import annotations

import logging
import os
import socket
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.responses import FileResponse
from pydantic import BaseModel

from .config import ServiceConfig
from .feeds import FeedRegistry
from .housekeeping import BackgroundTicker, Housekeeper
from .quota import EvictionResult, QuotaMonitor
from .status import (
    PayloadTooLargeError,
    build_check_payload,
    build_status_payload,
    render_payload,
)
from .event_log import EventLog
from .version import APP_VERSION


class MotionNotification(BaseModel):
    """Parameters sent by the Motion event scripts."""

    event: str | None = None
    camera: str | None = None
    file: str | None = None

    def describe(self) -> str:
        parts = []
        if self.camera:
            parts.append(f"camera {self.camera}")
        if self.event:
            parts.append(f"event {self.event}")
        if self.file:
            parts.append(f"file {self.file}")
        return ", ".join(parts) if parts else "no detail"


def create_app(
    config: ServiceConfig | None = None,
    *,
    housekeeper: Housekeeper | None = None,
    feeds: FeedRegistry | None = None,
    event_log: EventLog | None = None,
) -> FastAPI:
    app = FastAPI(title="HouseMotion", version=APP_VERSION)

    logger = logging.getLogger(__name__)

    if config is None:
        config = ServiceConfig.from_env()
    host_name = config.hostname or socket.gethostname()

    if event_log is None:
        event_log = EventLog(config.event_log)

    def _log_eviction(result: EvictionResult) -> None:
        event_log.record(
            "storage",
            str(result.path),
            "DELETED",
            f"storage {result.used_percent}% full",
            metadata={"used_percent": result.used_percent},
        )

    if housekeeper is None:
        housekeeper = Housekeeper(
            config.storage_root,
            quota=QuotaMonitor(config.clean_threshold, on_evicted=_log_eviction),
        )
    if feeds is None:
        feeds = FeedRegistry(config.motion_conf, host=host_name)

    def _sync_storage_root() -> None:
        # An explicit start option pins the storage root.
        if config.storage_root is not None:
            return
        target_dir = feeds.target_dir
        if target_dir and housekeeper.set_storage_root(target_dir):
            event_log.record("storage", target_dir, "CHANGED", "new storage root")

    def _feeds_background(now: float) -> None:
        if feeds.background(now):
            _sync_storage_root()

    ticker = BackgroundTicker([_feeds_background, housekeeper.background])

    app.state.config = config
    app.state.housekeeper = housekeeper
    app.state.feeds = feeds
    app.state.event_log = event_log
    app.state.ticker = ticker

    def _relative_to_root(name: str) -> str:
        root = housekeeper.storage_root
        if root is None or not os.path.isabs(name):
            return name
        try:
            return str(Path(name).relative_to(root))
        except ValueError:
            return name

    def _notify(action: str, params: MotionNotification, *, record: bool) -> dict[str, object]:
        subject = params.camera or "motion"
        description = params.describe()
        logger.info("Motion %s: %s", action.lower(), description)
        event_log.record("motion", subject, action, description)
        if not record:
            return {"status": "logged"}
        event_id = params.event
        if not event_id and params.file:
            event_id = _relative_to_root(params.file)
        entry = housekeeper.record_event(event_id) if event_id else None
        if entry is None:
            return {"status": "logged"}
        return {"status": "recorded", "event": entry.id}

    @app.on_event("startup")
    async def startup() -> None:
        event_log.record("service", "cctv", "START", f"ON {host_name}")
        if not feeds.load():
            logger.warning("Motion configuration %s could not be read", config.motion_conf)
        _sync_storage_root()
        if housekeeper.storage_root is None:
            logger.warning("No storage root configured; storage status disabled")
        ticker.start()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await ticker.aclose()
        event_log.record("service", "cctv", "STOP", f"ON {host_name}")

    @app.get("/cctv/check")
    async def get_check() -> dict[str, object]:
        return build_check_payload(housekeeper, feeds, host=host_name, proxy=config.proxy)

    @app.get("/cctv/status")
    async def get_status() -> Response:
        # The scan runs on the event loop thread, which owns the housekeeping
        # state; other requests wait until it completes.
        payload = build_status_payload(housekeeper, feeds, host=host_name, proxy=config.proxy)
        try:
            body = render_payload(payload, config.max_status_bytes)
        except PayloadTooLargeError as exc:
            event_log.record(
                "service",
                "status",
                "OVERFLOW",
                str(exc),
                metadata={"size": exc.size, "limit": exc.limit},
            )
            raise HTTPException(status_code=413, detail="Payload too large") from exc
        return Response(content=body, media_type="application/json")

    @app.get("/cctv/recording/{relative_path:path}")
    async def get_recording(relative_path: str):
        root = housekeeper.storage_root
        if root is None:
            raise HTTPException(status_code=404, detail="Recording not found")
        resolved_root = root.resolve()
        candidate = (resolved_root / relative_path).resolve()
        try:
            candidate.relative_to(resolved_root)
        except ValueError:
            raise HTTPException(status_code=404, detail="Recording not found") from None
        if not candidate.is_file():
            raise HTTPException(status_code=404, detail="Recording not found")
        return FileResponse(candidate)

    @app.api_route("/cctv/motion/event/start", methods=["GET", "POST"])
    async def motion_event_start(params: MotionNotification = Depends()) -> dict[str, object]:
        return _notify("START", params, record=False)

    @app.api_route("/cctv/motion/event/end", methods=["GET", "POST"])
    @app.api_route("/cctv/motion/event", methods=["GET", "POST"])
    async def motion_event_end(params: MotionNotification = Depends()) -> dict[str, object]:
        return _notify("END", params, record=True)

    @app.api_route("/cctv/motion/file", methods=["GET", "POST"])
    async def motion_file(params: MotionNotification = Depends()) -> dict[str, object]:
        return _notify("FILE", params, record=True)

    @app.get("/cctv/log")
    async def get_event_log(limit: int = 100, category: str | None = None) -> dict[str, object]:
        entries = event_log.recent(limit, category=category)
        return {"entries": [entry.to_dict() for entry in reversed(entries)]}

    return app


__all__ = ["MotionNotification", "create_app"]
