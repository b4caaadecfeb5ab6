"""Discovery of the cameras declared in Motion's configuration."""
from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

DEFAULT_MOTION_CONF = Path("/etc/motion/motion.conf")
DEFAULT_CONTROL_PORT = "8080"
DEFAULT_STREAM_PORT = "8081"
RELOAD_INTERVAL = 300


@dataclass(frozen=True, slots=True)
class Feed:
    """A camera managed by the local Motion service."""

    id: str
    name: str
    url: str


@dataclass(frozen=True, slots=True)
class MotionConfiguration:
    """Values extracted from the Motion configuration files."""

    control_port: str = DEFAULT_CONTROL_PORT
    stream_port: str = DEFAULT_STREAM_PORT
    target_dir: str | None = None
    cameras: tuple[tuple[str, str], ...] = ()


def _iter_settings(path: Path) -> Iterator[tuple[str, str]]:
    """Yield ``(name, value)`` pairs from a Motion style configuration file."""

    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line or line[0] in "#;":
                continue
            parts = line.split(None, 1)
            if len(parts) < 2:
                continue
            yield parts[0], parts[1].strip()


def _read_camera(path: Path) -> tuple[str, str] | None:
    camera_id: str | None = None
    camera_name: str | None = None
    try:
        for name, value in _iter_settings(path):
            if name == "camera_id":
                camera_id = value
            elif name == "camera_name":
                camera_name = value
    except OSError as exc:
        logger.warning("Unable to read camera configuration %s: %s", path, exc)
        return None
    if not camera_id or not camera_name:
        return None
    return camera_id, camera_name


def read_motion_configuration(path: Path | str) -> MotionConfiguration | None:
    """Parse Motion's main configuration file and its camera files."""

    conf_path = Path(path)
    control_port: str | None = None
    stream_port: str | None = None
    target_dir: str | None = None
    cameras: list[tuple[str, str]] = []
    try:
        for name, value in _iter_settings(conf_path):
            if name == "camera":
                camera_path = Path(value)
                if not camera_path.is_absolute():
                    camera_path = conf_path.parent / camera_path
                camera = _read_camera(camera_path)
                if camera is not None:
                    cameras.append(camera)
            elif name == "webcontrol_port":
                control_port = value
            elif name == "stream_port":
                stream_port = value
            elif name == "target_dir":
                target_dir = value
    except OSError as exc:
        logger.warning("Unable to read Motion configuration %s: %s", conf_path, exc)
        return None
    return MotionConfiguration(
        control_port=control_port or DEFAULT_CONTROL_PORT,
        stream_port=stream_port or DEFAULT_STREAM_PORT,
        target_dir=target_dir,
        cameras=tuple(cameras),
    )


class FeedRegistry:
    """Keep the list of Motion cameras, reloading the configuration periodically."""

    def __init__(
        self,
        config_path: Path | str = DEFAULT_MOTION_CONF,
        *,
        host: str | None = None,
        reload_interval: float = RELOAD_INTERVAL,
    ) -> None:
        self._config_path = Path(config_path)
        self._host = host or socket.gethostname()
        self._reload_interval = float(reload_interval)
        self._configuration = MotionConfiguration()
        self._feeds: list[Feed] = []
        self._last_load = 0.0

    @property
    def configuration(self) -> MotionConfiguration:
        return self._configuration

    @property
    def target_dir(self) -> str | None:
        return self._configuration.target_dir

    @property
    def feeds(self) -> list[Feed]:
        return list(self._feeds)

    def console(self) -> str:
        return f"{self._host}:{self._configuration.control_port}"

    def load(self, now: float | None = None) -> bool:
        """Re-read the Motion configuration. Return False if it is unreadable."""

        configuration = read_motion_configuration(self._config_path)
        self._last_load = time.time() if now is None else float(now)
        if configuration is None:
            self._configuration = MotionConfiguration()
            self._feeds = []
            return False
        self._configuration = configuration
        self._feeds = [
            Feed(
                id=camera_id,
                name=camera_name,
                url=f"http://{self._host}:{configuration.stream_port}/{camera_id}/stream",
            )
            for camera_id, camera_name in configuration.cameras
        ]
        logger.debug("Loaded %d camera(s) from %s", len(self._feeds), self._config_path)
        return True

    def background(self, now: float) -> bool:
        """Reload the configuration when it is due. Return True if reloaded."""

        if now < self._last_load + self._reload_interval:
            return False
        # TODO: query Motion's web control API for the live configuration
        # instead of re-reading the files.
        self.load(now)
        return True

    def check(self) -> int:
        """Return the time of the last configuration load in milliseconds."""

        return int(self._last_load * 1000)

    def to_status(self) -> dict[str, object]:
        return {
            "console": self.console(),
            "feeds": {feed.id: feed.url for feed in self._feeds},
        }


__all__ = [
    "DEFAULT_MOTION_CONF",
    "Feed",
    "FeedRegistry",
    "MotionConfiguration",
    "read_motion_configuration",
]
