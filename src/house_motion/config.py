"""Configuration for the HouseMotion service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from .feeds import DEFAULT_MOTION_CONF
from .quota import parse_threshold

DEFAULT_PORT = 8088
DEFAULT_MAX_STATUS_BYTES = 1_048_576

ENV_STORE = "HOUSEMOTION_STORE"
ENV_CLEAN = "HOUSEMOTION_CLEAN"
ENV_MOTION_CONF = "HOUSEMOTION_MOTION_CONF"
ENV_EVENT_LOG = "HOUSEMOTION_EVENT_LOG"


def _parse_optional_path(value: Any) -> Path | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return Path(text)


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Start options of the service.

    ``storage_root`` pins the recording directory. When it is ``None`` the
    ``target_dir`` declared in Motion's configuration is used instead, and
    followed when that configuration changes.
    """

    storage_root: Path | None = None
    clean_threshold: int = 0
    motion_conf: Path = DEFAULT_MOTION_CONF
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    event_log: Path | None = None
    max_status_bytes: int = DEFAULT_MAX_STATUS_BYTES
    hostname: str | None = None
    proxy: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "clean_threshold", parse_threshold(self.clean_threshold))
        object.__setattr__(self, "storage_root", _parse_optional_path(self.storage_root))
        object.__setattr__(self, "event_log", _parse_optional_path(self.event_log))
        object.__setattr__(self, "motion_conf", Path(self.motion_conf))
        if not (0 < int(self.port) < 65536):
            raise ValueError("Port must be between 1 and 65535")
        object.__setattr__(self, "port", int(self.port))
        if int(self.max_status_bytes) <= 0:
            raise ValueError("max_status_bytes must be positive")
        object.__setattr__(self, "max_status_bytes", int(self.max_status_bytes))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "ServiceConfig":
        """Build a configuration from ``HOUSEMOTION_*`` variables and *overrides*."""

        env = os.environ if environ is None else environ
        config = cls(
            storage_root=env.get(ENV_STORE),
            clean_threshold=env.get(ENV_CLEAN),
            motion_conf=env.get(ENV_MOTION_CONF) or DEFAULT_MOTION_CONF,
            event_log=env.get(ENV_EVENT_LOG),
        )
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        return replace(config, **cleaned) if cleaned else config


__all__ = [
    "DEFAULT_MAX_STATUS_BYTES",
    "DEFAULT_PORT",
    "ServiceConfig",
]
