"""Tests for the service configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from house_motion.config import DEFAULT_PORT, ServiceConfig
from house_motion.feeds import DEFAULT_MOTION_CONF
from house_motion.server import build_config, build_parser


def test_defaults() -> None:
    config = ServiceConfig()

    assert config.storage_root is None
    assert config.clean_threshold == 0
    assert config.motion_conf == DEFAULT_MOTION_CONF
    assert config.port == DEFAULT_PORT
    assert config.event_log is None


def test_from_env_reads_variables() -> None:
    config = ServiceConfig.from_env(
        {
            "HOUSEMOTION_STORE": "/videos",
            "HOUSEMOTION_CLEAN": "85",
            "HOUSEMOTION_MOTION_CONF": "/tmp/motion.conf",
            "HOUSEMOTION_EVENT_LOG": "",
        }
    )

    assert config.storage_root == Path("/videos")
    assert config.clean_threshold == 85
    assert config.motion_conf == Path("/tmp/motion.conf")
    assert config.event_log is None


def test_overrides_take_precedence_over_environment() -> None:
    config = ServiceConfig.from_env(
        {"HOUSEMOTION_STORE": "/videos", "HOUSEMOTION_CLEAN": "85"},
        storage_root="/srv/recordings",
        clean_threshold=0,
        motion_conf=None,
    )

    assert config.storage_root == Path("/srv/recordings")
    assert config.clean_threshold == 0
    assert config.motion_conf == DEFAULT_MOTION_CONF


@pytest.mark.parametrize("value", ["abc", "-1", "101"])
def test_invalid_clean_threshold_rejected(value: str) -> None:
    with pytest.raises(ValueError):
        ServiceConfig(clean_threshold=value)


def test_invalid_port_rejected() -> None:
    with pytest.raises(ValueError):
        ServiceConfig(port=0)


def test_command_line_options(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HOUSEMOTION_STORE", raising=False)
    monkeypatch.setenv("HOUSEMOTION_CLEAN", "70")
    args = build_parser().parse_args(
        ["--store", "/videos", "--port", "9000", "--max-status-bytes", "4096"]
    )

    config = build_config(args)

    assert config.storage_root == Path("/videos")
    assert config.clean_threshold == 70
    assert config.port == 9000
    assert config.max_status_bytes == 4096
