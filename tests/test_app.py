"""End-to-end tests for the cctv web API."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from house_motion.app import create_app
from house_motion.config import ServiceConfig


def _write(path: Path, mtime: float, data: bytes = b"video") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    os.utime(path, (mtime, mtime))
    return path


def build_app(tmp_path: Path, **options):
    store = tmp_path / "videos"
    store.mkdir(exist_ok=True)
    settings = {
        "storage_root": store,
        "motion_conf": tmp_path / "motion.conf",
        "hostname": "testhost",
    }
    settings.update(options)
    return create_app(ServiceConfig(**settings)), store


def _recordings(client: TestClient) -> dict[str, bool]:
    response = client.get("/cctv/status")
    assert response.status_code == 200
    return {path: stable for _, path, _, stable in response.json()["cctv"]["recordings"]}


def test_check_endpoint(tmp_path: Path) -> None:
    app, _ = build_app(tmp_path)
    with TestClient(app) as client:
        response = client.get("/cctv/check")

    assert response.status_code == 200
    payload = response.json()
    assert set(payload) == {"host", "proxy", "timestamp", "updated"}
    assert payload["host"] == "testhost"
    assert isinstance(payload["updated"], int)


def test_status_of_empty_store(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    with TestClient(app) as client:
        response = client.get("/cctv/status")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    cctv = response.json()["cctv"]
    assert cctv["path"] == str(store)
    assert cctv["recordings"] == []
    assert isinstance(cctv["metrics"], list)
    assert cctv["used"].endswith("%")
    assert cctv["feeds"] == {}


def test_status_reports_stability(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    now = time.time()
    _write(store / "a" / "1.mp4", now - 120)
    _write(store / "b" / "2.mp4", now - 5)

    with TestClient(app) as client:
        recordings = _recordings(client)

    assert recordings == {"a/1.mp4": True, "b/2.mp4": False}


def test_event_end_marks_matching_recording_stable(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    _write(store / "cam" / "EVT42-clip.mp4", time.time() - 5)

    with TestClient(app) as client:
        assert _recordings(client) == {"cam/EVT42-clip.mp4": False}
        before = client.get("/cctv/check").json()["updated"]

        response = client.get("/cctv/motion/event/end", params={"event": "EVT42", "camera": "1"})
        assert response.status_code == 200
        assert response.json() == {"status": "recorded", "event": "EVT42"}

        assert _recordings(client) == {"cam/EVT42-clip.mp4": True}
        assert client.get("/cctv/check").json()["updated"] >= before


def test_event_start_only_logs(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    _write(store / "cam" / "EVT7.mp4", time.time() - 5)

    with TestClient(app) as client:
        response = client.post("/cctv/motion/event/start", params={"event": "EVT7", "camera": "2"})
        assert response.json() == {"status": "logged"}
        assert _recordings(client) == {"cam/EVT7.mp4": False}

        entries = client.get("/cctv/log", params={"category": "motion"}).json()["entries"]

    assert entries[0]["action"] == "START"
    assert entries[0]["subject"] == "2"
    assert "event EVT7" in entries[0]["description"]


def test_default_event_route_records(tmp_path: Path) -> None:
    app, _ = build_app(tmp_path)
    with TestClient(app) as client:
        response = client.get("/cctv/motion/event", params={"event": "EVT8"})
        assert response.json()["status"] == "recorded"
        assert app.state.housekeeper.events.match_time("cam/EVT8.mp4") is not None

        assert client.get("/cctv/motion/event").json() == {"status": "logged"}


def test_file_notification_records_relative_path(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    clip = _write(store / "cam" / "20240101-clip.mp4", time.time() - 5)

    with TestClient(app) as client:
        response = client.get("/cctv/motion/file", params={"file": str(clip), "camera": "1"})

        assert response.json() == {"status": "recorded", "event": "cam/20240101-clip.mp4"}
        assert _recordings(client) == {"cam/20240101-clip.mp4": True}


def test_recording_download(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    _write(store / "a" / "1.mp4", time.time() - 100, b"movie-bytes")

    with TestClient(app) as client:
        response = client.get("/cctv/recording/a/1.mp4")
        missing = client.get("/cctv/recording/a/2.mp4")
        directory = client.get("/cctv/recording/a")

    assert response.status_code == 200
    assert response.content == b"movie-bytes"
    assert missing.status_code == 404
    assert directory.status_code == 404


def test_recording_outside_store_is_rejected(tmp_path: Path) -> None:
    app, store = build_app(tmp_path)
    secret = tmp_path / "secret.txt"
    secret.write_text("private", encoding="utf-8")
    os.symlink(secret, store / "escape.txt")

    with TestClient(app) as client:
        response = client.get("/cctv/recording/escape.txt")

    assert response.status_code == 404


def test_status_without_storage_root(tmp_path: Path) -> None:
    app = create_app(
        ServiceConfig(motion_conf=tmp_path / "absent.conf", hostname="testhost")
    )
    with TestClient(app) as client:
        response = client.get("/cctv/status")
        download = client.get("/cctv/recording/a.mp4")

    assert response.status_code == 200
    cctv = response.json()["cctv"]
    assert "path" not in cctv
    assert "recordings" not in cctv
    assert "console" in cctv
    assert download.status_code == 404


def test_storage_root_from_motion_configuration(tmp_path: Path) -> None:
    target = tmp_path / "motion-videos"
    target.mkdir()
    conf = tmp_path / "motion.conf"
    conf.write_text(f"target_dir {target}\nstream_port 9081\n", encoding="utf-8")
    app = create_app(ServiceConfig(motion_conf=conf, hostname="testhost"))

    with TestClient(app) as client:
        cctv = client.get("/cctv/status").json()["cctv"]
        entries = client.get("/cctv/log", params={"category": "storage"}).json()["entries"]

    assert cctv["path"] == str(target)
    assert entries[0]["action"] == "CHANGED"


def test_oversize_status_is_rejected(tmp_path: Path) -> None:
    app, store = build_app(tmp_path, max_status_bytes=64)
    for index in range(5):
        _write(store / f"clip-{index}.mp4", time.time() - 300)

    with TestClient(app) as client:
        response = client.get("/cctv/status")
        entries = client.get("/cctv/log", params={"category": "service"}).json()["entries"]

    assert response.status_code == 413
    assert response.json() == {"detail": "Payload too large"}
    assert entries[0]["action"] == "OVERFLOW"


def test_service_start_is_logged(tmp_path: Path) -> None:
    app, _ = build_app(tmp_path)
    with TestClient(app) as client:
        entries = client.get("/cctv/log").json()["entries"]

    assert entries[-1]["action"] == "START"
    assert entries[-1]["description"] == "ON testhost"


def test_reloaded_motion_configuration_moves_storage_root(tmp_path: Path) -> None:
    first = tmp_path / "one"
    second = tmp_path / "two"
    _write(first / "cam" / "old.mp4", time.time() - 120)
    _write(second / "cam" / "new.mp4", time.time() - 120)
    conf = tmp_path / "motion.conf"
    conf.write_text(f"target_dir {first}\n", encoding="utf-8")
    app = create_app(ServiceConfig(motion_conf=conf, hostname="testhost"))

    with TestClient(app) as client:
        before = client.get("/cctv/check").json()["updated"]
        assert _recordings(client) == {"cam/old.mp4": True}

        conf.write_text(f"target_dir {second}\n", encoding="utf-8")
        app.state.ticker.tick(time.time() + 301)

        cctv = client.get("/cctv/status").json()["cctv"]
        after = client.get("/cctv/check").json()["updated"]

    assert cctv["path"] == str(second)
    assert [path for _, path, _, _ in cctv["recordings"]] == ["cam/new.mp4"]
    assert after > before


def test_explicit_store_ignores_reloaded_target_dir(tmp_path: Path) -> None:
    conf = tmp_path / "motion.conf"
    conf.write_text(f"target_dir {tmp_path / 'elsewhere'}\n", encoding="utf-8")
    app, store = build_app(tmp_path, motion_conf=conf)

    with TestClient(app) as client:
        app.state.ticker.tick(time.time() + 301)
        cctv = client.get("/cctv/status").json()["cctv"]

    assert cctv["path"] == str(store)


def test_event_log_file_stays_bounded(tmp_path: Path) -> None:
    log_path = tmp_path / "events.jsonl"
    app, _ = build_app(tmp_path, event_log=log_path)

    with TestClient(app) as client:
        for index in range(600):
            client.get("/cctv/motion/event/start", params={"event": f"EVT{index}"})
        entries = client.get("/cctv/log", params={"limit": 1}).json()["entries"]

    assert entries[0]["description"] == "event EVT599"
    assert len(log_path.read_text(encoding="utf-8").splitlines()) < 2 * 256
