"""Command-line entry point running the HouseMotion web service."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .config import DEFAULT_MAX_STATUS_BYTES, DEFAULT_PORT, ServiceConfig
from .version import APP_VERSION


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the service."""

    parser = argparse.ArgumentParser(
        prog="housemotion",
        description="HouseMotion recording housekeeping service",
    )
    parser.add_argument(
        "--store",
        help="Recording directory (default: Motion's target_dir).",
    )
    parser.add_argument(
        "--clean",
        type=int,
        help="Disk usage percentage above which the oldest recording is deleted (0 disables).",
    )
    parser.add_argument("--motion-conf", help="Path to Motion's configuration file.")
    parser.add_argument("--host", default="0.0.0.0", help="Address to listen on.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on.")
    parser.add_argument("--event-log", help="Append service events to this JSON lines file.")
    parser.add_argument(
        "--max-status-bytes",
        type=int,
        default=DEFAULT_MAX_STATUS_BYTES,
        help="Largest status document served before answering 413.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def build_config(args: argparse.Namespace) -> ServiceConfig:
    return ServiceConfig.from_env(
        storage_root=args.store,
        clean_threshold=args.clean,
        motion_conf=args.motion_conf,
        host=args.host,
        port=args.port,
        event_log=args.event_log,
        max_status_bytes=args.max_status_bytes,
    )


def run(argv: Sequence[str] | None = None) -> int:
    """Parse *argv* and serve the application until interrupted."""

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from .app import create_app

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level="debug" if args.debug else "info",
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by ``python -m house_motion`` and the console script."""

    return run(argv)


__all__ = ["build_config", "build_parser", "main", "run"]


if __name__ == "__main__":  # pragma: no cover - module behaviour
    sys.exit(main())
