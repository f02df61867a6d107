"""Command line entry point that serves the session API with uvicorn."""

from __future__ import annotations

import argparse
from dataclasses import replace
import logging

from arcanatable.backend.config import BackendSettings, load_settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ArcanaTable session server")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--room-grace-seconds", type=float, default=None)
    parser.add_argument("--shards", type=int, default=None)
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace, base: BackendSettings | None = None) -> BackendSettings:
    settings = base if base is not None else load_settings()
    overrides: dict[str, object] = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.room_grace_seconds is not None:
        overrides["room_grace_seconds"] = max(0.0, args.room_grace_seconds)
    if args.shards is not None:
        overrides["shard_count"] = max(1, args.shards)
    return replace(settings, **overrides)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = resolve_settings(args)
    configure_logging(settings.log_level)

    import uvicorn

    from arcanatable.backend.api import create_app

    logger = logging.getLogger("arcanatable")
    logger.info("Starting session server on %s:%s", settings.host, settings.port)
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0
