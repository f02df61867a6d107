"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSettings:
    jwt_secret: str
    database_url: str | None
    host: str
    port: int
    room_grace_seconds: float
    shard_count: int
    log_level: str


def load_settings() -> BackendSettings:
    port_raw = os.getenv("ARCANATABLE_PORT", "8000")
    grace_raw = os.getenv("ARCANATABLE_ROOM_GRACE_SECONDS", "30")
    shards_raw = os.getenv("ARCANATABLE_SHARDS", "4")
    return BackendSettings(
        jwt_secret=os.getenv("ARCANATABLE_JWT_SECRET", "dev-secret"),
        database_url=os.getenv("ARCANATABLE_DATABASE_URL"),
        host=os.getenv("ARCANATABLE_HOST", "127.0.0.1"),
        port=int(port_raw),
        room_grace_seconds=max(0.0, float(grace_raw)),
        shard_count=max(1, int(shards_raw)),
        log_level=os.getenv("ARCANATABLE_LOG_LEVEL", "INFO").upper(),
    )
