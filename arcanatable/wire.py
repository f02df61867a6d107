"""Event names and the envelope shape spoken over the session websocket."""

from __future__ import annotations

from typing import Any


JOIN_CAMPAIGN = "join_campaign"
LEAVE_CAMPAIGN = "leave_campaign"
PING = "ping"
CHAT_MESSAGE = "chat_message"
TOKEN_SPAWNED = "token_spawned"
TOKEN_MOVED = "token_moved"
TOKEN_REMOVED = "token_removed"
MAP_SETTINGS_UPDATED = "map_settings_updated"
MAP_UPDATED = "map_updated"
PLAYER_MEASURING = "player_measuring"

SNAPSHOT = "snapshot"
PONG = "pong"
EVENT_REJECTED = "event_rejected"


def envelope(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"type": event_type, "payload": payload}
