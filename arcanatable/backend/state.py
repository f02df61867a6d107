"""State builders for room snapshots."""

from __future__ import annotations

from typing import Any

from arcanatable.backend.models import MapState, Measurement, Token


def build_snapshot(
    room_id: str,
    map_state: MapState,
    tokens: list[Token],
    measurements: list[Measurement],
    members: int,
    is_game_master: bool = False,
) -> dict[str, Any]:
    """Return the full room view pushed to a participant on join."""
    return {
        "roomId": room_id,
        "isGameMaster": is_game_master,
        "members": members,
        "map": map_state.to_payload(),
        "tokens": [token.to_payload() for token in tokens],
        "measurements": [measurement.to_payload() for measurement in measurements],
    }
