"""Token reconciliation, grid snapping and measurement distance."""

from __future__ import annotations

from dataclasses import replace

from arcanatable.backend.errors import StaleUpdateError
from arcanatable.backend.models import Measurement, Token
from arcanatable.grid import Point, distance_feet, snap


def next_version(stored: int, offered: int | None) -> int:
    if offered is None:
        return stored + 1
    if offered <= stored:
        raise StaleUpdateError(stored_version=stored, offered_version=offered)
    return offered


class TokenStateReconciler:
    """Per-room token tables keyed by (token id, token type).

    Callers must spawn a token before moving it; a move for an unknown key is a
    lost update and returns None.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[tuple[str, str], Token]] = {}

    def apply_spawn(self, room_id: str, token: Token, version: int | None = None) -> Token:
        table = self._rooms.setdefault(room_id, {})
        x, y = snap(token.x), snap(token.y)
        existing = table.get(token.key)
        if existing is not None:
            return self._move(table, existing, x, y, version)

        stored = replace(token, x=x, y=y, version=next_version(0, version))
        table[stored.key] = stored
        return stored

    def apply_move(
        self,
        room_id: str,
        token_id: str,
        token_type: str,
        position: Point,
        version: int | None = None,
    ) -> Token | None:
        table = self._rooms.get(room_id)
        if table is None:
            return None
        existing = table.get((token_id, token_type))
        if existing is None:
            return None
        return self._move(table, existing, snap(position.x), snap(position.y), version)

    def apply_remove(
        self,
        room_id: str,
        token_id: str,
        token_type: str,
        version: int | None = None,
    ) -> Token | None:
        table = self._rooms.get(room_id)
        if table is None:
            return None
        existing = table.get((token_id, token_type))
        if existing is None:
            return None
        if version is not None:
            next_version(existing.version, version)
        return table.pop(existing.key)

    def get(self, room_id: str, token_id: str, token_type: str) -> Token | None:
        return self._rooms.get(room_id, {}).get((token_id, token_type))

    def find(self, room_id: str, token_id: str) -> Token | None:
        for token in self._rooms.get(room_id, {}).values():
            if token.id == token_id:
                return token
        return None

    def snapshot(self, room_id: str) -> list[Token]:
        return list(self._rooms.get(room_id, {}).values())

    def forget(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)

    def _move(
        self,
        table: dict[tuple[str, str], Token],
        existing: Token,
        x: int,
        y: int,
        version: int | None,
    ) -> Token:
        # An unversioned move to the current cell changes nothing.
        if version is None and (existing.x, existing.y) == (x, y):
            return existing
        moved = replace(existing, x=x, y=y, version=next_version(existing.version, version))
        table[moved.key] = moved
        return moved


class MeasurementTracker:
    """Latest measurement overlay per (room, token). Nothing here is merged."""

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, Measurement]] = {}

    def update(
        self,
        room_id: str,
        token_id: str,
        origin: Point | None,
        target: Point | None,
        measured_by: str,
    ) -> Measurement | None:
        if origin is None or target is None:
            self.clear(room_id, token_id)
            return None
        measurement = Measurement(
            token_id=token_id,
            origin=origin,
            target=target,
            distance_ft=distance_feet(origin, target),
            measured_by=measured_by,
        )
        self._rooms.setdefault(room_id, {})[token_id] = measurement
        return measurement

    def clear(self, room_id: str, token_id: str) -> None:
        overlays = self._rooms.get(room_id)
        if overlays is None:
            return
        overlays.pop(token_id, None)
        if not overlays:
            self._rooms.pop(room_id, None)

    def clear_by(self, room_id: str, user_id: str) -> list[str]:
        """Drop every overlay the user is drawing and return the affected token ids."""
        token_ids = [
            measurement.token_id
            for measurement in self._rooms.get(room_id, {}).values()
            if measurement.measured_by == user_id
        ]
        for token_id in token_ids:
            self.clear(room_id, token_id)
        return token_ids

    def snapshot(self, room_id: str) -> list[Measurement]:
        return list(self._rooms.get(room_id, {}).values())

    def forget(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)
