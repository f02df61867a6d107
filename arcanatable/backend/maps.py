"""Map state reconciliation for each room."""

from __future__ import annotations

from dataclasses import replace

from arcanatable.backend.models import MapState
from arcanatable.backend.tokens import next_version
from arcanatable.grid import clamp_zoom


class MapStateReconciler:
    def __init__(self) -> None:
        self._rooms: dict[str, MapState] = {}

    def seed(self, room_id: str, reference: str | None) -> MapState:
        """Install the persisted active map for a freshly created room."""
        state = self._rooms.get(room_id)
        if state is None:
            state = MapState(active_map=reference or None)
            self._rooms[room_id] = state
        return state

    def set_active_map(self, room_id: str, reference: str, version: int | None = None) -> MapState:
        current = self.snapshot(room_id)
        state = replace(current, active_map=reference, version=next_version(current.version, version))
        self._rooms[room_id] = state
        return state

    def update_settings(
        self,
        room_id: str,
        zoom: float | None = None,
        show_grid: bool | None = None,
        version: int | None = None,
    ) -> MapState:
        current = self.snapshot(room_id)
        changes: dict[str, object] = {}
        if zoom is not None:
            changes["zoom"] = clamp_zoom(zoom)
        if show_grid is not None:
            changes["show_grid"] = show_grid
        state = replace(current, **changes, version=next_version(current.version, version))
        self._rooms[room_id] = state
        return state

    def snapshot(self, room_id: str) -> MapState:
        return self._rooms.get(room_id, MapState())

    def forget(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)
