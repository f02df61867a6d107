"""Domain models for room state and live participants."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
import uuid

from arcanatable.grid import Point


class Connection(Protocol):
    async def send_json(self, data: Any) -> None:
        """Deliver one JSON-serializable message to the client."""


@dataclass(frozen=True)
class Token:
    id: str
    type: str
    x: float
    y: float
    name: str = ""
    portrait: str | None = None
    owner_ids: tuple[str, ...] = ()
    created_by: str | None = None
    current_hp: int | None = None
    max_hp: int | None = None
    version: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.id, self.type)

    def is_controlled_by(self, user_id: str) -> bool:
        return user_id in self.owner_ids or user_id == self.created_by

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "portrait": self.portrait,
            "x": self.x,
            "y": self.y,
            "ownerIds": list(self.owner_ids),
            "createdBy": self.created_by,
            "currentHp": self.current_hp,
            "maxHp": self.max_hp,
            "version": self.version,
        }


@dataclass(frozen=True)
class MapState:
    active_map: str | None = None
    zoom: float = 1.0
    show_grid: bool = True
    version: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "activeMap": self.active_map,
            "zoom": self.zoom,
            "showGrid": self.show_grid,
            "version": self.version,
        }


@dataclass(frozen=True)
class Measurement:
    token_id: str
    origin: Point
    target: Point
    distance_ft: int
    measured_by: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "from": self.origin.to_payload(),
            "to": self.target.to_payload(),
            "distance": self.distance_ft,
            "measuredBy": self.measured_by,
        }


@dataclass(eq=False)
class Participant:
    """One live connection. Room membership and the GM claim change on join."""

    connection: Connection
    user_id: str
    participant_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    room_id: str | None = None
    is_game_master: bool = False
