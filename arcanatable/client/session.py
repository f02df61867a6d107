"""Client-side peer state machine for one room.

The session applies local gestures optimistically, returns the envelope to send
for each one, and folds server traffic back into its view. Every token and map
record carries a version; echoes older than what the view already holds are
discarded, and a rejection from the server triggers a rejoin so the next
snapshot repairs the view.
"""

from __future__ import annotations

import random
from typing import Any

from arcanatable import wire
from arcanatable.grid import Point, cell_center, clamp_zoom, distance_feet, snap


DICE_SIDES = {"d4": 4, "d6": 6, "d8": 8, "d10": 10, "d12": 12, "d20": 20, "d100": 100}


def _format_modifier(modifier: int) -> str:
    if modifier > 0:
        return f" + {modifier}"
    if modifier < 0:
        return f" - {abs(modifier)}"
    return ""


class ClientSession:
    def __init__(
        self,
        room_id: str,
        user_id: str,
        username: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.room_id = room_id
        self.user_id = user_id
        self.username = username or "Unknown Player"
        self.is_game_master = False
        self.synced = False
        self.tokens: dict[tuple[str, str], dict[str, Any]] = {}
        self.map_state: dict[str, Any] = {"activeMap": None, "zoom": 1.0, "showGrid": True, "version": 0}
        self.measurements: dict[str, dict[str, Any]] = {}
        self.chat: list[dict[str, Any]] = []
        self.rejections: list[dict[str, Any]] = []
        self._rng = rng or random.Random()

    # Outbound gestures.

    def join(self) -> dict[str, Any]:
        return wire.envelope(wire.JOIN_CAMPAIGN, {"roomId": self.room_id})

    def leave(self) -> dict[str, Any]:
        self.synced = False
        return wire.envelope(wire.LEAVE_CAMPAIGN, {"roomId": self.room_id})

    def spawn_token(
        self,
        token_id: str,
        name: str,
        raw_x: float,
        raw_y: float,
        portrait: str | None = None,
        token_type: str = "player",
        current_hp: int = 100,
        max_hp: int = 100,
    ) -> dict[str, Any]:
        key = (token_id, token_type)
        existing = self.tokens.get(key)
        if existing is not None:
            record = {**existing, "x": snap(raw_x), "y": snap(raw_y), "version": existing["version"] + 1}
        else:
            record = {
                "id": token_id,
                "type": token_type,
                "name": name,
                "portrait": portrait,
                "x": snap(raw_x),
                "y": snap(raw_y),
                "ownerIds": [self.user_id],
                "createdBy": self.user_id,
                "currentHp": current_hp,
                "maxHp": max_hp,
                "version": 1,
            }
        self.tokens[key] = record
        return wire.envelope(wire.TOKEN_SPAWNED, {"roomId": self.room_id, **record})

    def move_token(self, token_id: str, raw_x: float, raw_y: float, token_type: str = "player") -> dict[str, Any] | None:
        """Drag a known token; tokens must be spawned before they can move."""
        key = (token_id, token_type)
        existing = self.tokens.get(key)
        if existing is None:
            return None
        x, y = snap(raw_x), snap(raw_y)
        if (existing["x"], existing["y"]) == (x, y):
            return None
        version = existing["version"] + 1
        self.tokens[key] = {**existing, "x": x, "y": y, "version": version}
        return wire.envelope(
            wire.TOKEN_MOVED,
            {"roomId": self.room_id, "id": token_id, "type": token_type, "x": x, "y": y, "version": version},
        )

    def remove_token(self, token_id: str, token_type: str = "player") -> dict[str, Any] | None:
        existing = self.tokens.pop((token_id, token_type), None)
        if existing is None:
            return None
        self.measurements.pop(token_id, None)
        return wire.envelope(
            wire.TOKEN_REMOVED,
            {"roomId": self.room_id, "id": token_id, "type": token_type, "version": existing["version"] + 1},
        )

    def zoom_by(self, delta: float) -> dict[str, Any] | None:
        if not self.is_game_master:
            return None
        return self._change_map(zoom=clamp_zoom(self.map_state["zoom"] + delta))

    def toggle_grid(self) -> dict[str, Any] | None:
        if not self.is_game_master:
            return None
        return self._change_map(showGrid=not self.map_state["showGrid"])

    def set_active_map(self, reference: str) -> dict[str, Any] | None:
        """Announce a map the upload service has just stored."""
        if not self.is_game_master or not reference:
            return None
        version = self.map_state["version"] + 1
        self.map_state = {**self.map_state, "activeMap": reference, "version": version}
        return wire.envelope(wire.MAP_UPDATED, {"roomId": self.room_id, "activeMap": reference, "version": version})

    def measure(self, token_id: str, raw_x: float, raw_y: float) -> dict[str, Any] | None:
        token = self._find_token(token_id)
        if token is None:
            return None
        origin = Point(x=token["x"], y=token["y"])
        target = Point(x=cell_center(raw_x), y=cell_center(raw_y))
        self.measurements[token_id] = {
            "tokenId": token_id,
            "from": origin.to_payload(),
            "to": target.to_payload(),
            "distance": distance_feet(origin, target),
            "measuredBy": self.user_id,
        }
        return wire.envelope(
            wire.PLAYER_MEASURING,
            {"roomId": self.room_id, "tokenId": token_id, "from": origin.to_payload(), "to": target.to_payload()},
        )

    def stop_measuring(self, token_id: str) -> dict[str, Any]:
        self.measurements.pop(token_id, None)
        return wire.envelope(
            wire.PLAYER_MEASURING,
            {"roomId": self.room_id, "tokenId": token_id, "from": None, "to": None},
        )

    def send_chat(self, text: str) -> dict[str, Any] | None:
        message = text.strip()
        if not message:
            return None
        return wire.envelope(
            wire.CHAT_MESSAGE,
            {"roomId": self.room_id, "username": self.username, "message": message, "type": "chat"},
        )

    def roll_dice(self, dice: str = "d20", quantity: int = 1, modifier: int = 0) -> dict[str, Any]:
        """Roll locally and announce the result; the server relays it untouched."""
        sides = DICE_SIDES.get(dice)
        if sides is None:
            raise ValueError(f"unsupported dice {dice!r}")
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        rolls = [self._rng.randint(1, sides) for _ in range(quantity)]
        total = sum(rolls) + modifier
        modifier_text = _format_modifier(modifier)
        message = (
            f"{self.username} rolled {quantity}{dice}{modifier_text}: "
            f"({' + '.join(str(roll) for roll in rolls)}){modifier_text} = {total}"
        )
        single_d20 = dice == "d20" and len(rolls) == 1
        return wire.envelope(
            wire.CHAT_MESSAGE,
            {
                "roomId": self.room_id,
                "username": self.username,
                "message": message,
                "type": "roll",
                "diceType": dice,
                "rolls": rolls,
                "isNat20": single_d20 and rolls[0] == 20,
                "isNat1": single_d20 and rolls[0] == 1,
            },
        )

    # Inbound server traffic.

    def apply(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Fold one server envelope into the view.

        Returns an envelope to send back when the view needs repair.
        """
        event_type = message.get("type")
        payload = message.get("payload") or {}
        room_id = payload.get("roomId")
        if room_id is not None and room_id != self.room_id:
            return None

        if event_type == wire.SNAPSHOT:
            self._apply_snapshot(payload)
        elif event_type in (wire.TOKEN_SPAWNED, wire.TOKEN_MOVED):
            self._apply_token(payload)
        elif event_type == wire.TOKEN_REMOVED:
            self.tokens.pop((payload["id"], payload["type"]), None)
            self.measurements.pop(payload["id"], None)
        elif event_type == wire.MAP_SETTINGS_UPDATED:
            self._apply_map(payload, ("zoom", "showGrid"))
        elif event_type == wire.MAP_UPDATED:
            self._apply_map(payload, ("activeMap",))
        elif event_type == wire.PLAYER_MEASURING:
            self._apply_measurement(payload)
        elif event_type == wire.CHAT_MESSAGE:
            self.chat.append(payload)
        elif event_type == wire.EVENT_REJECTED:
            self.rejections.append(payload)
            self.synced = False
            return self.join()
        return None

    def _apply_snapshot(self, payload: dict[str, Any]) -> None:
        self.is_game_master = bool(payload.get("isGameMaster"))
        self.map_state = dict(payload["map"])
        self.tokens = {(token["id"], token["type"]): dict(token) for token in payload.get("tokens", [])}
        self.measurements = {item["tokenId"]: dict(item) for item in payload.get("measurements", [])}
        self.synced = True

    def _apply_token(self, payload: dict[str, Any]) -> None:
        record = {key: value for key, value in payload.items() if key != "roomId"}
        key = (record["id"], record["type"])
        local = self.tokens.get(key)
        if local is not None and record.get("version", 0) < local.get("version", 0):
            return
        self.tokens[key] = record

    def _apply_map(self, payload: dict[str, Any], fields: tuple[str, ...]) -> None:
        version = payload.get("version", 0)
        if version < self.map_state["version"]:
            return
        updated = dict(self.map_state)
        for field_name in fields:
            if payload.get(field_name) is not None:
                updated[field_name] = payload[field_name]
        updated["version"] = version
        self.map_state = updated

    def _apply_measurement(self, payload: dict[str, Any]) -> None:
        token_id = payload["tokenId"]
        if payload.get("from") is None or payload.get("to") is None:
            self.measurements.pop(token_id, None)
            return
        self.measurements[token_id] = {key: value for key, value in payload.items() if key != "roomId"}

    def _change_map(self, **changes: Any) -> dict[str, Any]:
        version = self.map_state["version"] + 1
        self.map_state = {**self.map_state, **changes, "version": version}
        return wire.envelope(
            wire.MAP_SETTINGS_UPDATED,
            {"roomId": self.room_id, **changes, "version": version},
        )

    def _find_token(self, token_id: str) -> dict[str, Any] | None:
        for token in self.tokens.values():
            if token["id"] == token_id:
                return token
        return None
