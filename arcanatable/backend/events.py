"""Wire envelopes and payload schemas for room events."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from arcanatable.wire import (
    CHAT_MESSAGE,
    EVENT_REJECTED,
    JOIN_CAMPAIGN,
    LEAVE_CAMPAIGN,
    MAP_SETTINGS_UPDATED,
    MAP_UPDATED,
    PING,
    PLAYER_MEASURING,
    PONG,
    SNAPSHOT,
    TOKEN_MOVED,
    TOKEN_REMOVED,
    TOKEN_SPAWNED,
    envelope,
)


class Envelope(BaseModel):
    type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


def room_id_of(raw: Any) -> str | None:
    """Best-effort room id lookup on an unvalidated envelope, used for shard routing."""
    if not isinstance(raw, dict):
        return None
    payload = raw.get("payload")
    if not isinstance(payload, dict):
        return None
    room_id = payload.get("roomId", payload.get("campaignId"))
    if isinstance(room_id, str) and room_id:
        return room_id
    return None


class RoomPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    room_id: str = Field(min_length=1, validation_alias=AliasChoices("roomId", "campaignId", "room_id"))


class PointPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float


class JoinCampaign(RoomPayload):
    pass


class ChatMessage(RoomPayload):
    username: str | None = None
    message: str = Field(min_length=1, max_length=1000)
    type: str = "chat"
    dice_type: str | None = Field(default=None, validation_alias=AliasChoices("diceType", "dice_type"))
    rolls: list[int] | None = None
    is_nat20: bool = Field(default=False, validation_alias=AliasChoices("isNat20", "is_nat20"))
    is_nat1: bool = Field(default=False, validation_alias=AliasChoices("isNat1", "is_nat1"))

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value


class TokenSpawned(RoomPayload):
    id: str = Field(min_length=1)
    type: str = Field(default="player", min_length=1)
    x: float
    y: float
    name: str = ""
    portrait: str | None = None
    owner_ids: list[str] = Field(default_factory=list, validation_alias=AliasChoices("ownerIds", "owner_ids"))
    current_hp: int | None = Field(default=None, validation_alias=AliasChoices("currentHp", "current_hp"))
    max_hp: int | None = Field(default=None, validation_alias=AliasChoices("maxHp", "max_hp"))
    version: int | None = None


class TokenMoved(RoomPayload):
    id: str = Field(min_length=1)
    type: str = Field(default="player", min_length=1)
    x: float
    y: float
    version: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested_token(cls, data: Any) -> Any:
        # Older clients send {campaignId, token: {...}}.
        if isinstance(data, dict) and isinstance(data.get("token"), dict):
            flattened = dict(data["token"])
            flattened.update({key: value for key, value in data.items() if key != "token"})
            return flattened
        return data


class TokenRemoved(RoomPayload):
    id: str = Field(min_length=1)
    type: str = Field(default="player", min_length=1)
    version: int | None = None


class MapSettingsUpdated(RoomPayload):
    zoom: float | None = None
    show_grid: bool | None = Field(default=None, validation_alias=AliasChoices("showGrid", "show_grid"))
    version: int | None = None

    @model_validator(mode="after")
    def _requires_a_setting(self) -> "MapSettingsUpdated":
        if self.zoom is None and self.show_grid is None:
            raise ValueError("zoom or showGrid is required")
        return self


class MapUpdated(RoomPayload):
    active_map: str = Field(min_length=1, validation_alias=AliasChoices("activeMap", "active_map"))
    version: int | None = None


class PlayerMeasuring(RoomPayload):
    token_id: str = Field(min_length=1, validation_alias=AliasChoices("tokenId", "token_id"))
    origin: PointPayload | None = Field(default=None, validation_alias=AliasChoices("from", "origin"))
    target: PointPayload | None = Field(default=None, validation_alias=AliasChoices("to", "target"))
