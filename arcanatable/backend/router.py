"""Inbound event classification, reconciliation and fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from arcanatable.backend import events
from arcanatable.backend.directory import CampaignDirectory
from arcanatable.backend.errors import UNKNOWN_EVENT, EventRejected, NotJoinedError, UnauthorizedError
from arcanatable.backend.maps import MapStateReconciler
from arcanatable.backend.models import Participant, Point, Token
from arcanatable.backend.registry import SessionRegistry
from arcanatable.backend.state import build_snapshot
from arcanatable.backend.tokens import MeasurementTracker, TokenStateReconciler


logger = logging.getLogger(__name__)

Handler = Callable[[Participant, dict[str, Any]], Awaitable[None]]


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def _point(value: events.PointPayload | None) -> Point | None:
    if value is None:
        return None
    return Point(x=value.x, y=value.y)


class EventRouter:
    """Single ingress for room events.

    Every handler runs to completion before the next event of the same shard is
    read, so reconciler state has exactly one writer per room.
    """

    def __init__(self, directory: CampaignDirectory, grace_seconds: float = 30.0) -> None:
        self.directory = directory
        self.tokens = TokenStateReconciler()
        self.maps = MapStateReconciler()
        self.measurements = MeasurementTracker()
        self.registry = SessionRegistry(
            grace_seconds=grace_seconds,
            on_evict=self._forget_room,
            on_drop=self._after_leave,
        )
        self._handlers: dict[str, Handler] = {
            events.JOIN_CAMPAIGN: self._on_join,
            events.LEAVE_CAMPAIGN: self._on_leave,
            events.PING: self._on_ping,
            events.CHAT_MESSAGE: self._on_chat_message,
            events.TOKEN_SPAWNED: self._on_token_spawned,
            events.TOKEN_MOVED: self._on_token_moved,
            events.TOKEN_REMOVED: self._on_token_removed,
            events.MAP_SETTINGS_UPDATED: self._on_map_settings_updated,
            events.MAP_UPDATED: self._on_map_updated,
            events.PLAYER_MEASURING: self._on_player_measuring,
        }

    async def handle(self, participant: Participant, raw: Any) -> None:
        try:
            message = events.Envelope.model_validate(raw)
        except ValidationError as exc:
            await self._reject(participant, None, EventRejected(_describe(exc)))
            return

        handler = self._handlers.get(message.type)
        if handler is None:
            await self._reject(
                participant,
                message.type,
                EventRejected(f"unknown event {message.type!r}", reason=UNKNOWN_EVENT),
            )
            return

        try:
            await handler(participant, message.payload)
        except ValidationError as exc:
            await self._reject(participant, message.type, EventRejected(_describe(exc)))
        except EventRejected as exc:
            await self._reject(participant, message.type, exc)

    async def disconnect(self, participant: Participant) -> None:
        room_id = self.registry.leave(participant)
        if room_id is None:
            return
        await self._after_leave(participant, room_id)

    async def _after_leave(self, participant: Participant, room_id: str) -> None:
        """Clear what the departed user was drawing and tell the room."""
        user_id = participant.user_id
        logger.info(
            "Participant %s (%s) left room %s, %d remaining",
            participant.participant_id,
            user_id,
            room_id,
            self.registry.member_count(room_id),
        )
        for token_id in self.measurements.clear_by(room_id, user_id):
            await self.registry.broadcast(
                room_id,
                events.PLAYER_MEASURING,
                {"roomId": room_id, "tokenId": token_id, "from": None, "to": None, "distance": None, "measuredBy": user_id},
            )

    def snapshot(self, room_id: str, participant: Participant | None = None) -> dict[str, Any]:
        return build_snapshot(
            room_id=room_id,
            map_state=self.maps.snapshot(room_id),
            tokens=self.tokens.snapshot(room_id),
            measurements=self.measurements.snapshot(room_id),
            members=self.registry.member_count(room_id),
            is_game_master=participant.is_game_master if participant is not None else False,
        )

    async def _on_join(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.JoinCampaign.model_validate(payload)
        room_id = data.room_id
        previous_room = participant.room_id
        if previous_room is not None and previous_room != room_id:
            await self.disconnect(participant)

        # Directory lookups may block on the database.
        campaign = await asyncio.to_thread(self.directory.get_campaign, room_id)
        is_game_master = campaign is not None and campaign.gm_id == participant.user_id
        created = self.registry.join(room_id, participant)
        participant.is_game_master = is_game_master
        if created:
            self.maps.seed(room_id, campaign.active_map if campaign is not None else None)

        logger.info(
            "Participant %s (%s) joined room %s%s",
            participant.participant_id,
            participant.user_id,
            room_id,
            " as game-master" if is_game_master else "",
        )
        await self.registry.send(participant, events.SNAPSHOT, self.snapshot(room_id, participant))

    async def _on_leave(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.JoinCampaign.model_validate(payload)
        self._require_room(participant, data.room_id)
        await self.disconnect(participant)

    async def _on_ping(self, participant: Participant, payload: dict[str, Any]) -> None:
        await self.registry.send(participant, events.PONG, dict(payload))

    async def _on_chat_message(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.ChatMessage.model_validate(payload)
        self._require_room(participant, data.room_id)
        # Dice totals and breakdowns are computed by the roller and relayed as-is.
        await self.registry.broadcast(
            data.room_id,
            events.CHAT_MESSAGE,
            {
                "roomId": data.room_id,
                "userId": participant.user_id,
                "username": data.username,
                "message": data.message,
                "type": data.type,
                "diceType": data.dice_type,
                "rolls": data.rolls,
                "isNat20": data.is_nat20,
                "isNat1": data.is_nat1,
            },
        )

    async def _on_token_spawned(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.TokenSpawned.model_validate(payload)
        self._require_room(participant, data.room_id)
        existing = self.tokens.get(data.room_id, data.id, data.type)
        if existing is not None:
            self._require_control(participant, existing)

        token = Token(
            id=data.id,
            type=data.type,
            x=data.x,
            y=data.y,
            name=data.name,
            portrait=data.portrait,
            owner_ids=tuple(data.owner_ids or [participant.user_id]),
            created_by=participant.user_id,
            current_hp=data.current_hp,
            max_hp=data.max_hp,
        )
        merged = self.tokens.apply_spawn(data.room_id, token, version=data.version)
        await self.registry.broadcast(data.room_id, events.TOKEN_SPAWNED, {"roomId": data.room_id, **merged.to_payload()})

    async def _on_token_moved(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.TokenMoved.model_validate(payload)
        self._require_room(participant, data.room_id)
        existing = self.tokens.get(data.room_id, data.id, data.type)
        if existing is None:
            logger.debug("Ignoring move of unknown token %s/%s in room %s", data.id, data.type, data.room_id)
            return
        self._require_control(participant, existing)

        merged = self.tokens.apply_move(data.room_id, data.id, data.type, Point(x=data.x, y=data.y), version=data.version)
        if merged is None or merged is existing:
            return
        await self.registry.broadcast(data.room_id, events.TOKEN_MOVED, {"roomId": data.room_id, **merged.to_payload()})

    async def _on_token_removed(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.TokenRemoved.model_validate(payload)
        self._require_room(participant, data.room_id)
        existing = self.tokens.get(data.room_id, data.id, data.type)
        if existing is None:
            logger.debug("Ignoring removal of unknown token %s/%s in room %s", data.id, data.type, data.room_id)
            return
        self._require_control(participant, existing)

        removed = self.tokens.apply_remove(data.room_id, data.id, data.type, version=data.version)
        if removed is None:
            return
        self.measurements.clear(data.room_id, removed.id)
        await self.registry.broadcast(
            data.room_id,
            events.TOKEN_REMOVED,
            {"roomId": data.room_id, "id": removed.id, "type": removed.type},
        )

    async def _on_map_settings_updated(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.MapSettingsUpdated.model_validate(payload)
        self._require_room(participant, data.room_id)
        self._require_game_master(participant)

        state = self.maps.update_settings(data.room_id, zoom=data.zoom, show_grid=data.show_grid, version=data.version)
        await self.registry.broadcast(
            data.room_id,
            events.MAP_SETTINGS_UPDATED,
            {"roomId": data.room_id, "zoom": state.zoom, "showGrid": state.show_grid, "version": state.version},
        )

    async def _on_map_updated(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.MapUpdated.model_validate(payload)
        self._require_room(participant, data.room_id)
        self._require_game_master(participant)

        state = self.maps.set_active_map(data.room_id, data.active_map, version=data.version)
        logger.info("Room %s active map is now %s", data.room_id, state.active_map)
        await self.registry.broadcast(
            data.room_id,
            events.MAP_UPDATED,
            {"roomId": data.room_id, "activeMap": state.active_map, "version": state.version},
        )

    async def _on_player_measuring(self, participant: Participant, payload: dict[str, Any]) -> None:
        data = events.PlayerMeasuring.model_validate(payload)
        self._require_room(participant, data.room_id)
        if self.tokens.find(data.room_id, data.token_id) is None:
            logger.debug("Ignoring measurement from unknown token %s in room %s", data.token_id, data.room_id)
            return

        measurement = self.measurements.update(
            data.room_id,
            data.token_id,
            origin=_point(data.origin),
            target=_point(data.target),
            measured_by=participant.user_id,
        )
        if measurement is None:
            relayed = {"tokenId": data.token_id, "from": None, "to": None, "distance": None, "measuredBy": participant.user_id}
        else:
            relayed = measurement.to_payload()
        await self.registry.broadcast(
            data.room_id,
            events.PLAYER_MEASURING,
            {"roomId": data.room_id, **relayed},
            exclude=participant,
        )

    async def _reject(self, participant: Participant, event_type: str | None, exc: EventRejected) -> None:
        logger.warning(
            "Dropped %s from participant %s (%s): %s %s",
            event_type or "envelope",
            participant.participant_id,
            participant.user_id,
            exc.reason,
            exc.detail,
        )
        await self.registry.send(
            participant,
            events.EVENT_REJECTED,
            {"event": event_type, "reason": exc.reason, "detail": exc.detail},
        )

    def _require_room(self, participant: Participant, room_id: str) -> None:
        if participant.room_id != room_id:
            raise NotJoinedError(f"not joined to room {room_id}")

    def _require_game_master(self, participant: Participant) -> None:
        if not participant.is_game_master:
            raise UnauthorizedError("only the game-master may change the map")

    def _require_control(self, participant: Participant, token: Token) -> None:
        if participant.is_game_master or token.is_controlled_by(participant.user_id):
            return
        raise UnauthorizedError(f"token {token.id} is controlled by another user")

    def _forget_room(self, room_id: str) -> None:
        self.tokens.forget(room_id)
        self.maps.forget(room_id)
        self.measurements.forget(room_id)
