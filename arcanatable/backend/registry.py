"""Room membership bookkeeping and fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import WebSocketDisconnect

from arcanatable.wire import envelope
from arcanatable.backend.models import Participant


logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps room ids to their connected participants.

    Rooms are created lazily on first join. A room whose membership reaches zero
    is evicted after ``grace_seconds`` unless someone rejoins first, so a page
    refresh does not lose in-memory map and token state.
    """

    def __init__(
        self,
        grace_seconds: float = 30.0,
        on_evict: Callable[[str], None] | None = None,
        on_drop: Callable[[Participant, str], Awaitable[None]] | None = None,
    ) -> None:
        self.grace_seconds = grace_seconds
        self._on_evict = on_evict
        self._on_drop = on_drop
        self._rooms: dict[str, dict[str, Participant]] = {}
        self._evictions: dict[str, asyncio.TimerHandle] = {}

    def join(self, room_id: str, participant: Participant) -> bool:
        """Add the participant to the room and return True if the room was created."""
        if participant.room_id is not None and participant.room_id != room_id:
            self.leave(participant)

        self._cancel_eviction(room_id)
        created = room_id not in self._rooms
        self._rooms.setdefault(room_id, {})[participant.participant_id] = participant
        participant.room_id = room_id
        if created:
            logger.info("Room %s created", room_id)
        return created

    def leave(self, participant: Participant) -> str | None:
        room_id = participant.room_id
        if room_id is None:
            return None
        participant.room_id = None
        participant.is_game_master = False

        members = self._rooms.get(room_id)
        if members is not None:
            members.pop(participant.participant_id, None)
            if not members:
                self._schedule_eviction(room_id)
        return room_id

    def members(self, room_id: str) -> list[Participant]:
        return list(self._rooms.get(room_id, {}).values())

    def member_count(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, {}))

    def has_room(self, room_id: str) -> bool:
        return room_id in self._rooms

    def room_count(self) -> int:
        return len(self._rooms)

    async def send(self, participant: Participant, event_type: str, payload: dict[str, Any]) -> bool:
        try:
            await participant.connection.send_json(envelope(event_type, payload))
        except (RuntimeError, WebSocketDisconnect):
            logger.info("Dropping stale connection %s", participant.participant_id)
            await self._drop(participant)
            return False
        return True

    async def broadcast(
        self,
        room_id: str,
        event_type: str,
        payload: dict[str, Any],
        exclude: Participant | None = None,
    ) -> int:
        message = envelope(event_type, payload)
        stale_participants: list[Participant] = []
        delivered = 0
        for participant in self.members(room_id):
            if participant is exclude:
                continue
            try:
                await participant.connection.send_json(message)
            except (RuntimeError, WebSocketDisconnect):
                stale_participants.append(participant)
                continue
            delivered += 1
        for participant in stale_participants:
            logger.info("Dropping stale connection %s from room %s", participant.participant_id, room_id)
            await self._drop(participant)
        return delivered

    async def _drop(self, participant: Participant) -> None:
        room_id = self.leave(participant)
        if room_id is not None and self._on_drop is not None:
            await self._on_drop(participant, room_id)

    def close(self) -> None:
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()

    def _schedule_eviction(self, room_id: str) -> None:
        if self.grace_seconds <= 0:
            self._evict(room_id)
            return
        self._cancel_eviction(room_id)
        loop = asyncio.get_running_loop()
        self._evictions[room_id] = loop.call_later(self.grace_seconds, self._evict, room_id)

    def _cancel_eviction(self, room_id: str) -> None:
        handle = self._evictions.pop(room_id, None)
        if handle is not None:
            handle.cancel()

    def _evict(self, room_id: str) -> None:
        self._evictions.pop(room_id, None)
        if self._rooms.get(room_id):
            return
        self._rooms.pop(room_id, None)
        logger.info("Room %s evicted", room_id)
        if self._on_evict is not None:
            self._on_evict(room_id)
