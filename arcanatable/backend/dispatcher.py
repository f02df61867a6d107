"""Per-shard inbound queues feeding the event router."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
import zlib

from arcanatable.backend.events import room_id_of
from arcanatable.backend.models import Participant
from arcanatable.backend.router import EventRouter
from arcanatable.wire import JOIN_CAMPAIGN


logger = logging.getLogger(__name__)

_DISCONNECT = object()


class _Handoff:
    """Marker queued on the old room's shard when a participant joins another room."""

    def __init__(self) -> None:
        self.done: asyncio.Future[None] = asyncio.get_running_loop().create_future()


def _is_join(raw: Any) -> bool:
    return isinstance(raw, dict) and raw.get("type") == JOIN_CAMPAIGN


class RoomDispatcher:
    """Serializes room events through one FIFO queue and one worker per shard.

    A room always lands on the same shard, so its state is only ever touched by
    that shard's worker. Each participant is routed to the shard of the room it
    last asked to join. Switching rooms first leaves the old room on the old
    shard, and the join is only queued on the new shard once that leave has
    run, so a sender's events are applied in send order across rooms.
    """

    def __init__(self, router: EventRouter, shard_count: int = 4) -> None:
        self.router = router
        self.shard_count = max(1, shard_count)
        self._queues: list[asyncio.Queue[tuple[Participant, Any]]] = []
        self._workers: list[asyncio.Task[None]] = []
        self._routes: dict[str, str] = {}
        self._stopped = False

    def shard_for(self, room_id: str | None) -> int:
        if not room_id:
            return 0
        return zlib.crc32(room_id.encode("utf-8")) % self.shard_count

    def start(self) -> None:
        self._stopped = False
        if self._workers:
            return
        self._queues = [asyncio.Queue() for _ in range(self.shard_count)]
        self._workers = [
            asyncio.create_task(self._run(shard, queue), name=f"room-shard-{shard}")
            for shard, queue in enumerate(self._queues)
        ]
        logger.info("Started %d room shard workers", self.shard_count)

    async def stop(self) -> None:
        self._stopped = True
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        for queue in self._queues:
            while not queue.empty():
                _, item = queue.get_nowait()
                if isinstance(item, _Handoff):
                    item.done.cancel()
        self._queues = []
        self._routes.clear()
        self.router.registry.close()

    async def submit(self, participant: Participant, raw: Any) -> None:
        if self._stopped:
            logger.debug("Dispatcher stopped, dropping event from participant %s", participant.participant_id)
            return
        room_id = room_id_of(raw)
        current = self._routes.get(participant.participant_id)
        if room_id is not None and _is_join(raw):
            if current is not None and current != room_id:
                await self._hand_off(participant, current)
                if self._stopped:
                    return
            self._routes[participant.participant_id] = room_id
        await self._queue(room_id or current).put((participant, raw))

    async def submit_disconnect(self, participant: Participant) -> None:
        current = self._routes.pop(participant.participant_id, None)
        if self._stopped:
            return
        await self._queue(current).put((participant, _DISCONNECT))

    async def drain(self) -> None:
        """Wait until every queued event has been processed."""
        await asyncio.gather(*(queue.join() for queue in self._queues))

    async def _hand_off(self, participant: Participant, room_id: str) -> None:
        handoff = _Handoff()
        await self._queue(room_id).put((participant, handoff))
        await handoff.done

    def _queue(self, room_id: str | None) -> asyncio.Queue[tuple[Participant, Any]]:
        self.start()
        return self._queues[self.shard_for(room_id)]

    async def _run(self, shard: int, queue: asyncio.Queue[tuple[Participant, Any]]) -> None:
        while True:
            participant, item = await queue.get()
            try:
                if item is _DISCONNECT or isinstance(item, _Handoff):
                    await self.router.disconnect(participant)
                else:
                    await self.router.handle(participant, item)
            except Exception:
                logger.exception("Shard %d failed on event from participant %s", shard, participant.participant_id)
            finally:
                if isinstance(item, _Handoff) and not item.done.done():
                    item.done.set_result(None)
                queue.task_done()
