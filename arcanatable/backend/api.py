"""FastAPI endpoints for room snapshots and websocket sync."""

from __future__ import annotations

from contextlib import asynccontextmanager
import json
import logging
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from .config import BackendSettings, load_settings
from .directory import CampaignDirectory, create_directory
from .dispatcher import RoomDispatcher
from .models import Participant
from .router import EventRouter
from .security import resolve_user_id


logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    rooms: int


class SnapshotResponse(BaseModel):
    state: dict[str, Any]


def create_app(
    directory: CampaignDirectory | None = None,
    settings: BackendSettings | None = None,
) -> FastAPI:
    app_settings = settings if settings is not None else load_settings()
    campaign_directory = directory if directory is not None else create_directory(app_settings.database_url)
    event_router = EventRouter(directory=campaign_directory, grace_seconds=app_settings.room_grace_seconds)
    dispatcher = RoomDispatcher(router=event_router, shard_count=app_settings.shard_count)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        dispatcher.start()
        try:
            yield
        finally:
            await dispatcher.stop()

    app = FastAPI(title="ArcanaTable Session API", version="0.3.0", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.event_router = event_router
    app.state.dispatcher = dispatcher

    def get_router() -> EventRouter:
        return event_router

    @app.get("/api/health", response_model=HealthResponse)
    async def health(local_router: EventRouter = Depends(get_router)) -> HealthResponse:
        return HealthResponse(status="ok", rooms=local_router.registry.room_count())

    @app.get("/api/rooms/{room_id}/snapshot", response_model=SnapshotResponse)
    async def get_snapshot(
        room_id: str,
        token: str = Query(min_length=1),
        local_router: EventRouter = Depends(get_router),
    ) -> SnapshotResponse:
        if resolve_user_id(token, app_settings.jwt_secret) is None:
            raise HTTPException(status_code=401, detail="Token invalid")
        if not local_router.registry.has_room(room_id):
            raise HTTPException(status_code=404, detail="Room not active")
        return SnapshotResponse(state=local_router.snapshot(room_id))

    @app.websocket("/ws")
    async def session_ws(websocket: WebSocket) -> None:
        token = websocket.query_params.get("token")
        user_id = resolve_user_id(token, app_settings.jwt_secret) if token else None
        if user_id is None:
            await websocket.close(code=1008)
            return

        await websocket.accept()
        participant = Participant(connection=websocket, user_id=user_id)
        logger.info("Participant %s connected as %s", participant.participant_id, user_id)

        try:
            while True:
                text = await websocket.receive_text()
                try:
                    raw: Any = json.loads(text)
                except ValueError:
                    raw = text
                await dispatcher.submit(participant, raw)
        except WebSocketDisconnect as exc:
            logger.info("Participant %s disconnected (code %s)", participant.participant_id, exc.code)
        finally:
            await dispatcher.submit_disconnect(participant)

    return app


app = create_app()
