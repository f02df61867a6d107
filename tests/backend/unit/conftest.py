from __future__ import annotations

from typing import Any, Callable

import pytest

from arcanatable.backend.directory import InMemoryCampaignDirectory
from arcanatable.backend.models import Participant
from arcanatable.backend.router import EventRouter


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def send_json(self, data: Any) -> None:
        if self.closed:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(data)

    def types(self) -> list[str]:
        return [message["type"] for message in self.sent]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [message["payload"] for message in self.sent if message["type"] == event_type]


@pytest.fixture
def directory() -> InMemoryCampaignDirectory:
    campaigns = InMemoryCampaignDirectory()
    campaigns.add_campaign("camp1", gm_id="gm-1", active_map="/maps/start.png")
    campaigns.add_campaign("camp2", gm_id="gm-2")
    return campaigns


@pytest.fixture
def router(directory: InMemoryCampaignDirectory) -> EventRouter:
    return EventRouter(directory=directory, grace_seconds=0)


@pytest.fixture
def connect() -> Callable[[str], Participant]:
    def _connect(user_id: str) -> Participant:
        return Participant(connection=FakeConnection(), user_id=user_id)

    return _connect
