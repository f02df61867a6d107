"""Campaign lookups served by the persistence service."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Protocol


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampaignRecord:
    campaign_id: str
    gm_id: str
    active_map: str | None = None


class CampaignDirectory(Protocol):
    def get_campaign(self, room_id: str) -> CampaignRecord | None:
        """Return the campaign behind the room in a single lookup."""

    def is_game_master(self, room_id: str, user_id: str) -> bool:
        """Return True when the user runs the campaign behind the room."""

    def get_active_map(self, room_id: str) -> str | None:
        """Return the persisted active map reference for the room, if any."""


@dataclass
class InMemoryCampaignDirectory:
    def __post_init__(self) -> None:
        self._campaigns: dict[str, CampaignRecord] = {}

    def add_campaign(self, campaign_id: str, gm_id: str, active_map: str | None = None) -> CampaignRecord:
        record = CampaignRecord(campaign_id=campaign_id, gm_id=gm_id, active_map=active_map)
        self._campaigns[campaign_id] = record
        return record

    def get_campaign(self, room_id: str) -> CampaignRecord | None:
        return self._campaigns.get(room_id)

    def is_game_master(self, room_id: str, user_id: str) -> bool:
        record = self.get_campaign(room_id)
        return record is not None and record.gm_id == user_id

    def get_active_map(self, room_id: str) -> str | None:
        record = self.get_campaign(room_id)
        if record is None:
            return None
        return record.active_map or None


@dataclass
class PostgresCampaignDirectory:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def get_campaign(self, room_id: str) -> CampaignRecord | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT gm_id, active_map FROM campaigns WHERE id = %s", (room_id,))
                row = cur.fetchone()
        if row is None:
            logger.info("No campaign record for room %s", room_id)
            return None
        return CampaignRecord(campaign_id=room_id, gm_id=str(row[0]), active_map=str(row[1]) if row[1] else None)

    def is_game_master(self, room_id: str, user_id: str) -> bool:
        record = self.get_campaign(room_id)
        return record is not None and record.gm_id == user_id

    def get_active_map(self, room_id: str) -> str | None:
        record = self.get_campaign(room_id)
        return record.active_map if record is not None else None


def create_directory(database_url: str | None) -> CampaignDirectory:
    if database_url:
        return PostgresCampaignDirectory(database_url=database_url)
    return InMemoryCampaignDirectory()
