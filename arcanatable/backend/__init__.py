"""Backend package for the ArcanaTable session layer."""

from .config import BackendSettings, load_settings
from .directory import CampaignDirectory, InMemoryCampaignDirectory, PostgresCampaignDirectory, create_directory
from .dispatcher import RoomDispatcher
from .maps import MapStateReconciler
from .registry import SessionRegistry
from .router import EventRouter
from .security import issue_token, resolve_user_id
from .state import build_snapshot
from .tokens import MeasurementTracker, TokenStateReconciler, distance_feet, snap

__all__ = [
    "BackendSettings",
    "build_snapshot",
    "CampaignDirectory",
    "create_directory",
    "distance_feet",
    "EventRouter",
    "InMemoryCampaignDirectory",
    "issue_token",
    "load_settings",
    "MapStateReconciler",
    "MeasurementTracker",
    "PostgresCampaignDirectory",
    "resolve_user_id",
    "RoomDispatcher",
    "SessionRegistry",
    "snap",
    "TokenStateReconciler",
]
