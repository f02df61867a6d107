"""Rejection reasons raised while routing room events."""

from __future__ import annotations


MALFORMED = "malformed"
UNKNOWN_EVENT = "unknown_event"
NOT_JOINED = "not_joined"
UNAUTHORIZED = "unauthorized"
STALE = "stale"


class EventRejected(Exception):
    """An inbound event that must not reach the rest of the room."""

    reason = MALFORMED

    def __init__(self, detail: str = "", reason: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if reason is not None:
            self.reason = reason


class NotJoinedError(EventRejected):
    reason = NOT_JOINED


class UnauthorizedError(EventRejected):
    reason = UNAUTHORIZED


class StaleUpdateError(EventRejected):
    reason = STALE

    def __init__(self, stored_version: int, offered_version: int) -> None:
        super().__init__(f"version {offered_version} is not newer than {stored_version}")
        self.stored_version = stored_version
        self.offered_version = offered_version
