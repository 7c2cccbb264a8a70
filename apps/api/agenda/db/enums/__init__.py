"""Enum definitions for application constants."""

from agenda.db.enums.scheduling import (
    ChangeRequestStatus,
    ConfirmStatus,
    DEFAULT_EVENT_STATUS,
    EventStatus,
    NotificationTarget,
    RelayEventType,
)

__all__ = [
    "ChangeRequestStatus",
    "ConfirmStatus",
    "DEFAULT_EVENT_STATUS",
    "EventStatus",
    "NotificationTarget",
    "RelayEventType",
]
