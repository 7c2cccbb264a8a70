"""SQLAlchemy ORM models."""

from agenda.db.models.scheduling import (
    ScheduleChangeRequest,
    ScheduleEvent,
    ScheduleEventAttendee,
    ScheduleNotification,
    OVERLAP_CONSTRAINT,
)

__all__ = [
    "OVERLAP_CONSTRAINT",
    "ScheduleChangeRequest",
    "ScheduleEvent",
    "ScheduleEventAttendee",
    "ScheduleNotification",
]
