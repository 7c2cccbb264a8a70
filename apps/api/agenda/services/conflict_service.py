"""Conflict detection for a consultant's calendar."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.db.enums import EventStatus
from agenda.db.models import ScheduleEvent
from agenda.services.errors import ValidationError, store_reads
from agenda.utils.datetime_parsing import to_utc


def _active_events_query(db: Session, consultant_id: UUID):
    return db.query(ScheduleEvent).filter(
        ScheduleEvent.consultant_id == consultant_id,
        ScheduleEvent.status != EventStatus.CANCELLED.value,
    )


def has_overlap(
    db: Session,
    consultant_id: UUID,
    start_at: datetime,
    end_at: datetime,
    exclude_event_id: UUID | None = None,
) -> bool:
    """
    Check whether [start_at, end_at) overlaps another non-cancelled event.

    Advisory only: the storage-level exclusion constraint is what actually
    rejects a racing writer.
    """
    start_at, end_at = to_utc(start_at), to_utc(end_at)
    if start_at >= end_at:
        raise ValidationError("start_at must be before end_at")

    query = _active_events_query(db, consultant_id).filter(
        ScheduleEvent.start_at < end_at,
        ScheduleEvent.end_at > start_at,
    )
    if exclude_event_id:
        query = query.filter(ScheduleEvent.id != exclude_event_id)
    with store_reads():
        return db.query(query.exists()).scalar()


def list_busy_events(
    db: Session,
    consultant_id: UUID,
    window_start: datetime,
    window_end: datetime,
) -> list[ScheduleEvent]:
    """Get non-cancelled events intersecting [window_start, window_end]."""
    with store_reads():
        return (
            _active_events_query(db, consultant_id)
            .filter(
                ScheduleEvent.start_at <= window_end,
                ScheduleEvent.end_at >= window_start,
            )
            .order_by(ScheduleEvent.start_at)
            .all()
        )
