"""Event lifecycle service - business logic for schedule events.

Handles:
- Create/update/cancel with conflict detection before time-affecting writes
- Full attendee set replacement
- Status policy helpers used by confirmation and reschedule workflows
- Listing for consultants and clinics
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from agenda.core.config import settings
from agenda.core.structured_logging import build_log_context
from agenda.db.enums import ConfirmStatus, DEFAULT_EVENT_STATUS, EventStatus
from agenda.db.models import ScheduleEvent, ScheduleEventAttendee
from agenda.schemas.relay import (
    EventCancelledPayload,
    EventCreatedPayload,
    EventUpdatedPayload,
)
from agenda.services import conflict_service, relay_service
from agenda.services.errors import (
    EventCancelledError,
    NotFoundError,
    SchedulingConflict,
    ValidationError,
    store_reads,
    unit_of_work,
)
from agenda.utils.datetime_parsing import to_utc

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "consultant_id",
        "title",
        "description",
        "start_at",
        "end_at",
        "timezone",
        "location",
        "meeting_url",
        "recurrence_rule",
        "status",
    }
)
TIME_FIELDS = frozenset({"consultant_id", "start_at", "end_at"})
_STATUS_VALUES = frozenset(s.value for s in EventStatus)


# =============================================================================
# Status policy
# =============================================================================

def rollup_status(attendees: Iterable[ScheduleEventAttendee]) -> EventStatus:
    """Confirmed iff every attendee confirmed, else pending confirmation."""
    statuses = [a.confirm_status for a in attendees]
    if statuses and all(s == ConfirmStatus.CONFIRMED.value for s in statuses):
        return EventStatus.CONFIRMED
    return EventStatus.PENDING_CONFIRMATION


def next_status_for_time_change(current_status: str, time_changed: bool) -> str:
    """A pending reschedule request becomes `rescheduled` once the time moves."""
    if current_status == EventStatus.RESCHEDULE_REQUESTED.value and time_changed:
        return EventStatus.RESCHEDULED.value
    return current_status


def interval_changed(
    event: ScheduleEvent,
    start_at: datetime,
    end_at: datetime,
) -> bool:
    return to_utc(start_at) != to_utc(event.start_at) or to_utc(end_at) != to_utc(event.end_at)


# =============================================================================
# Queries
# =============================================================================

def get_event(db: Session, event_id: UUID) -> ScheduleEvent | None:
    """Get event by ID."""
    with store_reads():
        return (
            db.query(ScheduleEvent)
            .options(selectinload(ScheduleEvent.attendees))
            .filter(ScheduleEvent.id == event_id)
            .first()
        )


def require_event(
    db: Session,
    event_id: UUID,
    *,
    lock: bool = False,
    allow_cancelled: bool = False,
) -> ScheduleEvent:
    """Load an event or raise. `lock` takes a row lock for the transaction."""
    query = db.query(ScheduleEvent).filter(ScheduleEvent.id == event_id)
    if lock:
        query = query.with_for_update()
    with store_reads():
        event = query.first()
    if not event:
        raise NotFoundError("Event not found")
    if not allow_cancelled and event.status == EventStatus.CANCELLED.value:
        raise EventCancelledError("Event is cancelled")
    return event


def list_events_for_consultant(
    db: Session,
    consultant_id: UUID | None = None,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
) -> list[ScheduleEvent]:
    """List events (with attendees) for the consultant agenda view."""
    query = db.query(ScheduleEvent).options(selectinload(ScheduleEvent.attendees))
    if consultant_id:
        query = query.filter(ScheduleEvent.consultant_id == consultant_id)
    if range_start:
        query = query.filter(ScheduleEvent.start_at >= to_utc(range_start))
    if range_end:
        query = query.filter(ScheduleEvent.end_at <= to_utc(range_end))
    with store_reads():
        return query.order_by(ScheduleEvent.start_at.asc()).all()


def list_events_for_clinic(
    db: Session,
    clinic_id: UUID,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
) -> list[tuple[ScheduleEvent, ScheduleEventAttendee]]:
    """List events a clinic attends, paired with that clinic's attendee row."""
    query = (
        db.query(ScheduleEvent, ScheduleEventAttendee)
        .join(ScheduleEventAttendee, ScheduleEventAttendee.event_id == ScheduleEvent.id)
        .filter(ScheduleEventAttendee.clinic_id == clinic_id)
    )
    if range_start:
        query = query.filter(ScheduleEvent.start_at >= to_utc(range_start))
    if range_end:
        query = query.filter(ScheduleEvent.end_at <= to_utc(range_end))
    with store_reads():
        rows = query.order_by(ScheduleEvent.start_at.asc()).all()
    return [tuple(row) for row in rows]


# =============================================================================
# Validation
# =============================================================================

def _normalize_clinic_ids(clinic_ids: Sequence[UUID]) -> list[UUID]:
    """De-duplicate while keeping order; at least one clinic is required."""
    unique = list(dict.fromkeys(clinic_ids))
    if not unique:
        raise ValidationError("Select at least one clinic")
    return unique


def _validate_interval(start_at: datetime | None, end_at: datetime | None) -> tuple[datetime, datetime]:
    if start_at is None or end_at is None:
        raise ValidationError("start_at and end_at are required")
    start_at, end_at = to_utc(start_at), to_utc(end_at)
    if start_at >= end_at:
        raise ValidationError("start_at must be before end_at")
    return start_at, end_at


def _validate_status(status: str | EventStatus) -> str:
    value = status.value if isinstance(status, EventStatus) else status
    if value not in _STATUS_VALUES:
        raise ValidationError(f"Unknown event status: {value}")
    if value == EventStatus.CANCELLED.value:
        raise ValidationError("Use cancel_event to cancel an event")
    return value


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    return title


# =============================================================================
# Lifecycle
# =============================================================================

def create_event(
    db: Session,
    *,
    consultant_id: UUID,
    title: str,
    start_at: datetime,
    end_at: datetime,
    clinic_ids: Sequence[UUID],
    description: str | None = None,
    timezone: str | None = None,
    location: str | None = None,
    meeting_url: str | None = None,
    recurrence_rule: str | None = None,
    status: str | EventStatus = DEFAULT_EVENT_STATUS,
) -> ScheduleEvent:
    """
    Create an event and its attendees (all pending).

    Raises SchedulingConflict without writing anything when the consultant
    is already booked in [start_at, end_at).
    """
    title = _clean_title(title)
    start_at, end_at = _validate_interval(start_at, end_at)
    clinic_ids = _normalize_clinic_ids(clinic_ids)
    status = _validate_status(status)

    with unit_of_work(db):
        if conflict_service.has_overlap(db, consultant_id, start_at, end_at):
            raise SchedulingConflict()

        event = ScheduleEvent(
            consultant_id=consultant_id,
            title=title,
            description=description,
            start_at=start_at,
            end_at=end_at,
            timezone=timezone or settings.DEFAULT_TIMEZONE,
            location=location,
            meeting_url=meeting_url,
            status=status,
            recurrence_rule=recurrence_rule,
            attendees=[
                ScheduleEventAttendee(
                    clinic_id=clinic_id,
                    confirm_status=ConfirmStatus.PENDING.value,
                )
                for clinic_id in clinic_ids
            ],
        )
        db.add(event)
        db.flush()

    with store_reads():
        db.refresh(event)
    logger.info(
        "Schedule event created",
        extra=build_log_context(event_id=event.id, consultant_id=consultant_id),
    )

    relay_service.emit(
        db,
        EventCreatedPayload(event_id=event.id, clinic_ids=clinic_ids),
        relay_service.clinic_recipients(clinic_ids),
    )
    return event


def apply_update(
    db: Session,
    event: ScheduleEvent,
    updates: dict[str, Any],
    clinic_ids: Sequence[UUID] | None = None,
    force_status: str | EventStatus | None = None,
) -> None:
    """
    Apply an update to a loaded event inside the caller's transaction.

    Re-runs the conflict check (excluding the event itself) when the
    consultant or interval changes. Does not commit.
    """
    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    updates = dict(updates)
    if "title" in updates:
        updates["title"] = _clean_title(updates["title"])
    if "timezone" in updates and not updates["timezone"]:
        raise ValidationError("Timezone cannot be empty")
    if "status" in updates:
        updates["status"] = _validate_status(updates["status"])
    if force_status is not None:
        updates["status"] = _validate_status(force_status)

    if TIME_FIELDS & set(updates):
        if updates.get("consultant_id", event.consultant_id) is None:
            raise ValidationError("consultant_id is required")
        start_at, end_at = _validate_interval(
            updates.get("start_at", event.start_at),
            updates.get("end_at", event.end_at),
        )
        consultant_id = updates.get("consultant_id", event.consultant_id)
        if conflict_service.has_overlap(
            db, consultant_id, start_at, end_at, exclude_event_id=event.id
        ):
            raise SchedulingConflict()
        updates["start_at"], updates["end_at"] = start_at, end_at

    for key, value in updates.items():
        setattr(event, key, value)

    if clinic_ids is not None:
        clinic_ids = _normalize_clinic_ids(clinic_ids)
        # Full replacement: every confirmation is reset.
        db.query(ScheduleEventAttendee).filter(
            ScheduleEventAttendee.event_id == event.id
        ).delete(synchronize_session="fetch")
        for clinic_id in clinic_ids:
            db.add(
                ScheduleEventAttendee(
                    event_id=event.id,
                    clinic_id=clinic_id,
                    confirm_status=ConfirmStatus.PENDING.value,
                )
            )

    db.flush()
    db.expire(event, ["attendees"])


def update_event(
    db: Session,
    event_id: UUID,
    updates: dict[str, Any],
    clinic_ids: Sequence[UUID] | None = None,
    force_status: str | EventStatus | None = None,
) -> ScheduleEvent:
    """
    Update an event; optionally replace its attendee set and force a status.

    Without an explicit status, moving an event that has a reschedule
    request pending marks it `rescheduled`.
    """
    with unit_of_work(db):
        event = require_event(db, event_id, lock=True)
        if force_status is None and "status" not in updates and TIME_FIELDS & set(updates):
            time_changed = interval_changed(
                event,
                updates.get("start_at") or event.start_at,
                updates.get("end_at") or event.end_at,
            )
            next_status = next_status_for_time_change(event.status, time_changed)
            if next_status != event.status:
                force_status = next_status
        apply_update(db, event, updates, clinic_ids=clinic_ids, force_status=force_status)

    with store_reads():
        db.refresh(event)
    logger.info(
        "Schedule event updated",
        extra=build_log_context(event_id=event.id, consultant_id=event.consultant_id),
    )
    relay_service.emit(db, EventUpdatedPayload(event_id=event.id))
    return event


def cancel_event(
    db: Session,
    event_id: UUID,
    clinic_ids: Sequence[UUID] | None = None,
) -> ScheduleEvent:
    """
    Cancel an event (terminal, idempotent).

    Clinics to notify default to the current attendee set.
    """
    with unit_of_work(db):
        event = require_event(db, event_id, lock=True, allow_cancelled=True)
        if clinic_ids is None:
            clinic_ids = [a.clinic_id for a in event.attendees]
        clinic_ids = list(dict.fromkeys(clinic_ids))
        event.status = EventStatus.CANCELLED.value

    with store_reads():
        db.refresh(event)
    logger.info(
        "Schedule event cancelled",
        extra=build_log_context(event_id=event.id, consultant_id=event.consultant_id),
    )
    relay_service.emit(
        db,
        EventCancelledPayload(event_id=event.id, clinic_ids=clinic_ids),
        relay_service.clinic_recipients(clinic_ids),
    )
    return event
