"""Atomic store procedures for multi-row scheduling updates.

Each function is one indivisible unit against the store: it takes a row lock
on the parent event, performs all its writes, and commits once. Callers
must not wrap extra work into the same transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.db.enums import ChangeRequestStatus, ConfirmStatus, EventStatus
from agenda.db.models import ScheduleChangeRequest, ScheduleEvent, ScheduleEventAttendee
from agenda.services.errors import NotFoundError, store_reads, unit_of_work
from agenda.services.event_service import require_event, rollup_status


def _require_attendee(
    db: Session,
    event_id: UUID,
    clinic_id: UUID,
) -> ScheduleEventAttendee:
    attendee = (
        db.query(ScheduleEventAttendee)
        .filter(
            ScheduleEventAttendee.event_id == event_id,
            ScheduleEventAttendee.clinic_id == clinic_id,
        )
        .with_for_update()
        .first()
    )
    if not attendee:
        raise NotFoundError("Clinic is not an attendee of this event")
    return attendee


def confirm_schedule_event(
    db: Session,
    event_id: UUID,
    clinic_id: UUID,
    confirmed_by: UUID | None = None,
) -> ScheduleEvent:
    """
    Confirm one clinic's attendance and roll up the event status.

    Preconditions:
        - event exists and is not cancelled (NotFoundError / EventCancelledError)
        - (event_id, clinic_id) attendee row exists (NotFoundError)

    Postconditions (atomic):
        - attendee.confirm_status = confirmed, confirmed_by/confirmed_at set
        - event.status = confirmed iff every attendee is confirmed;
          otherwise unchanged
    """
    with unit_of_work(db):
        event = require_event(db, event_id, lock=True)
        attendee = _require_attendee(db, event_id, clinic_id)

        attendee.confirm_status = ConfirmStatus.CONFIRMED.value
        attendee.confirmed_by = confirmed_by
        attendee.confirmed_at = datetime.now(timezone.utc)
        db.flush()

        attendees = (
            db.query(ScheduleEventAttendee)
            .filter(ScheduleEventAttendee.event_id == event_id)
            .all()
        )
        if rollup_status(attendees) == EventStatus.CONFIRMED:
            event.status = EventStatus.CONFIRMED.value

    with store_reads():
        db.refresh(event)
    return event


def request_schedule_reschedule(
    db: Session,
    event_id: UUID,
    clinic_id: UUID,
    reason: str,
    requested_by: UUID,
    suggested_start_at: datetime | None = None,
    suggested_end_at: datetime | None = None,
) -> ScheduleChangeRequest:
    """
    Open a change request and flag the event.

    Preconditions:
        - reason is non-empty (validated by the caller)
        - event exists and is not cancelled
        - (event_id, clinic_id) attendee row exists

    Postconditions (atomic):
        - a ScheduleChangeRequest with status open exists
        - event.status = reschedule_requested
    """
    with unit_of_work(db):
        event = require_event(db, event_id, lock=True)
        _require_attendee(db, event_id, clinic_id)

        request = ScheduleChangeRequest(
            event_id=event_id,
            clinic_id=clinic_id,
            requested_by=requested_by,
            reason=reason,
            suggested_start_at=suggested_start_at,
            suggested_end_at=suggested_end_at,
            status=ChangeRequestStatus.OPEN.value,
        )
        db.add(request)
        event.status = EventStatus.RESCHEDULE_REQUESTED.value
        db.flush()

    with store_reads():
        db.refresh(request)
    return request
