"""Reschedule negotiation between clinics and the consultant.

A clinic opens a change request; the consultant accepts it (moving the
event) or rejects it (restoring the confirmation-based status).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.core.structured_logging import build_log_context
from agenda.db.enums import ChangeRequestStatus, EventStatus
from agenda.db.models import ScheduleChangeRequest, ScheduleEventAttendee
from agenda.schemas.relay import (
    EventRescheduledPayload,
    EventUpdatedPayload,
    RescheduleRejectedPayload,
    RescheduleRequestedPayload,
)
from agenda.services import event_service, relay_service, schedule_procedures
from agenda.services.errors import NotFoundError, ValidationError, store_reads, unit_of_work
from agenda.utils.datetime_parsing import to_utc

logger = logging.getLogger(__name__)


# =============================================================================
# Queries
# =============================================================================

def get_change_request(db: Session, request_id: UUID) -> ScheduleChangeRequest | None:
    """Get a change request by ID."""
    with store_reads():
        return (
            db.query(ScheduleChangeRequest)
            .filter(ScheduleChangeRequest.id == request_id)
            .first()
        )


def list_change_requests(db: Session, event_id: UUID) -> list[ScheduleChangeRequest]:
    """All change requests for an event, newest first (kept for audit)."""
    with store_reads():
        return (
            db.query(ScheduleChangeRequest)
            .filter(ScheduleChangeRequest.event_id == event_id)
            .order_by(ScheduleChangeRequest.created_at.desc())
            .all()
        )


def list_open_change_requests(db: Session) -> list[ScheduleChangeRequest]:
    """Open change requests across all events, newest first."""
    with store_reads():
        return (
            db.query(ScheduleChangeRequest)
            .filter(ScheduleChangeRequest.status == ChangeRequestStatus.OPEN.value)
            .order_by(ScheduleChangeRequest.created_at.desc())
            .all()
        )


def _require_open_request(db: Session, request_id: UUID) -> ScheduleChangeRequest:
    request = (
        db.query(ScheduleChangeRequest)
        .filter(ScheduleChangeRequest.id == request_id)
        .with_for_update()
        .first()
    )
    if not request:
        raise NotFoundError("Change request not found")
    if request.status != ChangeRequestStatus.OPEN.value:
        raise ValidationError(f"Change request is not open (status: {request.status})")
    return request


# =============================================================================
# Clinic side
# =============================================================================

def request_reschedule(
    db: Session,
    event_id: UUID,
    clinic_id: UUID,
    reason: str,
    requested_by: UUID,
    suggested_start_at: datetime | None = None,
    suggested_end_at: datetime | None = None,
) -> ScheduleChangeRequest:
    """
    Open a reschedule request on behalf of an attending clinic.

    The suggested interval is optional, but when given both ends are
    required and must be ordered.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to request a reschedule")
    if (suggested_start_at is None) != (suggested_end_at is None):
        raise ValidationError("Suggested start and end must be provided together")
    if suggested_start_at is not None:
        suggested_start_at = to_utc(suggested_start_at)
        suggested_end_at = to_utc(suggested_end_at)
        if suggested_start_at >= suggested_end_at:
            raise ValidationError("Suggested start must be before suggested end")

    request = schedule_procedures.request_schedule_reschedule(
        db,
        event_id,
        clinic_id,
        reason,
        requested_by,
        suggested_start_at=suggested_start_at,
        suggested_end_at=suggested_end_at,
    )
    event = event_service.require_event(db, event_id, allow_cancelled=True)
    logger.info(
        "Reschedule requested",
        extra=build_log_context(
            event_id=event_id, clinic_id=clinic_id, request_id=request.id, actor_id=requested_by
        ),
    )

    relay_service.emit(
        db,
        RescheduleRequestedPayload(
            event_id=event_id,
            clinic_id=clinic_id,
            change_request_id=request.id,
            reason=reason,
            suggested_start_at=suggested_start_at,
            suggested_end_at=suggested_end_at,
        ),
        [relay_service.consultant_recipient(event.consultant_id, clinic_id=clinic_id)],
    )
    return request


# =============================================================================
# Consultant side
# =============================================================================

def accept_change_request(
    db: Session,
    request_id: UUID,
    handled_by: UUID,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
    clinic_ids: Sequence[UUID] | None = None,
) -> ScheduleChangeRequest:
    """
    Accept a change request and move the event.

    The new interval defaults to the clinic's suggestion, then to the
    current time. The event becomes `rescheduled` only when the interval
    actually changes; otherwise its status is left alone. The event update
    and the request resolution commit together.
    """
    if (start_at is None) != (end_at is None):
        raise ValidationError("start_at and end_at must be provided together")

    with unit_of_work(db):
        request = _require_open_request(db, request_id)
        event = event_service.require_event(db, request.event_id, lock=True)

        if start_at is None:
            start_at = request.suggested_start_at or event.start_at
            end_at = request.suggested_end_at or event.end_at

        time_changed = event_service.interval_changed(event, start_at, end_at)
        force_status = event_service.next_status_for_time_change(event.status, time_changed)
        event_service.apply_update(
            db,
            event,
            {"start_at": start_at, "end_at": end_at},
            clinic_ids=clinic_ids,
            force_status=force_status,
        )

        request.status = ChangeRequestStatus.ACCEPTED.value
        request.handled_by = handled_by
        request.handled_at = datetime.now(timezone.utc)

    with store_reads():
        db.refresh(request)
        db.refresh(event)
        attending = [
            a.clinic_id
            for a in db.query(ScheduleEventAttendee)
            .filter(ScheduleEventAttendee.event_id == event.id)
            .all()
        ]
        rescheduled = EventRescheduledPayload(
            event_id=event.id,
            change_request_id=request.id,
            start_at=event.start_at,
            end_at=event.end_at,
            reason=request.reason,
        )
    logger.info(
        "Change request accepted (time_changed=%s)",
        time_changed,
        extra=build_log_context(event_id=event.id, request_id=request.id, actor_id=handled_by),
    )
    relay_service.emit(db, EventUpdatedPayload(event_id=rescheduled.event_id))
    relay_service.emit(db, rescheduled, relay_service.clinic_recipients(attending))
    return request


def reject_change_request(
    db: Session,
    request_id: UUID,
    handled_by: UUID,
) -> ScheduleChangeRequest:
    """
    Reject a change request.

    When no other request is still open for the event, its status is
    recomputed from attendee confirmations (cancelled events are left alone).
    """
    with unit_of_work(db):
        request = _require_open_request(db, request_id)
        event = event_service.require_event(
            db, request.event_id, lock=True, allow_cancelled=True
        )

        request.status = ChangeRequestStatus.REJECTED.value
        request.handled_by = handled_by
        request.handled_at = datetime.now(timezone.utc)
        db.flush()

        still_open = db.query(
            db.query(ScheduleChangeRequest)
            .filter(
                ScheduleChangeRequest.event_id == event.id,
                ScheduleChangeRequest.status == ChangeRequestStatus.OPEN.value,
            )
            .exists()
        ).scalar()
        if not still_open and event.status != EventStatus.CANCELLED.value:
            attendees = (
                db.query(ScheduleEventAttendee)
                .filter(ScheduleEventAttendee.event_id == event.id)
                .all()
            )
            event.status = event_service.rollup_status(attendees).value

    with store_reads():
        db.refresh(request)
    logger.info(
        "Change request rejected",
        extra=build_log_context(event_id=request.event_id, request_id=request.id, actor_id=handled_by),
    )

    relay_service.emit(
        db,
        RescheduleRejectedPayload(
            event_id=request.event_id,
            clinic_id=request.clinic_id,
            change_request_id=request.id,
            reason=request.reason,
        ),
        relay_service.clinic_recipients([request.clinic_id]),
    )
    return request
