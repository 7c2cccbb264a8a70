"""Attendance confirmation for clinics invited to an event."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.core.structured_logging import build_log_context
from agenda.db.models import ScheduleEvent
from agenda.schemas.relay import EventConfirmedPayload
from agenda.services import relay_service, schedule_procedures

logger = logging.getLogger(__name__)


def confirm_attendance(
    db: Session,
    event_id: UUID,
    clinic_id: UUID,
    confirmed_by: UUID | None = None,
) -> ScheduleEvent:
    """
    Confirm a clinic's attendance.

    The event becomes `confirmed` once every attendee has confirmed;
    partial confirmation leaves its status unchanged.

    Raises:
        NotFoundError: event or attendee pairing does not exist
        EventCancelledError: event is cancelled
    """
    event = schedule_procedures.confirm_schedule_event(
        db, event_id, clinic_id, confirmed_by=confirmed_by
    )
    logger.info(
        "Attendance confirmed (event status=%s)",
        event.status,
        extra=build_log_context(event_id=event_id, clinic_id=clinic_id, actor_id=confirmed_by),
    )

    relay_service.emit(
        db,
        EventConfirmedPayload(event_id=event_id, clinic_id=clinic_id),
        [relay_service.consultant_recipient(event.consultant_id, clinic_id=clinic_id)],
    )
    return event
