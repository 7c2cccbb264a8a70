"""Schedule router - API endpoints for the shared agenda.

Consultant-facing endpoints:
- Event create/update/cancel and agenda listing
- Change request review (accept/reject)
- Slot suggestions

Clinic-facing endpoints:
- Clinic agenda listing
- Attendance confirmation
- Reschedule requests
"""

from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from agenda.core.config import settings
from agenda.core.deps import get_actor_id, get_db, require_csrf_header
from agenda.schemas.schedule import (
    AttendanceConfirm,
    ChangeRequestAccept,
    ChangeRequestCreate,
    ChangeRequestRead,
    ClinicEventRead,
    EventCancel,
    EventCreate,
    EventRead,
    EventUpdate,
    EventWithAttendeesRead,
    SlotRead,
    SlotSuggestRequest,
)
from agenda.services import (
    attendance_service,
    event_service,
    reschedule_service,
    slot_service,
)

router = APIRouter()


# =============================================================================
# Helper Functions
# =============================================================================

def _clinic_event_to_read(event, attendee) -> ClinicEventRead:
    """Merge an event with one clinic's attendee row."""
    data = EventRead.model_validate(event).model_dump()
    return ClinicEventRead(
        **data,
        confirm_status=attendee.confirm_status,
        confirmed_at=attendee.confirmed_at,
    )


def _working_hours_from_request(data: SlotSuggestRequest) -> slot_service.WorkingHours:
    if data.working_hours:
        return slot_service.WorkingHours(
            days=frozenset(data.working_hours.days),
            start=data.working_hours.start,
            end=data.working_hours.end,
            timezone=data.working_hours.timezone,
        )
    return slot_service.WorkingHours(
        days=frozenset(settings.working_days_list),
        start=settings.working_start_time,
        end=settings.working_end_time,
        timezone=settings.DEFAULT_TIMEZONE,
    )


# =============================================================================
# Events
# =============================================================================

@router.get("/events", response_model=list[EventWithAttendeesRead])
def list_events(
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    consultant_id: UUID | None = Query(None),
    range_start: datetime | None = Query(None),
    range_end: datetime | None = Query(None),
):
    """List events for the consultant agenda (all consultants when omitted)."""
    return event_service.list_events_for_consultant(
        db,
        consultant_id=consultant_id,
        range_start=range_start,
        range_end=range_end,
    )


@router.get("/clinics/{clinic_id}/events", response_model=list[ClinicEventRead])
def list_clinic_events(
    clinic_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    range_start: datetime | None = Query(None),
    range_end: datetime | None = Query(None),
):
    """List events a clinic attends, with that clinic's confirmation."""
    rows = event_service.list_events_for_clinic(
        db, clinic_id, range_start=range_start, range_end=range_end
    )
    return [_clinic_event_to_read(event, attendee) for event, attendee in rows]


@router.post(
    "/events",
    response_model=EventWithAttendeesRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_event(
    data: EventCreate,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Create an event; 409 when the consultant is already booked."""
    return event_service.create_event(
        db,
        consultant_id=data.consultant_id,
        title=data.title,
        start_at=data.start_at,
        end_at=data.end_at,
        clinic_ids=data.clinic_ids,
        description=data.description,
        timezone=data.timezone,
        location=data.location,
        meeting_url=data.meeting_url,
        recurrence_rule=data.recurrence_rule,
    )


@router.get("/events/{event_id}", response_model=EventWithAttendeesRead)
def get_event(
    event_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Get an event with its attendees."""
    event = event_service.get_event(db, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.patch(
    "/events/{event_id}",
    response_model=EventWithAttendeesRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_event(
    event_id: UUID,
    data: EventUpdate,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """
    Update an event. Passing clinic_ids replaces the attendee set.

    Moving an event with a pending reschedule request marks it rescheduled
    unless force_status is given.
    """
    updates = data.model_dump(exclude_unset=True, exclude={"clinic_ids", "force_status"})
    return event_service.update_event(
        db,
        event_id,
        updates,
        clinic_ids=data.clinic_ids,
        force_status=data.force_status,
    )


@router.post(
    "/events/{event_id}/cancel",
    response_model=EventWithAttendeesRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_event(
    event_id: UUID,
    data: EventCancel | None = None,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Cancel an event and notify the clinics."""
    clinic_ids = data.clinic_ids if data else None
    return event_service.cancel_event(db, event_id, clinic_ids=clinic_ids)


# =============================================================================
# Attendance
# =============================================================================

@router.post(
    "/events/{event_id}/confirm",
    response_model=EventWithAttendeesRead,
    dependencies=[Depends(require_csrf_header)],
)
def confirm_attendance(
    event_id: UUID,
    data: AttendanceConfirm,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Confirm a clinic's attendance."""
    return attendance_service.confirm_attendance(
        db, event_id, data.clinic_id, confirmed_by=actor_id
    )


# =============================================================================
# Change Requests
# =============================================================================

@router.get("/events/{event_id}/change-requests", response_model=list[ChangeRequestRead])
def list_change_requests(
    event_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """List all change requests for an event, newest first."""
    if not event_service.get_event(db, event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    return reschedule_service.list_change_requests(db, event_id)


@router.post(
    "/events/{event_id}/change-requests",
    response_model=ChangeRequestRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def request_reschedule(
    event_id: UUID,
    data: ChangeRequestCreate,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Request a reschedule on behalf of an attending clinic."""
    return reschedule_service.request_reschedule(
        db,
        event_id,
        data.clinic_id,
        data.reason,
        requested_by=actor_id,
        suggested_start_at=data.suggested_start_at,
        suggested_end_at=data.suggested_end_at,
    )


@router.get("/change-requests", response_model=list[ChangeRequestRead])
def list_open_change_requests(
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """List open change requests across all events."""
    return reschedule_service.list_open_change_requests(db)


@router.post(
    "/change-requests/{request_id}/accept",
    response_model=ChangeRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def accept_change_request(
    request_id: UUID,
    data: ChangeRequestAccept | None = None,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Accept a change request, moving the event."""
    data = data or ChangeRequestAccept()
    return reschedule_service.accept_change_request(
        db,
        request_id,
        handled_by=actor_id,
        start_at=data.start_at,
        end_at=data.end_at,
        clinic_ids=data.clinic_ids,
    )


@router.post(
    "/change-requests/{request_id}/reject",
    response_model=ChangeRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def reject_change_request(
    request_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Reject a change request."""
    return reschedule_service.reject_change_request(db, request_id, handled_by=actor_id)


# =============================================================================
# Slot Suggestions
# =============================================================================

@router.post("/suggestions", response_model=list[SlotRead])
def suggest_slots(
    data: SlotSuggestRequest,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Suggest free slots for a consultant. Read-only."""
    range_end = data.range_end or data.range_start + timedelta(days=settings.SUGGEST_RANGE_DAYS)
    search = slot_service.suggest_time_slots(
        db,
        consultant_id=data.consultant_id,
        duration_minutes=data.duration_minutes,
        range_start=data.range_start,
        range_end=range_end,
        working_hours=_working_hours_from_request(data),
        buffer_minutes=(
            data.buffer_minutes
            if data.buffer_minutes is not None
            else settings.SUGGEST_BUFFER_MINUTES
        ),
        step_minutes=data.step_minutes or settings.SUGGEST_STEP_MINUTES,
        limit=data.limit or settings.SUGGEST_LIMIT,
    )
    return [SlotRead(start=slot.start, end=slot.end) for slot in search]
