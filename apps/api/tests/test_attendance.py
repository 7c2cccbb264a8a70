"""Tests for clinic attendance confirmation and status rollup."""

import uuid

import pytest

from agenda.db.enums import ConfirmStatus, EventStatus
from agenda.db.models import ScheduleEventAttendee, ScheduleNotification
from agenda.services import attendance_service, event_service
from agenda.services.errors import EventCancelledError, NotFoundError


def _attendee(db, event_id, clinic_id) -> ScheduleEventAttendee:
    return (
        db.query(ScheduleEventAttendee)
        .filter(
            ScheduleEventAttendee.event_id == event_id,
            ScheduleEventAttendee.clinic_id == clinic_id,
        )
        .one()
    )


class TestConfirmAttendance:
    def test_partial_confirmation_keeps_pending(self, db, make_event, clinic_a, clinic_b):
        event = make_event(clinic_ids=[clinic_a, clinic_b])
        confirmer = uuid.uuid4()

        result = attendance_service.confirm_attendance(db, event.id, clinic_a, confirmed_by=confirmer)

        assert result.status == EventStatus.PENDING_CONFIRMATION.value
        attendee = _attendee(db, event.id, clinic_a)
        assert attendee.confirm_status == ConfirmStatus.CONFIRMED.value
        assert attendee.confirmed_by == confirmer
        assert attendee.confirmed_at is not None
        assert _attendee(db, event.id, clinic_b).confirm_status == ConfirmStatus.PENDING.value

    def test_last_confirmation_confirms_event(self, db, make_event, clinic_a, clinic_b):
        event = make_event(clinic_ids=[clinic_a, clinic_b])

        attendance_service.confirm_attendance(db, event.id, clinic_a)
        result = attendance_service.confirm_attendance(db, event.id, clinic_b)

        assert result.status == EventStatus.CONFIRMED.value

    def test_reconfirming_is_harmless(self, db, make_event, clinic_a):
        event = make_event(clinic_ids=[clinic_a])

        attendance_service.confirm_attendance(db, event.id, clinic_a)
        result = attendance_service.confirm_attendance(db, event.id, clinic_a)

        assert result.status == EventStatus.CONFIRMED.value

    def test_confirmation_notifies_consultant(self, db, make_event, consultant_id, clinic_a):
        event = make_event(clinic_ids=[clinic_a])

        attendance_service.confirm_attendance(db, event.id, clinic_a)

        row = db.query(ScheduleNotification).filter(
            ScheduleNotification.type == "event_confirmed"
        ).one()
        assert row.target == "consultant"
        assert row.to_user_id == consultant_id
        assert row.clinic_id == clinic_a
        assert row.payload == {"event_id": str(event.id), "clinic_id": str(clinic_a)}

    def test_non_attendee_is_rejected(self, db, make_event):
        event = make_event()

        with pytest.raises(NotFoundError):
            attendance_service.confirm_attendance(db, event.id, uuid.uuid4())

    def test_missing_event(self, db, clinic_a):
        with pytest.raises(NotFoundError):
            attendance_service.confirm_attendance(db, uuid.uuid4(), clinic_a)

    def test_cancelled_event_is_rejected(self, db, make_event, clinic_a):
        event = make_event(clinic_ids=[clinic_a])
        event_service.cancel_event(db, event.id)

        with pytest.raises(EventCancelledError):
            attendance_service.confirm_attendance(db, event.id, clinic_a)

        assert _attendee(db, event.id, clinic_a).confirm_status == ConfirmStatus.PENDING.value
