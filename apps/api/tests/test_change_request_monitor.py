"""Tests for open change request reconciliation."""

import uuid

from agenda.services import reschedule_service
from agenda.services.change_request_monitor import OpenRequestMonitor


def test_first_poll_with_nothing_open(db):
    monitor = OpenRequestMonitor()

    result = monitor.poll(db)

    assert result.open_requests == []
    assert result.has_new_arrivals is False
    assert monitor.last_count == 0


def test_arrivals_are_reported_once(db, make_event, clinic_a, clinic_b):
    event = make_event(clinic_ids=[clinic_a, clinic_b])
    monitor = OpenRequestMonitor()
    monitor.poll(db)

    reschedule_service.request_reschedule(db, event.id, clinic_a, "conflict", uuid.uuid4())
    first = monitor.poll(db)
    second = monitor.poll(db)

    assert first.has_new_arrivals is True
    assert len(first.open_requests) == 1
    assert second.has_new_arrivals is False

    reschedule_service.request_reschedule(db, event.id, clinic_b, "travel", uuid.uuid4())
    third = monitor.poll(db)

    assert third.has_new_arrivals is True
    assert monitor.last_count == 2


def test_resolved_requests_drop_out(db, make_event, clinic_a):
    event = make_event(clinic_ids=[clinic_a])
    request = reschedule_service.request_reschedule(
        db, event.id, clinic_a, "conflict", uuid.uuid4()
    )
    monitor = OpenRequestMonitor()
    monitor.poll(db)

    reschedule_service.reject_change_request(db, request.id, uuid.uuid4())
    result = monitor.poll(db)

    assert result.open_requests == []
    assert result.has_new_arrivals is False
