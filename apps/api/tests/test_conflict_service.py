"""Tests for consultant calendar conflict detection."""

import uuid
from datetime import datetime

import pytest

from agenda.services import conflict_service, event_service
from agenda.services.errors import ValidationError

from conftest import at


@pytest.fixture
def booked(make_event):
    """Consultant is busy [10:00, 11:00) on Monday."""
    return make_event(at(2, 10), at(2, 11))


@pytest.mark.parametrize(
    "start_at, end_at, expected",
    [
        (at(2, 10, 30), at(2, 11, 30), True),   # overlaps the tail
        (at(2, 9, 30), at(2, 10, 30), True),    # overlaps the head
        (at(2, 10, 15), at(2, 10, 45), True),   # contained
        (at(2, 9), at(2, 12), True),            # contains
        (at(2, 11), at(2, 12), False),          # touches the end
        (at(2, 9), at(2, 10), False),           # touches the start
        (at(3, 10), at(3, 11), False),          # another day
    ],
)
def test_has_overlap(db, booked, consultant_id, start_at, end_at, expected):
    assert conflict_service.has_overlap(db, consultant_id, start_at, end_at) is expected


def test_other_consultant_never_overlaps(db, booked):
    assert not conflict_service.has_overlap(db, uuid.uuid4(), at(2, 10), at(2, 11))


def test_exclude_event_id(db, booked, consultant_id):
    assert not conflict_service.has_overlap(
        db, consultant_id, at(2, 10), at(2, 11), exclude_event_id=booked.id
    )


def test_cancelled_events_are_ignored(db, booked, consultant_id):
    event_service.cancel_event(db, booked.id)
    assert not conflict_service.has_overlap(db, consultant_id, at(2, 10), at(2, 11))


def test_naive_datetimes_are_treated_as_utc(db, booked, consultant_id):
    assert conflict_service.has_overlap(
        db, consultant_id, datetime(2026, 3, 2, 10, 30), datetime(2026, 3, 2, 11, 30)
    )


def test_empty_interval_is_invalid(db, consultant_id):
    with pytest.raises(ValidationError):
        conflict_service.has_overlap(db, consultant_id, at(2, 10), at(2, 10))


def test_list_busy_events(db, make_event, consultant_id):
    make_event(at(2, 10), at(2, 11))
    make_event(at(2, 14), at(2, 15))
    cancelled = make_event(at(2, 16), at(2, 17))
    event_service.cancel_event(db, cancelled.id)

    busy = conflict_service.list_busy_events(db, consultant_id, at(2, 0), at(3, 0))

    assert [(e.start_at, e.end_at) for e in busy] == [
        (at(2, 10), at(2, 11)),
        (at(2, 14), at(2, 15)),
    ]
