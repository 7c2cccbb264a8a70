"""
Tests for slot suggestion.

Coverage:
- Buffer-expanded busy intervals
- Working days and daily window (with a non-UTC zone)
- Whole-day range walk and result limit
- Restartable iteration
- Input validation
"""

import uuid
from datetime import time, timedelta

import pytest

from agenda.services import event_service, slot_service
from agenda.services.errors import ValidationError

from conftest import at


WEEKDAYS = frozenset({1, 2, 3, 4, 5})
OFFICE_HOURS = slot_service.WorkingHours(days=WEEKDAYS, start=time(9, 0), end=time(18, 0))


def suggest(db, consultant_id, **overrides):
    params = dict(
        consultant_id=consultant_id,
        duration_minutes=30,
        range_start=at(2, 0),
        range_end=at(3, 0),
        working_hours=OFFICE_HOURS,
        buffer_minutes=15,
        step_minutes=30,
        limit=10,
    )
    params.update(overrides)
    return slot_service.suggest_time_slots(db, **params)


# =============================================================================
# Search
# =============================================================================

class TestSuggestTimeSlots:
    def test_buffer_excludes_neighbouring_starts(self, db, make_event, consultant_id):
        make_event(at(2, 10), at(2, 11))

        slots = list(suggest(db, consultant_id))

        assert slots[0] == slot_service.TimeSlot(at(2, 9), at(2, 9, 30))
        assert slots[1] == slot_service.TimeSlot(at(2, 11, 30), at(2, 12))

    def test_slots_are_free_and_within_working_hours(self, db, make_event, consultant_id):
        make_event(at(2, 10), at(2, 11))
        make_event(at(2, 13), at(2, 15))
        busy = [(at(2, 10), at(2, 11)), (at(2, 13), at(2, 15))]
        pad = timedelta(minutes=15)

        slots = list(suggest(db, consultant_id, limit=100))

        assert slots
        for slot in slots:
            assert slot.end - slot.start == timedelta(minutes=30)
            assert time(9, 0) <= slot.start.time() and slot.end.time() <= time(18, 0)
            for start, end in busy:
                assert not (slot.start < end + pad and slot.end > start - pad)

    def test_empty_calendar_fills_the_day(self, db, consultant_id):
        slots = list(suggest(db, consultant_id, range_end=at(2, 23), limit=100))

        # 09:00 .. 17:30 starts every 30 minutes
        assert len(slots) == 18
        assert slots[-1] == slot_service.TimeSlot(at(2, 17, 30), at(2, 18))

    def test_limit_is_respected(self, db, consultant_id):
        slots = list(suggest(db, consultant_id, limit=3))
        assert len(slots) == 3

    def test_weekend_is_skipped(self, db, consultant_id):
        # Saturday 2026-03-07 through Sunday 2026-03-08
        slots = list(suggest(db, consultant_id, range_start=at(7, 0), range_end=at(8, 23)))
        assert slots == []

    def test_range_days_are_walked_in_full(self, db, consultant_id):
        slots = list(suggest(db, consultant_id, range_start=at(2, 16), range_end=at(2, 17), limit=100))

        assert len(slots) == 18
        assert slots[0] == slot_service.TimeSlot(at(2, 9), at(2, 9, 30))

    def test_end_day_is_included(self, db, consultant_id):
        slots = list(suggest(db, consultant_id, range_start=at(2, 0), range_end=at(3, 0), limit=100))

        days = {slot.start.date().isoformat() for slot in slots}
        assert days == {"2026-03-02", "2026-03-03"}
        assert len(slots) == 36

    def test_events_on_the_end_day_are_busy(self, db, make_event, consultant_id):
        make_event(at(3, 10), at(3, 11))

        slots = list(suggest(db, consultant_id, range_start=at(2, 0), range_end=at(3, 0), limit=100))

        tuesday = [slot.start for slot in slots if slot.start.date() == at(3, 0).date()]
        assert at(3, 9) in tuesday
        assert at(3, 10) not in tuesday
        assert at(3, 11) not in tuesday
        assert at(3, 11, 30) in tuesday

    def test_cancelled_events_are_not_busy(self, db, make_event, consultant_id):
        event = make_event(at(2, 9), at(2, 10))
        event_service.cancel_event(db, event.id)

        slots = list(suggest(db, consultant_id, limit=1))

        assert slots == [slot_service.TimeSlot(at(2, 9), at(2, 9, 30))]

    def test_other_consultants_are_ignored(self, db, make_event, consultant_id):
        make_event(at(2, 9), at(2, 10), consultant=uuid.uuid4())

        slots = list(suggest(db, consultant_id, limit=1))

        assert slots[0].start == at(2, 9)

    def test_working_hours_use_their_timezone(self, db, consultant_id):
        # 09:00 in Sao Paulo (UTC-3) is 12:00 UTC
        hours = slot_service.WorkingHours(
            days=WEEKDAYS, start=time(9, 0), end=time(18, 0), timezone="America/Sao_Paulo"
        )

        slots = list(suggest(db, consultant_id, working_hours=hours, limit=1))

        assert slots == [slot_service.TimeSlot(at(2, 12), at(2, 12, 30))]

    def test_search_is_restartable(self, db, make_event, consultant_id):
        make_event(at(2, 10), at(2, 11))

        search = suggest(db, consultant_id, limit=5)

        assert list(search) == list(search)

    def test_fully_booked_day_yields_nothing(self, db, make_event, consultant_id):
        make_event(at(2, 8), at(2, 19))

        assert list(suggest(db, consultant_id, range_end=at(2, 23))) == []


# =============================================================================
# Validation
# =============================================================================

class TestSuggestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"duration_minutes": 0},
            {"step_minutes": 0},
            {"limit": 0},
            {"buffer_minutes": -5},
            {"range_start": at(3, 0), "range_end": at(2, 0)},
            {"working_hours": slot_service.WorkingHours(frozenset({7}), time(9), time(18))},
            {"working_hours": slot_service.WorkingHours(WEEKDAYS, time(18), time(9))},
            {"working_hours": slot_service.WorkingHours(WEEKDAYS, time(9), time(18), "Mars/Base")},
        ],
    )
    def test_invalid_input(self, db, consultant_id, overrides):
        with pytest.raises(ValidationError):
            suggest(db, consultant_id, **overrides)


# =============================================================================
# Helpers
# =============================================================================

def test_expand_busy():
    expanded = slot_service.expand_busy([(at(2, 10), at(2, 11))], 15)
    assert expanded == [slot_service.TimeSlot(at(2, 9, 45), at(2, 11, 15))]
