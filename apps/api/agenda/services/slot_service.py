"""Slot suggestion - find free intervals on a consultant's calendar.

Handles:
- Working-hours rules (weekdays plus a daily window)
- Buffer margins around existing events
- Lazy, bounded search over a date range
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Iterator, NamedTuple
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.services import conflict_service
from agenda.services.errors import ValidationError
from agenda.utils.datetime_parsing import resolve_timezone, to_utc, weekday_index


# =============================================================================
# Types
# =============================================================================

class TimeSlot(NamedTuple):
    """Half-open interval [start, end) in UTC."""
    start: datetime
    end: datetime


class WorkingHours(NamedTuple):
    """Allowed weekdays (Sunday=0) and a daily window in the given zone."""
    days: frozenset[int]
    start: time
    end: time
    timezone: str = "UTC"


# =============================================================================
# Search
# =============================================================================

def expand_busy(
    intervals: Iterable[tuple[datetime, datetime]],
    buffer_minutes: int,
) -> list[TimeSlot]:
    """Pad each busy interval by buffer_minutes on both ends."""
    pad = timedelta(minutes=buffer_minutes)
    return [TimeSlot(to_utc(start) - pad, to_utc(end) + pad) for start, end in intervals]


def walked_days(
    range_start: datetime,
    range_end: datetime,
    tz: tzinfo,
) -> tuple[date, date]:
    """First and last calendar day of the range in `tz`, both inclusive."""
    return to_utc(range_start).astimezone(tz).date(), to_utc(range_end).astimezone(tz).date()


def iter_free_slots(
    busy: list[TimeSlot],
    duration_minutes: int,
    range_start: datetime,
    range_end: datetime,
    working_hours: WorkingHours,
    step_minutes: int,
    limit: int,
) -> Iterator[TimeSlot]:
    """
    Walk working-hours candidates day by day and yield the free ones.

    `busy` must already include the buffer. Every calendar day from
    range_start to range_end (inclusive, in the working-hours zone) is
    walked in full. Stops after `limit` slots.
    """
    tz = resolve_timezone(working_hours.timezone) or timezone.utc
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)

    found = 0
    current_date, last_date = walked_days(range_start, range_end, tz)

    while current_date <= last_date:
        if weekday_index(current_date) in working_hours.days:
            day_start = datetime.combine(current_date, working_hours.start, tzinfo=tz).astimezone(timezone.utc)
            day_end = datetime.combine(current_date, working_hours.end, tzinfo=tz).astimezone(timezone.utc)

            slot_start = day_start
            while slot_start <= day_end:
                slot_end = slot_start + duration
                if slot_end > day_end:
                    break

                if not any(
                    slot_start < b.end and slot_end > b.start for b in busy
                ):
                    yield TimeSlot(start=slot_start, end=slot_end)
                    found += 1
                    if found >= limit:
                        return

                slot_start += step

        current_date += timedelta(days=1)


class SlotSearch:
    """
    Lazy, restartable sequence of suggested slots.

    The busy snapshot is taken once; every iteration re-walks the range
    against it, so iterating twice yields the same slots.
    """

    def __init__(
        self,
        busy: list[TimeSlot],
        duration_minutes: int,
        range_start: datetime,
        range_end: datetime,
        working_hours: WorkingHours,
        step_minutes: int,
        limit: int,
    ):
        self.busy = busy
        self.duration_minutes = duration_minutes
        self.range_start = range_start
        self.range_end = range_end
        self.working_hours = working_hours
        self.step_minutes = step_minutes
        self.limit = limit

    def __iter__(self) -> Iterator[TimeSlot]:
        return iter_free_slots(
            self.busy,
            self.duration_minutes,
            self.range_start,
            self.range_end,
            self.working_hours,
            self.step_minutes,
            self.limit,
        )


def _validate(
    duration_minutes: int,
    range_start: datetime,
    range_end: datetime,
    working_hours: WorkingHours,
    buffer_minutes: int,
    step_minutes: int,
    limit: int,
) -> None:
    if duration_minutes < 1:
        raise ValidationError("duration_minutes must be at least 1")
    if step_minutes < 1:
        raise ValidationError("step_minutes must be at least 1")
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    if buffer_minutes < 0:
        raise ValidationError("buffer_minutes cannot be negative")
    if to_utc(range_start) > to_utc(range_end):
        raise ValidationError("range_start must not be after range_end")
    if any(day < 0 or day > 6 for day in working_hours.days):
        raise ValidationError("Working days must be between 0 (Sunday) and 6 (Saturday)")
    if working_hours.start >= working_hours.end:
        raise ValidationError("Working hours start must be before end")
    if resolve_timezone(working_hours.timezone) is None:
        raise ValidationError(f"Unknown timezone: {working_hours.timezone}")


def suggest_time_slots(
    db: Session,
    consultant_id: UUID,
    duration_minutes: int,
    range_start: datetime,
    range_end: datetime,
    working_hours: WorkingHours,
    buffer_minutes: int,
    step_minutes: int = 30,
    limit: int = 10,
) -> SlotSearch:
    """
    Suggest free slots for a consultant.

    Busy intervals are the consultant's non-cancelled events, each padded by
    buffer_minutes. Read-only; an empty result is valid.
    """
    _validate(
        duration_minutes, range_start, range_end, working_hours,
        buffer_minutes, step_minutes, limit,
    )

    # Busy window covers the walked days in full, widened by the buffer.
    tz = resolve_timezone(working_hours.timezone)
    first_day, last_day = walked_days(range_start, range_end, tz)
    pad = timedelta(minutes=buffer_minutes)
    events = conflict_service.list_busy_events(
        db,
        consultant_id,
        datetime.combine(first_day, time.min, tzinfo=tz).astimezone(timezone.utc) - pad,
        datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc) + pad,
    )
    busy = expand_busy(((e.start_at, e.end_at) for e in events), buffer_minutes)

    return SlotSearch(
        busy=busy,
        duration_minutes=duration_minutes,
        range_start=range_start,
        range_end=range_end,
        working_hours=working_hours,
        step_minutes=step_minutes,
        limit=limit,
    )
