"""Schedule schemas - Pydantic models for the scheduling API."""

from datetime import datetime, time
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


EventStatusLiteral = Literal[
    "pending_confirmation",
    "confirmed",
    "reschedule_requested",
    "rescheduled",
    "cancelled",
]


# =============================================================================
# Events
# =============================================================================

class EventCreate(BaseModel):
    """Schema for creating an event."""
    consultant_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    start_at: datetime
    end_at: datetime
    timezone: str | None = Field(None, max_length=64)
    location: str | None = Field(None, max_length=500)
    meeting_url: str | None = Field(None, max_length=500)
    recurrence_rule: str | None = Field(None, max_length=500)
    clinic_ids: list[UUID] = Field(..., min_length=1)


class EventUpdate(BaseModel):
    """Schema for updating an event. Omitted fields are left unchanged."""
    consultant_id: UUID | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    timezone: str | None = Field(None, max_length=64)
    location: str | None = Field(None, max_length=500)
    meeting_url: str | None = Field(None, max_length=500)
    recurrence_rule: str | None = Field(None, max_length=500)
    clinic_ids: list[UUID] | None = None
    force_status: EventStatusLiteral | None = None


class EventCancel(BaseModel):
    """Clinics to notify; defaults to the current attendees."""
    clinic_ids: list[UUID] | None = None


class AttendeeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: UUID
    clinic_id: UUID
    confirm_status: str
    confirmed_by: UUID | None
    confirmed_at: datetime | None


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    consultant_id: UUID
    title: str
    description: str | None
    start_at: datetime
    end_at: datetime
    timezone: str
    location: str | None
    meeting_url: str | None
    status: str
    recurrence_rule: str | None
    created_at: datetime
    updated_at: datetime


class EventWithAttendeesRead(EventRead):
    attendees: list[AttendeeRead]


class ClinicEventRead(EventRead):
    """Event as seen by one clinic, with that clinic's confirmation."""
    confirm_status: str
    confirmed_at: datetime | None


# =============================================================================
# Attendance
# =============================================================================

class AttendanceConfirm(BaseModel):
    clinic_id: UUID


# =============================================================================
# Change requests
# =============================================================================

class ChangeRequestCreate(BaseModel):
    clinic_id: UUID
    reason: str = Field(..., min_length=1)
    suggested_start_at: datetime | None = None
    suggested_end_at: datetime | None = None


class ChangeRequestAccept(BaseModel):
    """New interval; defaults to the clinic's suggestion."""
    start_at: datetime | None = None
    end_at: datetime | None = None
    clinic_ids: list[UUID] | None = None


class ChangeRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    clinic_id: UUID
    requested_by: UUID
    reason: str
    suggested_start_at: datetime | None
    suggested_end_at: datetime | None
    status: str
    handled_by: UUID | None
    handled_at: datetime | None
    created_at: datetime


# =============================================================================
# Slot suggestions
# =============================================================================

class WorkingHoursInput(BaseModel):
    days: list[int] = Field(..., description="Sunday=0, Saturday=6")
    start: time
    end: time
    timezone: str = "UTC"

    @model_validator(mode="after")
    def _check_window(self):
        if any(d < 0 or d > 6 for d in self.days):
            raise ValueError("days must be between 0 and 6")
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class SlotSuggestRequest(BaseModel):
    consultant_id: UUID
    duration_minutes: int = Field(..., ge=1)
    range_start: datetime
    range_end: datetime | None = None
    working_hours: WorkingHoursInput | None = None
    buffer_minutes: int | None = Field(None, ge=0)
    step_minutes: int | None = Field(None, ge=1)
    limit: int | None = Field(None, ge=1, le=100)


class SlotRead(BaseModel):
    start: datetime
    end: datetime
