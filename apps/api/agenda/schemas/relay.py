"""Relay payloads - one shape per notification/webhook type."""

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter


class EventCreatedPayload(BaseModel):
    type: Literal["event_created"] = "event_created"
    event_id: UUID
    clinic_ids: list[UUID]


class EventUpdatedPayload(BaseModel):
    type: Literal["event_updated"] = "event_updated"
    event_id: UUID


class EventCancelledPayload(BaseModel):
    type: Literal["event_cancelled"] = "event_cancelled"
    event_id: UUID
    clinic_ids: list[UUID]


class EventConfirmedPayload(BaseModel):
    type: Literal["event_confirmed"] = "event_confirmed"
    event_id: UUID
    clinic_id: UUID


class EventRescheduledPayload(BaseModel):
    """Sent to clinics when the consultant accepts a new time."""
    type: Literal["event_rescheduled"] = "event_rescheduled"
    event_id: UUID
    change_request_id: UUID
    start_at: datetime
    end_at: datetime
    reason: str


class RescheduleRequestedPayload(BaseModel):
    type: Literal["reschedule_requested"] = "reschedule_requested"
    event_id: UUID
    clinic_id: UUID
    change_request_id: UUID
    reason: str
    suggested_start_at: datetime | None = None
    suggested_end_at: datetime | None = None


class RescheduleRejectedPayload(BaseModel):
    type: Literal["reschedule_rejected"] = "reschedule_rejected"
    event_id: UUID
    clinic_id: UUID
    change_request_id: UUID
    reason: str


RelayPayload = Annotated[
    Union[
        EventCreatedPayload,
        EventUpdatedPayload,
        EventCancelledPayload,
        EventConfirmedPayload,
        EventRescheduledPayload,
        RescheduleRequestedPayload,
        RescheduleRejectedPayload,
    ],
    Field(discriminator="type"),
]

relay_payload_adapter: TypeAdapter[RelayPayload] = TypeAdapter(RelayPayload)
