"""Scheduling enums."""

from enum import Enum


class EventStatus(str, Enum):
    """
    Schedule event lifecycle status.

    Flow: pending_confirmation → confirmed
          any non-cancelled → reschedule_requested → rescheduled
                                                   ↘ pending_confirmation | confirmed (rejected)
          any → cancelled (terminal)
    """

    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    RESCHEDULE_REQUESTED = "reschedule_requested"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"


class ConfirmStatus(str, Enum):
    """Per-clinic attendance acknowledgment."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class ChangeRequestStatus(str, Enum):
    """Reschedule request status. Accepted and rejected are terminal."""

    OPEN = "open"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class NotificationTarget(str, Enum):
    """Which side of the meeting a notification is addressed to."""

    CONSULTANT = "consultant"
    CLINIC = "clinic"


class RelayEventType(str, Enum):
    """Tags used for outbound webhooks and notification rows."""

    EVENT_CREATED = "event_created"
    EVENT_UPDATED = "event_updated"
    EVENT_CANCELLED = "event_cancelled"
    EVENT_CONFIRMED = "event_confirmed"
    EVENT_RESCHEDULED = "event_rescheduled"  # notification only, never posted
    RESCHEDULE_REQUESTED = "reschedule_requested"
    RESCHEDULE_REJECTED = "reschedule_rejected"


DEFAULT_EVENT_STATUS = EventStatus.PENDING_CONFIRMATION
