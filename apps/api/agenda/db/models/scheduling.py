"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DDL,
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.core.config import settings
from agenda.db.base import Base
from agenda.db.enums import (
    ChangeRequestStatus,
    ConfirmStatus,
    DEFAULT_EVENT_STATUS,
)

# Storage-level guard against double booking; the pre-flight overlap query is
# only advisory.
OVERLAP_CONSTRAINT = "schedule_events_no_overlap"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleEvent(Base):
    """
    Meeting owned by a single consultant.

    Interval is half-open: [start_at, end_at).
    Never deleted; cancellation is the terminal status.
    """

    __tablename__ = "schedule_events"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_schedule_events_interval"),
        Index("idx_schedule_events_consultant_start", "consultant_id", "start_at"),
        Index("idx_schedule_events_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    consultant_id: Mapped[uuid.UUID] = mapped_column(nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Scheduling (stored in UTC)
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)
    # Informational IANA zone, never used for conversion
    timezone: Mapped[str] = mapped_column(
        String(64), default=lambda: settings.DEFAULT_TIMEZONE, nullable=False
    )

    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        String(32), default=DEFAULT_EVENT_STATUS.value, nullable=False
    )

    # Stored as-is; recurrence is not expanded
    recurrence_rule: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, onupdate=_now_utc, server_default=func.now(), nullable=False
    )

    # Relationships
    attendees: Mapped[list["ScheduleEventAttendee"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="ScheduleEventAttendee.clinic_id",
    )
    change_requests: Mapped[list["ScheduleChangeRequest"]] = relationship(
        back_populates="event",
        order_by="ScheduleChangeRequest.created_at.desc()",
    )


class ScheduleEventAttendee(Base):
    """Clinic invited to an event, with its own confirmation state."""

    __tablename__ = "schedule_event_attendees"
    __table_args__ = (
        Index("idx_schedule_event_attendees_clinic", "clinic_id"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("schedule_events.id", ondelete="CASCADE"), primary_key=True
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(primary_key=True)

    confirm_status: Mapped[str] = mapped_column(
        String(20), default=ConfirmStatus.PENDING.value, nullable=False
    )
    confirmed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    event: Mapped["ScheduleEvent"] = relationship(back_populates="attendees")


class ScheduleChangeRequest(Base):
    """
    Reschedule request raised by a clinic against an event.

    Lifecycle: open → accepted | rejected. History is kept for audit.
    """

    __tablename__ = "schedule_change_requests"
    __table_args__ = (
        CheckConstraint("length(reason) > 0", name="ck_schedule_change_requests_reason"),
        Index("idx_schedule_change_requests_event", "event_id", "status"),
        Index("idx_schedule_change_requests_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("schedule_events.id", ondelete="CASCADE"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    requested_by: Mapped[uuid.UUID] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    suggested_start_at: Mapped[datetime | None] = mapped_column(nullable=True)
    suggested_end_at: Mapped[datetime | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=ChangeRequestStatus.OPEN.value, nullable=False
    )
    handled_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    handled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )

    event: Mapped["ScheduleEvent"] = relationship(back_populates="change_requests")


class ScheduleNotification(Base):
    """
    Notification sink written by the relay.

    Read by the consultant and clinic inboxes, never by the scheduling engine.
    """

    __tablename__ = "schedule_notifications"
    __table_args__ = (
        Index("idx_schedule_notifications_clinic", "clinic_id", "read_at", "created_at"),
        Index("idx_schedule_notifications_user", "to_user_id", "read_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    target: Mapped[str] = mapped_column(String(20), nullable=False)
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    to_user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=dict, nullable=False
    )

    read_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )


# =============================================================================
# Overlap backstop DDL
# =============================================================================

event.listen(
    ScheduleEvent.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    ScheduleEvent.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE schedule_events ADD CONSTRAINT {OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist ("
        "consultant_id WITH =, "
        "tstzrange(start_at, end_at, '[)') WITH &&"
        ") WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)

# SQLite has no exclusion constraints; triggers give tests and local runs
# the same guarantee.
_SQLITE_OVERLAP_EXISTS = """
    EXISTS (
        SELECT 1 FROM schedule_events AS other
        WHERE other.consultant_id = NEW.consultant_id
          AND other.id <> NEW.id
          AND other.status <> 'cancelled'
          AND other.start_at < NEW.end_at
          AND other.end_at > NEW.start_at
    )
"""

event.listen(
    ScheduleEvent.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {OVERLAP_CONSTRAINT}_insert "
        "BEFORE INSERT ON schedule_events "
        f"WHEN NEW.status <> 'cancelled' AND {_SQLITE_OVERLAP_EXISTS} "
        f"BEGIN SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT}'); END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    ScheduleEvent.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {OVERLAP_CONSTRAINT}_update "
        "BEFORE UPDATE OF consultant_id, start_at, end_at, status ON schedule_events "
        f"WHEN NEW.status <> 'cancelled' AND {_SQLITE_OVERLAP_EXISTS} "
        f"BEGIN SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT}'); END"
    ).execute_if(dialect="sqlite"),
)
