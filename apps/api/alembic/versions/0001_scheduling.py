"""Scheduling baseline: events, attendees, change requests, notifications

Revision ID: 0001_scheduling
Revises:
Create Date: 2026-10-18

Tables:
- schedule_events: consultant-owned meetings, half-open [start_at, end_at)
- schedule_event_attendees: per-clinic confirmation state
- schedule_change_requests: clinic reschedule requests (kept for audit)
- schedule_notifications: relay output for consultant/clinic inboxes

Constraints:
- schedule_events_no_overlap: no two non-cancelled events of the same
  consultant may overlap (btree_gist exclusion constraint)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB


# revision identifiers, used by Alembic.
revision = "0001_scheduling"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    # schedule_events - one row per meeting
    op.create_table(
        "schedule_events",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("consultant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "timezone",
            sa.String(64),
            server_default=sa.text("'America/Sao_Paulo'"),
            nullable=False,
        ),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("meeting_url", sa.String(500), nullable=True),
        sa.Column(
            "status",
            sa.String(32),
            server_default=sa.text("'pending_confirmation'"),
            nullable=False,
        ),
        sa.Column("recurrence_rule", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint("start_at < end_at", name="ck_schedule_events_interval"),
    )
    op.create_index(
        "idx_schedule_events_consultant_start",
        "schedule_events",
        ["consultant_id", "start_at"],
    )
    op.create_index("idx_schedule_events_status", "schedule_events", ["status"])
    op.execute(
        """
        ALTER TABLE schedule_events ADD CONSTRAINT schedule_events_no_overlap
        EXCLUDE USING gist (
            consultant_id WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
        ) WHERE (status <> 'cancelled')
        """
    )

    # schedule_event_attendees - one row per (event, clinic)
    op.create_table(
        "schedule_event_attendees",
        sa.Column(
            "event_id",
            UUID(as_uuid=True),
            sa.ForeignKey("schedule_events.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("clinic_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "confirm_status",
            sa.String(20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("confirmed_by", UUID(as_uuid=True), nullable=True),
        sa.Column("confirmed_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index(
        "idx_schedule_event_attendees_clinic",
        "schedule_event_attendees",
        ["clinic_id"],
    )

    # schedule_change_requests - clinic reschedule requests
    op.create_table(
        "schedule_change_requests",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "event_id",
            UUID(as_uuid=True),
            sa.ForeignKey("schedule_events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("clinic_id", UUID(as_uuid=True), nullable=False),
        sa.Column("requested_by", UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("suggested_start_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("suggested_end_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'open'"),
            nullable=False,
        ),
        sa.Column("handled_by", UUID(as_uuid=True), nullable=True),
        sa.Column("handled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "length(reason) > 0", name="ck_schedule_change_requests_reason"
        ),
    )
    op.create_index(
        "idx_schedule_change_requests_event",
        "schedule_change_requests",
        ["event_id", "status"],
    )
    op.create_index(
        "idx_schedule_change_requests_status_created",
        "schedule_change_requests",
        ["status", "created_at"],
    )

    # schedule_notifications - relay output
    op.create_table(
        "schedule_notifications",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("target", sa.String(20), nullable=False),
        sa.Column("clinic_id", UUID(as_uuid=True), nullable=True),
        sa.Column("to_user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column(
            "payload",
            JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column("read_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_schedule_notifications_clinic",
        "schedule_notifications",
        ["clinic_id", "read_at", "created_at"],
    )
    op.create_index(
        "idx_schedule_notifications_user",
        "schedule_notifications",
        ["to_user_id", "read_at", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("schedule_notifications")
    op.drop_table("schedule_change_requests")
    op.drop_table("schedule_event_attendees")
    op.execute(
        "ALTER TABLE schedule_events DROP CONSTRAINT IF EXISTS schedule_events_no_overlap"
    )
    op.drop_table("schedule_events")
