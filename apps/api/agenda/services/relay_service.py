"""Notification and webhook relay for scheduling state changes.

Best-effort and fire-and-forget: runs after the triggering transaction has
committed, and every failure is logged and swallowed.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Sequence
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.config import settings
from agenda.core.structured_logging import safe_url
from agenda.db.enums import NotificationTarget, RelayEventType
from agenda.db.models import ScheduleNotification
from agenda.schemas.relay import RelayPayload

logger = logging.getLogger(__name__)

# event_rescheduled is an inbox-only notification
WEBHOOK_EVENT_TYPES = frozenset(
    {
        RelayEventType.EVENT_CREATED.value,
        RelayEventType.EVENT_UPDATED.value,
        RelayEventType.EVENT_CANCELLED.value,
        RelayEventType.EVENT_CONFIRMED.value,
        RelayEventType.RESCHEDULE_REQUESTED.value,
        RelayEventType.RESCHEDULE_REJECTED.value,
    }
)


class Recipient(NamedTuple):
    """Notification addressee."""
    target: NotificationTarget
    clinic_id: UUID | None = None
    to_user_id: UUID | None = None


def clinic_recipients(clinic_ids: Sequence[UUID]) -> list[Recipient]:
    return [Recipient(NotificationTarget.CLINIC, clinic_id=c) for c in clinic_ids]


def consultant_recipient(consultant_id: UUID, clinic_id: UUID | None = None) -> Recipient:
    return Recipient(NotificationTarget.CONSULTANT, clinic_id=clinic_id, to_user_id=consultant_id)


def build_webhook_body(payload: RelayPayload) -> dict:
    """Webhook wire shape: {"type": ..., "payload": {...}}."""
    return {
        "type": payload.type,
        "payload": payload.model_dump(mode="json", exclude={"type"}),
    }


def record_notifications(
    db: Session,
    payload: RelayPayload,
    recipients: Sequence[Recipient],
) -> int:
    """Insert one notification row per recipient. Returns rows written."""
    if not recipients:
        return 0
    body = payload.model_dump(mode="json", exclude={"type"})
    try:
        for recipient in recipients:
            db.add(
                ScheduleNotification(
                    target=recipient.target.value,
                    clinic_id=recipient.clinic_id,
                    to_user_id=recipient.to_user_id,
                    type=payload.type,
                    payload=body,
                )
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Failed to record %s notifications (%s)", payload.type, type(exc).__name__
        )
        return 0
    return len(recipients)


def post_webhook(payload: RelayPayload) -> bool:
    """POST the payload to the configured webhook once. No retries."""
    url = settings.SCHEDULING_WEBHOOK_URL.strip()
    if not url or payload.type not in WEBHOOK_EVENT_TYPES:
        return False

    try:
        with httpx.Client(timeout=settings.WEBHOOK_TIMEOUT_SECONDS) as client:
            response = client.post(url, json=build_webhook_body(payload))
            response.raise_for_status()
    except Exception as e:
        logger.warning(
            "Scheduling webhook failed: %s type=%s (%s)",
            safe_url(url),
            payload.type,
            type(e).__name__,
        )
        return False

    logger.info("Scheduling webhook delivered: %s type=%s", safe_url(url), payload.type)
    return True


def emit(
    db: Session,
    payload: RelayPayload,
    recipients: Sequence[Recipient] = (),
) -> None:
    """Record notifications and fire the webhook. Never raises."""
    record_notifications(db, payload, recipients)
    post_webhook(payload)
