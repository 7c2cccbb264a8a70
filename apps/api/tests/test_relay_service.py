"""
Tests for the notification/webhook relay.

Coverage:
- Wire shape of webhook bodies
- Delivery through httpx (patched at the client level)
- Failures are logged and swallowed
- Notification rows per recipient
- Tagged payload parsing
"""

import uuid

import httpx
import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError

from agenda.core.config import settings
from agenda.db.models import ScheduleNotification
from agenda.schemas.relay import (
    EventCancelledPayload,
    EventCreatedPayload,
    EventRescheduledPayload,
    RescheduleRequestedPayload,
    relay_payload_adapter,
)
from agenda.services import relay_service

from conftest import at


WEBHOOK_URL = "https://hooks.example.com/scheduling?token=secret"


@pytest.fixture
def webhook_url(monkeypatch):
    monkeypatch.setattr(settings, "SCHEDULING_WEBHOOK_URL", WEBHOOK_URL)
    return WEBHOOK_URL


@pytest.fixture
def captured_posts(monkeypatch):
    """Patch httpx.Client.post and record every call."""
    calls = []

    def fake_post(self, url, **kwargs):
        calls.append({"url": url, "json": kwargs.get("json")})
        return httpx.Response(200, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.Client, "post", fake_post)
    return calls


# =============================================================================
# Wire format
# =============================================================================

class TestWebhookBody:
    def test_body_has_type_and_payload(self):
        event_id, clinic_id = uuid.uuid4(), uuid.uuid4()

        body = relay_service.build_webhook_body(
            EventCreatedPayload(event_id=event_id, clinic_ids=[clinic_id])
        )

        assert body == {
            "type": "event_created",
            "payload": {"event_id": str(event_id), "clinic_ids": [str(clinic_id)]},
        }

    def test_payloads_parse_by_type(self):
        event_id = uuid.uuid4()

        parsed = relay_payload_adapter.validate_python(
            {"type": "event_cancelled", "event_id": str(event_id), "clinic_ids": []}
        )

        assert isinstance(parsed, EventCancelledPayload)
        assert parsed.event_id == event_id

    def test_unknown_type_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            relay_payload_adapter.validate_python({"type": "event_exploded", "event_id": str(uuid.uuid4())})


# =============================================================================
# Webhook delivery
# =============================================================================

class TestPostWebhook:
    def test_posts_once(self, webhook_url, captured_posts):
        payload = RescheduleRequestedPayload(
            event_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            change_request_id=uuid.uuid4(),
            reason="conflict",
        )

        assert relay_service.post_webhook(payload) is True

        assert len(captured_posts) == 1
        assert captured_posts[0]["url"] == webhook_url
        assert captured_posts[0]["json"]["type"] == "reschedule_requested"
        assert captured_posts[0]["json"]["payload"]["reason"] == "conflict"

    def test_no_url_is_a_noop(self, captured_posts):
        payload = EventCancelledPayload(event_id=uuid.uuid4(), clinic_ids=[])

        assert relay_service.post_webhook(payload) is False
        assert captured_posts == []

    def test_rescheduled_is_not_posted(self, webhook_url, captured_posts):
        payload = EventRescheduledPayload(
            event_id=uuid.uuid4(),
            change_request_id=uuid.uuid4(),
            start_at=at(2, 14),
            end_at=at(2, 15),
            reason="conflict",
        )

        assert relay_service.post_webhook(payload) is False
        assert captured_posts == []

    def test_http_error_is_swallowed(self, webhook_url, monkeypatch, caplog):
        def failing_post(self, url, **kwargs):
            return httpx.Response(500, request=httpx.Request("POST", url))

        monkeypatch.setattr(httpx.Client, "post", failing_post)

        result = relay_service.post_webhook(
            EventCancelledPayload(event_id=uuid.uuid4(), clinic_ids=[])
        )

        assert result is False
        assert "Scheduling webhook failed" in caplog.text
        assert "secret" not in caplog.text

    def test_transport_error_is_swallowed(self, webhook_url, monkeypatch):
        def unreachable(self, url, **kwargs):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(httpx.Client, "post", unreachable)

        assert relay_service.post_webhook(
            EventCancelledPayload(event_id=uuid.uuid4(), clinic_ids=[])
        ) is False


# =============================================================================
# Notifications
# =============================================================================

class TestEmit:
    def test_one_row_per_recipient(self, db, captured_posts):
        clinics = [uuid.uuid4(), uuid.uuid4()]
        payload = EventCancelledPayload(event_id=uuid.uuid4(), clinic_ids=clinics)

        relay_service.emit(db, payload, relay_service.clinic_recipients(clinics))

        rows = db.query(ScheduleNotification).all()
        assert {r.clinic_id for r in rows} == set(clinics)
        assert all(r.type == "event_cancelled" for r in rows)

    def test_state_change_survives_relay_failure(
        self, db, make_event, webhook_url, monkeypatch
    ):
        def unreachable(self, url, **kwargs):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(httpx.Client, "post", unreachable)

        event = make_event()

        assert event.id is not None

    def test_recording_failure_is_swallowed(self, db, monkeypatch, caplog):
        def broken_commit():
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", broken_commit)
        payload = EventCancelledPayload(event_id=uuid.uuid4(), clinic_ids=[])

        written = relay_service.record_notifications(
            db, payload, relay_service.clinic_recipients([uuid.uuid4()])
        )

        assert written == 0
        assert "Failed to record event_cancelled notifications" in caplog.text
