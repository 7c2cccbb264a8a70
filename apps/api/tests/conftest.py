"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database per test (overlap triggers included)
- Consultant/clinic ids and an event factory
- HTTPX AsyncClient with actor and CSRF headers
"""
import os
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

# Must be set before any agenda module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULING_WEBHOOK_URL"] = ""
os.environ["ENV"] = "test"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agenda.main import app
from agenda.core.deps import get_db
from agenda.db.base import Base
from agenda.services import event_service

import agenda.db.models  # noqa: F401


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """UTC datetime in the week of Monday 2026-03-02 (day=2 is Monday)."""
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database; one shared connection across threads."""
    test_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Session bound to the per-test database. Services may commit freely."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture
def consultant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def clinic_a() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def clinic_b() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_event(db: Session, consultant_id, clinic_a, clinic_b):
    """Factory for events on the test consultant's calendar."""
    def _make(start_at=None, end_at=None, clinic_ids=None, consultant=None, title="Case review"):
        return event_service.create_event(
            db,
            consultant_id=consultant or consultant_id,
            title=title,
            start_at=start_at or at(2, 10),
            end_at=end_at or at(2, 11),
            clinic_ids=clinic_ids or [clinic_a, clinic_b],
        )

    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
def actor_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture(scope="function")
async def client(db: Session, actor_id) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient with actor id and CSRF header.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={
            "X-Actor-Id": str(actor_id),
            "X-Requested-With": "XMLHttpRequest",  # CSRF header
        },
    ) as c:
        yield c

    app.dependency_overrides.clear()
