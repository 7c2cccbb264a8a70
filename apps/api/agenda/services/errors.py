"""Scheduling error taxonomy shared by the service layer."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.db.models import OVERLAP_CONSTRAINT

# PostgreSQL exclusion_violation
EXCLUSION_VIOLATION_SQLSTATE = "23P01"


class SchedulingError(Exception):
    """Base exception for scheduling service errors."""

    pass


class ValidationError(SchedulingError):
    """Malformed input, rejected before touching the store."""

    pass


class SchedulingConflict(SchedulingError):
    """The consultant already has a non-cancelled event in that interval."""

    def __init__(self, message: str = "Time slot conflicts with another event"):
        super().__init__(message)


class NotFoundError(SchedulingError):
    """Referenced event, attendee or change request does not exist."""

    pass


class EventCancelledError(NotFoundError):
    """Event exists but is cancelled, so it no longer accepts changes."""

    pass


class StoreError(SchedulingError):
    """Any other persistence failure."""

    pass


def is_overlap_violation(exc: BaseException) -> bool:
    """True when the store rejected a write with the overlap constraint."""
    orig = getattr(exc, "orig", None) or exc
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == EXCLUSION_VIOLATION_SQLSTATE:
        return True
    return OVERLAP_CONSTRAINT in str(orig)


@contextmanager
def store_reads() -> Iterator[None]:
    """Translate database errors on read paths into StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(str(exc)) from exc


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Run a block as one transaction.

    Commits on success. On any database error the session is rolled back and
    the error is translated: overlap constraint → SchedulingConflict,
    anything else → StoreError. Scheduling errors raised inside the block
    roll back and propagate unchanged.
    """
    try:
        yield db
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        if is_overlap_violation(exc):
            raise SchedulingConflict() from exc
        raise StoreError(str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(str(exc)) from exc
    except Exception:
        db.rollback()
        raise
