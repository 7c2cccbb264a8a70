"""CLI tools for agenda administration."""

import logging
import time
from datetime import datetime, timedelta, timezone
from uuid import UUID

import click

from agenda.core.config import settings
from agenda.core.structured_logging import configure_logging
from agenda.db.base import Base
from agenda.db.session import SessionLocal, engine
from agenda.services import slot_service
from agenda.services.change_request_monitor import OpenRequestMonitor
from agenda.services.errors import SchedulingError

import agenda.db.models  # noqa: F401

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Agenda CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
def init_db():
    """
    Create the scheduling tables directly from the models.

    Intended for local development; use `alembic upgrade head` elsewhere.
    """
    Base.metadata.create_all(bind=engine)
    click.echo("✓ Scheduling tables created")


@cli.command()
@click.option(
    "--interval",
    default=None,
    type=int,
    help="Seconds between polls (default: RECONCILE_INTERVAL_SECONDS)",
)
@click.option("--once", is_flag=True, help="Poll a single time and exit")
def watch_requests(interval: int | None, once: bool):
    """
    Poll open change requests and report new arrivals.

    Example:
        python -m agenda.cli watch-requests --interval 60
    """
    interval = interval or settings.RECONCILE_INTERVAL_SECONDS
    monitor = OpenRequestMonitor()

    while True:
        db = SessionLocal()
        try:
            result = monitor.poll(db)
            if result.has_new_arrivals:
                click.echo(f"→ {len(result.open_requests)} open change request(s)")
                for request in result.open_requests:
                    click.echo(f"  {request.id} event={request.event_id} clinic={request.clinic_id}")
        except SchedulingError as e:
            logger.warning("Change request poll failed: %s", e)
        finally:
            db.close()

        if once:
            break
        time.sleep(interval)


@cli.command()
@click.option("--consultant-id", required=True, help="Consultant user ID")
@click.option("--duration", default=60, help="Slot duration in minutes (default: 60)")
@click.option("--days", default=None, type=int, help="Days to search (default: SUGGEST_RANGE_DAYS)")
def suggest_slots(consultant_id: str, duration: int, days: int | None):
    """Print free slots for a consultant, starting now."""
    range_start = datetime.now(timezone.utc)
    range_end = range_start + timedelta(days=days or settings.SUGGEST_RANGE_DAYS)
    working_hours = slot_service.WorkingHours(
        days=frozenset(settings.working_days_list),
        start=settings.working_start_time,
        end=settings.working_end_time,
        timezone=settings.DEFAULT_TIMEZONE,
    )

    db = SessionLocal()
    try:
        search = slot_service.suggest_time_slots(
            db,
            consultant_id=UUID(consultant_id),
            duration_minutes=duration,
            range_start=range_start,
            range_end=range_end,
            working_hours=working_hours,
            buffer_minutes=settings.SUGGEST_BUFFER_MINUTES,
            step_minutes=settings.SUGGEST_STEP_MINUTES,
            limit=settings.SUGGEST_LIMIT,
        )
        slots = list(search)
        if not slots:
            click.echo("No free slots in range")
            return
        for slot in slots:
            click.echo(f"{slot.start.isoformat()} - {slot.end.isoformat()}")
    except SchedulingError as e:
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
