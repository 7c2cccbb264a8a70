"""Periodic reconciliation of open change requests.

The consultant UI has no push channel; instead a caller re-reads open
requests on an interval and surfaces new arrivals when the count moves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.db.models import ScheduleChangeRequest
from agenda.services import reschedule_service

logger = logging.getLogger(__name__)


@dataclass
class MonitorResult:
    open_requests: list[ScheduleChangeRequest]
    has_new_arrivals: bool


@dataclass
class OpenRequestMonitor:
    """Tracks the last observed count of open change requests."""

    last_count: int | None = None
    seen_ids: set[UUID] = field(default_factory=set)

    def poll(self, db: Session) -> MonitorResult:
        requests = reschedule_service.list_open_change_requests(db)
        current_ids = {r.id for r in requests}

        has_new = bool(requests) and len(requests) != self.last_count
        new_ids = current_ids - self.seen_ids
        if has_new:
            logger.info(
                "Open change requests: %d (%d new since last poll)",
                len(requests),
                len(new_ids),
            )

        self.last_count = len(requests)
        self.seen_ids = current_ids
        return MonitorResult(open_requests=requests, has_new_arrivals=has_new)
