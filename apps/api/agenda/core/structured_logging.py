"""Structured logging helpers (PHI-safe)."""

import logging
from typing import Any
from urllib.parse import urlsplit
from uuid import UUID


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for API and CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_log_context(
    *,
    event_id: UUID | str | None = None,
    consultant_id: UUID | str | None = None,
    clinic_id: UUID | str | None = None,
    request_id: UUID | str | None = None,
    actor_id: UUID | str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (ids only, never titles or reasons)."""
    context: dict[str, Any] = {}
    if event_id:
        context["event_id"] = str(event_id)
    if consultant_id:
        context["consultant_id"] = str(consultant_id)
    if clinic_id:
        context["clinic_id"] = str(clinic_id)
    if request_id:
        context["change_request_id"] = str(request_id)
    if actor_id:
        context["actor_id"] = str(actor_id)
    return context


def safe_url(url: str | None) -> str:
    """Strip query strings and credentials from a URL before logging it."""
    if not url:
        return ""
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}{parts.path}"
