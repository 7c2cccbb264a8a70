"""FastAPI dependencies for database access and caller identity."""

from typing import Generator
from uuid import UUID

from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import Session

from agenda.db.session import SessionLocal


# Header names
ACTOR_HEADER = "X-Actor-Id"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(
    x_actor_id: str | None = Header(None, alias=ACTOR_HEADER),
) -> UUID:
    """
    Acting user id, resolved upstream by the auth gateway.

    Raises:
        HTTPException 401: header missing or malformed
    """
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return UUID(x_actor_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid actor id")


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
