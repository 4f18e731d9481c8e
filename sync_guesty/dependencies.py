"""
FastAPI dependency injection providers.

Routes never reach for module globals: the engine, the Guesty client and the
scheduler all come in through these providers, and tests replace them with
app.dependency_overrides.
"""

from __future__ import annotations

from typing import Generator

from fastapi import HTTPException, Request, status
from sqlalchemy.engine import Engine

from sync_guesty.db.engine import engine
from sync_guesty.network.client import GuestyClient
from sync_guesty.services.scheduler import SyncScheduler


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the database engine.

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
        >>> client = TestClient(app)
    """
    yield engine


def get_guesty_client(request: Request) -> GuestyClient:
    """
    Provide the process-wide Guesty client built at startup.

    Raises:
        HTTPException: 503 when the client could not be configured
    """
    client = getattr(request.app.state, "guesty_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Guesty client not configured",
        )
    return client


def get_scheduler(request: Request) -> SyncScheduler:
    """
    Provide the sync scheduler built at startup.

    Raises:
        HTTPException: 503 when no scheduler exists (client not configured)
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync scheduler not available",
        )
    return scheduler
