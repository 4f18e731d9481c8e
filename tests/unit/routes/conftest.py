"""
Fixtures for API route tests.

The startup hook is not run: tests place their own client and scheduler on
app.state and point get_db_engine at a per-test SQLite store.
"""

from __future__ import annotations

from typing import Generator
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sync_guesty.dependencies import get_db_engine
from sync_guesty.main import app
from sync_guesty.services.scheduler import SyncScheduler


@pytest.fixture
def scheduler() -> Mock:
    return Mock(spec=SyncScheduler)


@pytest.fixture
def api_client(
    db_engine: Engine, mock_client: Mock, scheduler: Mock
) -> Generator[TestClient, None, None]:
    """TestClient with the engine overridden and mocks on app.state."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    app.state.guesty_client = mock_client
    app.state.scheduler = scheduler
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.guesty_client = None
        app.state.scheduler = None


@pytest.fixture
def unconfigured_client(db_engine: Engine) -> Generator[TestClient, None, None]:
    """TestClient for an app whose Guesty client failed to configure."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    app.state.guesty_client = None
    app.state.scheduler = None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


