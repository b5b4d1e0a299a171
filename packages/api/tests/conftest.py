# This project was developed with assistance from AI tools.
"""Shared fixtures for API tests.

The real app from ``docflow.main`` is a module singleton. ``_clean_overrides``
clears dependency_overrides after every test so one test's caller or session
never leaks into the next.
"""

from unittest.mock import AsyncMock

import pytest
from docflow_db import get_db
from fastapi import Request
from fastapi.testclient import TestClient

from docflow.main import app as real_app
from docflow.middleware.auth import get_current_user
from docflow.schemas.auth import UserContext
from docflow.services.notifications import get_notification_dispatcher
from factories import make_mock_dispatcher


@pytest.fixture(autouse=True)
def _clean_overrides():
    """Clear app dependency overrides after each test."""
    yield
    real_app.dependency_overrides.clear()


@pytest.fixture
def app():
    """Return the real FastAPI app with all routers mounted."""
    return real_app


@pytest.fixture
def make_client(app):
    """Factory fixture: override caller, DB session and dispatcher; return TestClient."""

    def _make(user: UserContext, session: AsyncMock | None = None, dispatcher=None) -> TestClient:
        session = session or AsyncMock()
        dispatcher = dispatcher or make_mock_dispatcher()

        async def fake_user(request: Request):
            return user

        async def fake_db():
            yield session

        app.dependency_overrides[get_current_user] = fake_user
        app.dependency_overrides[get_db] = fake_db
        app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
        return TestClient(app, raise_server_exceptions=False)

    return _make
