# This project was developed with assistance from AI tools.
"""Tests for liveness and readiness probes."""

from unittest.mock import AsyncMock, MagicMock

from docflow_db import get_db_service
from fastapi.testclient import TestClient


def _client(app, healthy):
    service = MagicMock()
    service.health_check = AsyncMock(return_value=healthy)
    app.dependency_overrides[get_db_service] = lambda: service
    return TestClient(app)


def test_liveness(app):
    resp = TestClient(app).get("/health/")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_ready_when_database_answers(app):
    resp = _client(app, True).get("/health/ready")
    assert resp.status_code == 200
    assert resp.json()["database"] == "ok"


def test_degraded_when_database_down(app):
    resp = _client(app, False).get("/health/ready")
    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"
