# This project was developed with assistance from AI tools.
"""Tests for JWT authentication middleware."""

import jwt
import pytest
from docflow_db.enums import UserRole
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from docflow.core.config import settings
from docflow.middleware import auth
from docflow.middleware.auth import CurrentUser, _resolve_role, require_roles
from docflow.schemas.auth import TokenPayload


def _me_app():
    app = FastAPI()

    @app.get("/me")
    async def me(user: CurrentUser):
        return {"user_id": user.user_id, "role": user.role.value, "name": user.name}

    return app


# ---------------------------------------------------------------------------
# AUTH_DISABLED bypass
# ---------------------------------------------------------------------------


def test_auth_disabled_returns_dev_admin(monkeypatch):
    """When AUTH_DISABLED=true, any request gets a dev admin user."""
    monkeypatch.setattr(settings, "AUTH_DISABLED", True)

    resp = TestClient(_me_app()).get("/me")

    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == "dev-user"
    assert body["role"] == "admin"


# ---------------------------------------------------------------------------
# Missing / malformed token
# ---------------------------------------------------------------------------


def test_missing_token_returns_401(monkeypatch):
    """A request with no Authorization header should get 401."""
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)

    resp = TestClient(_me_app()).get("/me")

    assert resp.status_code == 401
    assert "Missing authentication token" in resp.json()["detail"]
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_non_bearer_header_treated_as_missing(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)

    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Basic abc"})

    assert resp.status_code == 401
    assert "Missing authentication token" in resp.json()["detail"]


def test_invalid_token_returns_401(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)

    def _reject(token):
        raise jwt.InvalidTokenError("bad signature")

    monkeypatch.setattr(auth, "_decode_token", _reject)

    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Bearer abc"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_expired_token_returns_401(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)

    def _expired(token):
        raise jwt.ExpiredSignatureError("expired")

    monkeypatch.setattr(auth, "_decode_token", _expired)

    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Bearer abc"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token has expired"


def test_valid_token_builds_user_context(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)
    payload = TokenPayload(
        sub="rev-1",
        email="rev-1@docflow.local",
        preferred_username="rev1",
        realm_access={"roles": ["offline_access"]},
    )
    monkeypatch.setattr(auth, "_decode_token", lambda token: payload)

    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Bearer abc"})

    assert resp.status_code == 200
    assert resp.json() == {"user_id": "rev-1", "role": "user", "name": "rev1"}


# ---------------------------------------------------------------------------
# Role resolution
# ---------------------------------------------------------------------------


def test_resolve_role_admin():
    payload = TokenPayload(
        sub="user-1",
        realm_access={"roles": ["offline_access", "admin", "uma_authorization"]},
    )
    assert _resolve_role(payload) == UserRole.ADMIN


@pytest.mark.parametrize("realm_access", [{}, {"roles": []}, {"roles": ["offline_access"]}])
def test_resolve_role_defaults_to_user(realm_access):
    """Every authenticated user may act as an approver."""
    payload = TokenPayload(sub="user-1", realm_access=realm_access)
    assert _resolve_role(payload) == UserRole.USER


# ---------------------------------------------------------------------------
# require_roles dependency
# ---------------------------------------------------------------------------


def test_require_roles_rejects_wrong_role(monkeypatch):
    """require_roles returns 403 when user's role is not in allowed set."""
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)
    payload = TokenPayload(sub="rev-1", realm_access={"roles": []})
    monkeypatch.setattr(auth, "_decode_token", lambda token: payload)

    app = FastAPI()

    @app.get("/admin-only", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    async def admin_only(user: CurrentUser):
        return {"ok": True}

    resp = TestClient(app).get("/admin-only", headers={"Authorization": "Bearer abc"})
    assert resp.status_code == 403
    assert "Insufficient permissions" in resp.json()["detail"]


def test_require_roles_allows_matching_role(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", True)

    app = FastAPI()

    @app.get("/admin-only", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    async def admin_only(user: CurrentUser):
        return {"ok": True}

    resp = TestClient(app).get("/admin-only")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
