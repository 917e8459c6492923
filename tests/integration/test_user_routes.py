import time
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import settings
from app.routes.bookings import router as bookings_router
from app.routes.user import router as user_router

USER_ID = "user-123"
JWT_SECRET = "user-routes-jwt-secret-0123456789abcdef"
START = datetime.now(UTC).replace(microsecond=0) + timedelta(days=3)


def _create_app(override_services, apply_auth_override=None):
    app = FastAPI()
    if apply_auth_override:
        apply_auth_override(app)
    override_services(app)
    app.include_router(user_router)
    app.include_router(bookings_router)
    return app


def _token(**claims):
    payload = {"aud": "authenticated", "exp": int(time.time()) + 300, **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_AUDIENCE", "authenticated")


def test_new_account_is_provisioned_on_first_request(jwt_secret, override_services, repository):
    client = TestClient(_create_app(override_services))
    headers = {"Authorization": f"Bearer {_token(sub='fresh-user', email='new@example.com')}"}

    bookings = client.get("/bookings", headers=headers)
    me = client.get("/user/me", headers=headers)

    assert bookings.status_code == 200
    assert bookings.json()["total_count"] == 0
    assert me.status_code == 200
    assert me.json()["email"] == "new@example.com"
    assert me.json()["connection"]["status"] == "disconnected"
    assert "fresh-user" in repository.users


def test_unknown_account_without_email_is_not_found(jwt_secret, override_services, repository):
    client = TestClient(_create_app(override_services))
    headers = {"Authorization": f"Bearer {_token(sub='fresh-user')}"}

    response = client.get("/user/me", headers=headers)

    assert response.status_code == 404
    assert "fresh-user" not in repository.users


def test_me_hides_tokens(apply_auth_override, override_services, connected_user):
    client = TestClient(_create_app(override_services, apply_auth_override))

    response = client.get("/user/me")

    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == USER_ID
    assert payload["connection"]["provider"] == "microsoft"
    assert "access-0" not in response.text
    assert "refresh-0" not in response.text


def test_privacy_toggle_makes_new_bookings_private(
    apply_auth_override, override_services, disconnected_user
):
    client = TestClient(_create_app(override_services, apply_auth_override))

    enabled = client.put("/user/privacy", json={"is_private_mode": True})
    booking = client.post(
        "/bookings",
        json={
            "title": "Therapy",
            "start_time": START.isoformat(),
            "end_time": (START + timedelta(minutes=50)).isoformat(),
        },
    )
    disabled = client.put("/user/privacy", json={"is_private_mode": False})

    assert enabled.status_code == 200
    assert enabled.json()["is_private_mode"] is True
    assert booking.status_code == 201
    assert booking.json()["booking"]["is_private"] is True
    assert disabled.json()["is_private_mode"] is False


def test_privacy_requires_boolean(apply_auth_override, override_services, disconnected_user):
    client = TestClient(_create_app(override_services, apply_auth_override))

    response = client.put("/user/privacy", json={})

    assert response.status_code == 422
