import pytest
from fastapi.testclient import TestClient

from api.main import app, app_state
from models import AuthUser


@pytest.fixture
def client(auth):
    app_state["auth_provider"] = auth
    yield TestClient(app)
    app_state.clear()


def test_callback_exchanges_code(client, auth):
    auth.register_oauth_code("code-123", AuthUser(id="g1", email="g1@gmail.com"))

    response = client.get("/auth/callback", params={"code": "code-123"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "signed_in"
    assert body["user_id"] == "g1"
    assert auth.current_user.id == "g1"


def test_callback_emits_signed_in(client, auth):
    seen = []
    auth.on_auth_state_change(seen.append)
    auth.register_oauth_code("code-123", AuthUser(id="g1"))

    client.get("/auth/callback", params={"code": "code-123"})

    assert [change.event.value for change in seen] == ["SIGNED_IN"]


def test_provider_error_is_bad_request(client, auth):
    response = client.get(
        "/auth/callback",
        params={"error": "access_denied", "error_description": "User denied access"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error_type"] == "OAuthError"
    assert body["message"] == "OAuth sign-in failed: User denied access"
    assert auth.calls == []


def test_missing_code_is_bad_request(client):
    response = client.get("/auth/callback")

    assert response.status_code == 400
    assert response.json()["details"]["error"] == "missing_code"


def test_rejected_code_is_unauthorized(client):
    response = client.get("/auth/callback", params={"code": "stale"})

    assert response.status_code == 401
    assert response.json()["message"] == "invalid flow state, no valid flow state found"


def test_unconfigured_provider_is_unavailable():
    app_state["auth_provider"] = None
    try:
        response = TestClient(app).get("/auth/callback", params={"code": "x"})
    finally:
        app_state.clear()

    assert response.status_code == 503
    assert response.json()["detail"] == "Auth provider not configured."


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["auth_provider_configured"] is True


def test_health_without_provider():
    app_state.clear()

    body = TestClient(app).get("/health").json()

    assert body["status"] == "unhealthy"
    assert body["auth_provider_configured"] is False
