from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from psychiki.app import create_app
from psychiki.services.notification_service import InlineDispatcher, ThreadedDispatcher

from conftest import FixedClock


@pytest.fixture()
def api_clock():
    return FixedClock(datetime.now(timezone.utc))


def _client(settings, repo, mailer, clock):
    app = create_app(settings, repository=repo, mailer=mailer, dispatcher=InlineDispatcher(), clock=clock)
    return TestClient(app)


@pytest.fixture()
def client(settings, repo, mailer, api_clock):
    with _client(settings, repo, mailer, api_clock) as test_client:
        yield test_client


def _register_and_verify(client, repo, username="alice", email="alice@example.com", password="s3cret-pass"):
    assert client.post(
        "/api/auth/register", json={"username": username, "email": email, "password": password}
    ).status_code == 201
    code = repo.get_account_by_email(email).verification_code
    response = client.post("/api/auth/verify-otp", json={"email": email, "otp": code})
    assert response.status_code == 200
    return response.json()["token"]


def test_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "success"
    assert root.headers["x-content-type-options"] == "nosniff"
    assert client.get("/api/status").json()["message"] == "API is operational"


def test_register_verify_and_use_session(client, repo, mailer):
    response = client.post(
        "/api/auth/register", json={"username": "alice", "email": "alice@example.com", "password": "s3cret-pass"}
    )
    assert response.status_code == 201
    assert response.json() == {"message": "Verification code sent", "email": "alice@example.com", "is_verified": False}
    assert mailer.sent[-1][0] == "alice@example.com"

    code = repo.get_account_by_email("alice@example.com").verification_code
    verified = client.post("/api/auth/verify-otp", json={"email": "alice@example.com", "otp": code})
    assert verified.status_code == 200
    body = verified.json()
    assert set(body["user"]) == {"id", "username", "email"}

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "alice"
    assert "password_hash" not in me.json()

    replay = client.post("/api/auth/verify-otp", json={"email": "alice@example.com", "otp": code})
    assert replay.status_code == 409
    assert replay.json()["error"] == "already_verified"


def test_numeric_otp_is_accepted(client, repo):
    client.post("/api/auth/register", json={"username": "bob", "email": "bob@example.com", "password": "pw"})
    code = int(repo.get_account_by_email("bob@example.com").verification_code)
    assert client.post("/api/auth/verify-otp", json={"email": "bob@example.com", "otp": code}).status_code == 200


def test_register_validation(client):
    response = client.post("/api/auth/register", json={"username": "alice", "email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"

    not_an_object = client.post("/api/auth/register", content="[]", headers={"Content-Type": "application/json"})
    assert not_an_object.status_code == 400
    assert not_an_object.json()["error"] == "validation_error"

    wrong_type = client.post("/api/auth/register", json={"username": 1, "email": "a@example.com", "password": "pw"})
    assert wrong_type.status_code == 400


def test_register_existing_verified_conflicts(client, repo):
    _register_and_verify(client, repo)
    response = client.post(
        "/api/auth/register", json={"username": "alice", "email": "alice@example.com", "password": "again"}
    )
    assert response.status_code == 409
    assert response.json() == {"error": "conflict", "message": "User already exists"}


def test_login_pending_requires_verification(client, repo):
    client.post("/api/auth/register", json={"username": "alice", "email": "alice@example.com", "password": "pw"})
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "anything"})
    assert response.status_code == 403
    assert response.json() == {
        "error": "verification_required",
        "message": "Account not verified. Code resent.",
        "requires_verification": True,
        "email": "alice@example.com",
    }


def test_login_failures_are_indistinguishable(client, repo):
    _register_and_verify(client, repo)
    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "invalid_credentials", "message": "Invalid credentials"}


def test_login_success_and_alternate_token_header(client, repo):
    _register_and_verify(client, repo)
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
    assert response.status_code == 200
    token = response.json()["token"]
    assert client.get("/api/auth/me", headers={"x-auth-token": token}).status_code == 200


def test_protected_routes_require_token(client):
    missing = client.get("/api/steps/dashboard")
    assert missing.status_code == 401
    assert missing.json()["error"] == "auth_error"
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401
    assert client.post("/api/steps/sync", json={"date": "2024-01-01", "steps": 1}).status_code == 401


def test_steps_dashboard_and_leaderboard(client, repo, api_clock):
    token = _register_and_verify(client, repo)
    headers = {"Authorization": f"Bearer {token}"}
    today = api_clock.now().date().isoformat()

    first = client.post("/api/steps/sync", json={"date": today, "steps": 10000}, headers=headers)
    assert first.status_code == 200
    assert first.json()["calories_burned"] == 350.0
    second = client.post("/api/steps/sync", json={"date": today, "steps": 3000}, headers=headers)
    record = second.json()["record"]
    assert record["total_steps"] == 10000
    assert record["history"] == [{"date": today, "steps": 3000}]

    dashboard = client.get("/api/steps/dashboard", headers=headers).json()
    assert dashboard["today_steps"] == 3000
    assert dashboard["streak"] == 1
    assert dashboard["name"] == "alice"

    board = client.get("/api/steps/leaderboard").json()
    assert board == [{"name": "alice", "total_steps": 10000, "daily_goal": 10000}]
    assert client.get("/api/steps/leaderboard?limit=0").status_code == 400


def test_sync_validation_error(client, repo):
    token = _register_and_verify(client, repo)
    response = client.post(
        "/api/steps/sync", json={"date": "01/02/2024", "steps": 10}, headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_profile_patch(client, repo):
    token = _register_and_verify(client, repo)
    headers = {"Authorization": f"Bearer {token}"}
    response = client.patch("/api/profile", json={"display_name": "Alice", "daily_goal": 7000}, headers=headers)
    assert response.status_code == 200
    assert response.json()["display_name"] == "Alice"
    assert client.get("/api/steps/dashboard", headers=headers).json()["daily_goal"] == 7000
    assert client.patch("/api/profile", json={"email": "x@example.com"}, headers=headers).status_code == 400


def test_login_rate_limit(settings, repo, mailer, api_clock):
    tight = replace(settings, rate_limit_login=2)
    with _client(tight, repo, mailer, api_clock) as client:
        for _ in range(2):
            assert client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"}).status_code == 401
        limited = client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"})
    assert limited.status_code == 429
    assert limited.json()["error"] == "rate_limited"


def test_store_failures_are_opaque(client, repo, monkeypatch):
    def broken(**kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error at /var/lib/secret"))

    monkeypatch.setattr(repo, "find_account", broken)
    response = client.post("/api/auth/register", json={"username": "a", "email": "a@example.com", "password": "pw"})
    assert response.status_code == 500
    assert response.json() == {"error": "store_error", "message": "Internal server error"}


@pytest.mark.parametrize("steps", [10**30, "²"])
def test_sync_rejects_unstorable_steps(client, repo, steps):
    token = _register_and_verify(client, repo)
    response = client.post(
        "/api/steps/sync", json={"date": "2024-01-01", "steps": steps}, headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_app_can_be_started_twice_with_threaded_mail(settings, repo, mailer, api_clock):
    app = create_app(settings, repository=repo, mailer=mailer, dispatcher=ThreadedDispatcher(1), clock=api_clock)
    with TestClient(app) as first:
        assert first.post(
            "/api/auth/register", json={"username": "a", "email": "a@example.com", "password": "pw"}
        ).status_code == 201
    with TestClient(app) as second:
        assert second.post(
            "/api/auth/register", json={"username": "b", "email": "b@example.com", "password": "pw"}
        ).status_code == 201
    assert sorted(to for to, _, _ in mailer.sent) == ["a@example.com", "b@example.com"]
