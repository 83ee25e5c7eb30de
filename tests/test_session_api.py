"""HTTP contract of /session/*."""

import logging

import pytest
from jose import jwt
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.config import settings
from app.services import session_store


def _db_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("connection refused"))


async def test_register_then_reuse(client):
    first = await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})
    second = await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["status"] == "admitted"
    assert "reused" not in first.json()

    assert second.status_code == 200
    assert second.json()["reused"] is True
    assert second.json()["session_id"] == first.json()["session_id"]


async def test_register_fourth_device_evicts(client):
    ids = []
    for i in range(3):
        resp = await client.post("/session/register", json={"user_id": "u1", "device_id": f"d{i}"})
        ids.append(resp.json()["session_id"])

    resp = await client.post("/session/register", json={"user_id": "u1", "device_id": "d3"})

    assert resp.status_code == 200
    assert resp.json()["evicted_session_id"] == ids[0]


async def test_register_seat_limit_when_eviction_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "EVICTION_ENABLED", False)
    for i in range(3):
        await client.post("/session/register", json={"user_id": "u1", "device_id": f"d{i}"})

    resp = await client.post("/session/register", json={"user_id": "u1", "device_id": "d3"})

    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "error": "Seat limit reached (3 devices maximum)",
        "reason": "seat-limit",
    }


@pytest.mark.parametrize(
    "body, message",
    [
        ({"device_id": "d1"}, "Missing user_id"),
        ({"user_id": "u1"}, "Missing device_id"),
        ({}, "Missing user_id or device_id"),
        ({"user_id": "", "device_id": ""}, "Missing user_id or device_id"),
    ],
)
async def test_register_missing_fields(client, body, message):
    resp = await client.post("/session/register", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": message}


async def test_register_malformed_body(client):
    resp = await client.post(
        "/session/register",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


async def test_register_store_error_is_generic_500(client, monkeypatch):
    monkeypatch.setattr(session_store, "list_active", _db_down)

    resp = await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Session store unavailable"}
    assert "connection refused" not in resp.text


async def test_register_persistent_conflict_is_generic_500(client, monkeypatch):
    async def _always_conflict(*args, **kwargs):
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    monkeypatch.setattr(session_store, "insert", _always_conflict)

    resp = await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Session store unavailable"}


async def test_store_error_log_carries_request_id(client, monkeypatch, caplog):
    monkeypatch.setattr(session_store, "list_active", _db_down)

    with caplog.at_level(logging.ERROR, logger="app.core.exceptions"):
        resp = await client.post(
            "/session/register",
            json={"user_id": "u1", "device_id": "d1"},
            headers={"X-Request-ID": "req-7f3a"},
        )

    assert resp.headers["X-Request-ID"] == "req-7f3a"
    assert "[req-7f3a] POST /session/register failed" in caplog.text


async def test_revoke_device(client):
    await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})

    resp = await client.post("/session/revoke", json={"device_id": "d1"})
    again = await client.post("/session/revoke", json={"device_id": "d1"})

    assert resp.json() == {"success": True, "revoked": 1}
    assert again.json() == {"success": True, "revoked": 0}

    fresh = await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})
    assert fresh.json()["status"] == "admitted"


async def test_revoke_missing_device(client):
    resp = await client.post("/session/revoke", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing device_id"


async def test_revoke_store_error(client, monkeypatch):
    monkeypatch.setattr(session_store, "revoke", _db_down)

    resp = await client.post("/session/revoke", json={"device_id": "d1"})
    assert resp.status_code == 500


async def test_logout_revokes_everything(client):
    for i in range(3):
        await client.post("/session/register", json={"user_id": "u1", "device_id": f"d{i}"})

    resp = await client.post("/session/logout", json={"user_id": "u1"})
    listing = await client.get("/session/active", params={"user_id": "u1"})

    assert resp.json() == {"success": True, "revoked": 3}
    assert listing.json()["sessions"] == []


async def test_logout_missing_user(client):
    resp = await client.post("/session/logout", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing user_id"


async def test_active_listing_and_revoke_session(client):
    for i in range(2):
        await client.post("/session/register", json={"user_id": "u1", "device_id": f"d{i}"})

    listing = await client.get("/session/active", params={"user_id": "u1"})
    body = listing.json()
    assert body["seat_limit"] == settings.SEAT_LIMIT
    assert [s["device_id"] for s in body["sessions"]] == ["d0", "d1"]
    assert "session_token" not in body["sessions"][0]

    target = body["sessions"][0]["id"]
    resp = await client.post("/session/revoke-session", json={"user_id": "u1", "session_id": target})
    assert resp.json() == {"success": True, "revoked": 1}

    listing = await client.get("/session/active", params={"user_id": "u1"})
    assert [s["device_id"] for s in listing.json()["sessions"]] == ["d1"]


async def test_active_listing_requires_user(client):
    resp = await client.get("/session/active")
    assert resp.status_code == 400


async def test_request_id_header(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"]


# ── Bearer verification ──────────────────────────────────────────────

@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET", "test-secret")
    return "test-secret"


def _token(secret: str, sub: str, **claims) -> dict[str, str]:
    token = jwt.encode({"sub": sub, **claims}, secret, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


async def test_register_with_matching_token(client, jwt_secret):
    resp = await client.post(
        "/session/register",
        json={"user_id": "u1", "device_id": "d1"},
        headers=_token(jwt_secret, "u1", aud="authenticated"),
    )
    assert resp.status_code == 200


async def test_register_with_other_users_token(client, jwt_secret):
    resp = await client.post(
        "/session/register",
        json={"user_id": "u1", "device_id": "d1"},
        headers=_token(jwt_secret, "someone-else"),
    )
    assert resp.status_code == 403


async def test_register_without_token(client, jwt_secret):
    resp = await client.post("/session/register", json={"user_id": "u1", "device_id": "d1"})
    assert resp.status_code == 401


async def test_register_with_bad_signature(client, jwt_secret):
    resp = await client.post(
        "/session/register",
        json={"user_id": "u1", "device_id": "d1"},
        headers=_token("wrong-secret", "u1"),
    )
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


async def test_device_revoke_needs_no_token(client, jwt_secret):
    resp = await client.post("/session/revoke", json={"device_id": "d1"})
    assert resp.status_code == 200
