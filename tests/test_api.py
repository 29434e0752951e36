"""
Integration tests for the account, profile and notification endpoints.

Runs the real app against a SQLite file database with a mocked Redis;
see ``conftest.py``.
"""

from __future__ import annotations

import pytest

from src.infrastructure.security import hash_token
from tests.conftest import PASSWORD, auth, create_admin, create_booking, signup


def _fixed_token(raw: str):
    return lambda: (raw, hash_token(raw))


# ── Auth ──────────────────────────────────────────────────────────────


class TestAuth:
    @pytest.mark.asyncio
    async def test_signup_returns_token_and_user(self, client):
        resp = await client.post(
            "/api/v1/auth/signup",
            json={
                "name": "Ava Thompson",
                "email": "Ava@Example.com",
                "phone": "+15550000101",
                "password": PASSWORD,
            },
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "ava@example.com"
        assert body["user"]["role"] == "user"
        assert body["user"]["is_verified"] is False
        assert "password_hash" not in body["user"]

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client):
        await signup(client, "dup@example.com", "+15550000102")
        resp = await client.post(
            "/api/v1/auth/signup",
            json={"name": "Other", "email": "dup@example.com", "phone": "+15550000103", "password": PASSWORD},
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_cannot_self_register_as_admin(self, client):
        resp = await client.post(
            "/api/v1/auth/signup",
            json={
                "name": "Mallory",
                "email": "mallory@example.com",
                "phone": "+15550000104",
                "password": PASSWORD,
                "role": "admin",
            },
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_validation_errors_list_fields(self, client):
        resp = await client.post(
            "/api/v1/auth/signup",
            json={"name": "X", "email": "not-an-email", "phone": "123", "password": "1"},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["detail"] == "Validation failed"
        fields = {e["field"] for e in body["errors"]}
        assert {"name", "email", "password"} <= fields

    @pytest.mark.asyncio
    async def test_login_and_me(self, client):
        user_id, _ = await signup(client, "liam@example.com", "+15550000105")
        resp = await client.post(
            "/api/v1/auth/login", json={"email": "liam@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        me = await client.get("/api/v1/auth/me", headers=auth(token))
        assert me.status_code == 200
        assert me.json()["id"] == user_id

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client):
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token_is_401(self, client):
        resp = await client.get("/api/v1/auth/me", headers=auth("not.a.jwt"))
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_password_then_lockout(self, client):
        await signup(client, "noah@example.com", "+15550000106")
        bad = {"email": "noah@example.com", "password": "wrong-password"}
        for _ in range(5):
            resp = await client.post("/api/v1/auth/login", json=bad)
            assert resp.status_code == 401

        # locked even with the right password
        resp = await client.post(
            "/api/v1/auth/login", json={"email": "noah@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 423

    @pytest.mark.asyncio
    async def test_unknown_email_is_401(self, client):
        resp = await client.post(
            "/api/v1/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_verify_email(self, client, monkeypatch):
        monkeypatch.setattr(
            "src.services.accounts.new_one_time_token", _fixed_token("verify-token-0001")
        )
        _, token = await signup(client, "mia@example.com", "+15550000107")

        resp = await client.post("/api/v1/auth/verify-email", json={"token": "verify-token-0001"})
        assert resp.status_code == 200
        me = await client.get("/api/v1/auth/me", headers=auth(token))
        assert me.json()["is_verified"] is True

        # single use
        again = await client.post("/api/v1/auth/verify-email", json={"token": "verify-token-0001"})
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_password_reset_flow(self, client, monkeypatch):
        await signup(client, "zoe@example.com", "+15550000108")
        monkeypatch.setattr(
            "src.services.accounts.new_one_time_token", _fixed_token("reset-token-00001")
        )

        resp = await client.post("/api/v1/auth/forgot-password", json={"email": "zoe@example.com"})
        assert resp.status_code == 200

        resp = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": "reset-token-00001", "new_password": "brand-new-pass"},
        )
        assert resp.status_code == 200

        old = await client.post(
            "/api/v1/auth/login", json={"email": "zoe@example.com", "password": PASSWORD}
        )
        assert old.status_code == 401
        new = await client.post(
            "/api/v1/auth/login", json={"email": "zoe@example.com", "password": "brand-new-pass"}
        )
        assert new.status_code == 200

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email_looks_the_same(self, client):
        resp = await client.post(
            "/api/v1/auth/forgot-password", json={"email": "nobody@example.com"}
        )
        assert resp.status_code == 200


# ── Users / profile ───────────────────────────────────────────────────


class TestUsers:
    @pytest.mark.asyncio
    async def test_update_profile_and_phone_conflict(self, client):
        await signup(client, "first@example.com", "+15550000201")
        _, token = await signup(client, "second@example.com", "+15550000202")

        resp = await client.put(
            "/api/v1/users/profile",
            json={
                "name": "Second Person",
                "emergency_contact": {"name": "Mom", "phone": "+15550000999"},
            },
            headers=auth(token),
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Second Person"
        assert resp.json()["emergency_contact"]["name"] == "Mom"

        resp = await client.put(
            "/api/v1/users/profile", json={"phone": "+15550000201"}, headers=auth(token)
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_preferences(self, client):
        _, token = await signup(client, "prefs@example.com", "+15550000203")
        resp = await client.put(
            "/api/v1/users/preferences",
            json={"notifications": {"sms": False}, "theme": "dark"},
            headers=auth(token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["theme"] == "dark"
        assert body["notifications"] == {"email": True, "sms": False, "push": True}

    @pytest.mark.asyncio
    async def test_change_password_requires_current(self, client):
        _, token = await signup(client, "pw@example.com", "+15550000204")
        resp = await client.put(
            "/api/v1/users/password",
            json={"current_password": "nope", "new_password": "another-pass"},
            headers=auth(token),
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "current_password"

    @pytest.mark.asyncio
    async def test_deleted_account_loses_access(self, client):
        _, token = await signup(client, "bye@example.com", "+15550000205")
        resp = await client.request(
            "DELETE", "/api/v1/users/account", json={"password": PASSWORD}, headers=auth(token)
        )
        assert resp.status_code == 200

        me = await client.get("/api/v1/auth/me", headers=auth(token))
        assert me.status_code == 403
        login = await client.post(
            "/api/v1/auth/login", json={"email": "bye@example.com", "password": PASSWORD}
        )
        assert login.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_look_up_users(self, client, session_factory):
        user_id, token = await signup(client, "someone@example.com", "+15550000206")
        _, admin_token = await create_admin(session_factory)

        assert (await client.get(f"/api/v1/users/{user_id}", headers=auth(token))).status_code == 403
        resp = await client.get(f"/api/v1/users/{user_id}", headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["email"] == "someone@example.com"


class TestAddresses:
    ADDRESS = {
        "label": "Home",
        "address": "1 Centre St",
        "city": "New York",
        "state": "NY",
        "zip_code": "10007",
        "country": "US",
        "lat": 40.7128,
        "lng": -74.0060,
    }

    @pytest.mark.asyncio
    async def test_default_flag_moves_and_promotes(self, client):
        _, token = await signup(client, "home@example.com", "+15550000301")
        headers = auth(token)

        first = await client.post("/api/v1/users/addresses", json=self.ADDRESS, headers=headers)
        assert first.status_code == 201
        assert first.json()["is_default"] is True  # first one always default

        second = await client.post(
            "/api/v1/users/addresses",
            json={**self.ADDRESS, "label": "Work", "type": "work", "is_default": True},
            headers=headers,
        )
        assert second.json()["is_default"] is True

        listed = (await client.get("/api/v1/users/addresses", headers=headers)).json()
        assert [a["is_default"] for a in listed] == [False, True]

        resp = await client.delete(
            f"/api/v1/users/addresses/{second.json()['id']}", headers=headers
        )
        assert resp.status_code == 200
        listed = (await client.get("/api/v1/users/addresses", headers=headers)).json()
        assert len(listed) == 1
        assert listed[0]["is_default"] is True

    @pytest.mark.asyncio
    async def test_cannot_touch_someone_elses_address(self, client):
        _, owner = await signup(client, "owner@example.com", "+15550000302")
        _, other = await signup(client, "other@example.com", "+15550000303")
        created = await client.post("/api/v1/users/addresses", json=self.ADDRESS, headers=auth(owner))

        resp = await client.put(
            f"/api/v1/users/addresses/{created.json()['id']}",
            json={"label": "Mine now"},
            headers=auth(other),
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_lock_contention_is_409(self, client, redis_mock):
        _, token = await signup(client, "busy@example.com", "+15550000304")
        redis_mock.set.return_value = False
        resp = await client.post("/api/v1/users/addresses", json=self.ADDRESS, headers=auth(token))
        assert resp.status_code == 409


# ── Notifications ─────────────────────────────────────────────────────


class TestNotifications:
    @pytest.mark.asyncio
    async def test_booking_creates_unread_notification(self, client):
        _, token = await signup(client, "notify@example.com", "+15550000401")
        await create_booking(client, token)

        resp = await client.get("/api/v1/notifications", headers=auth(token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert body["unread_count"] == 1
        assert body["items"][0]["type"] == "booking_confirmed"

        note_id = body["items"][0]["id"]
        read = await client.put(f"/api/v1/notifications/{note_id}/read", headers=auth(token))
        assert read.json()["is_read"] is True

        body = (await client.get("/api/v1/notifications", headers=auth(token))).json()
        assert body["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_read_all_and_delete(self, client):
        _, token = await signup(client, "inbox@example.com", "+15550000402")
        await create_booking(client, token)
        await create_booking(client, token)

        resp = await client.put("/api/v1/notifications/read-all", headers=auth(token))
        assert resp.json()["message"] == "2 notifications marked as read"

        items = (await client.get("/api/v1/notifications", headers=auth(token))).json()["items"]
        resp = await client.delete(f"/api/v1/notifications/{items[0]['id']}", headers=auth(token))
        assert resp.status_code == 200
        resp = await client.delete(f"/api/v1/notifications/{items[0]['id']}", headers=auth(token))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_send(self, client, session_factory):
        user_id, token = await signup(client, "promo@example.com", "+15550000403")
        _, admin_token = await create_admin(session_factory)
        payload = {"user_id": user_id, "type": "promotion", "title": "20% off", "message": "This weekend only."}

        assert (
            await client.post("/api/v1/notifications/send", json=payload, headers=auth(token))
        ).status_code == 403
        resp = await client.post("/api/v1/notifications/send", json=payload, headers=auth(admin_token))
        assert resp.status_code == 201

        body = (await client.get("/api/v1/notifications", headers=auth(token))).json()
        assert body["items"][0]["title"] == "20% off"

    @pytest.mark.asyncio
    async def test_channel_preferences(self, client):
        _, token = await signup(client, "channels@example.com", "+15550000404")
        resp = await client.put(
            "/api/v1/notifications/preferences", json={"push": False}, headers=auth(token)
        )
        assert resp.json() == {"email": True, "sms": True, "push": False}
        resp = await client.get("/api/v1/notifications/preferences", headers=auth(token))
        assert resp.json()["push"] is False

    @pytest.mark.asyncio
    async def test_test_email_without_relay_is_502(self, client):
        _, token = await signup(client, "relay@example.com", "+15550000405")
        resp = await client.post("/api/v1/notifications/test", headers=auth(token))
        assert resp.status_code == 502


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/v1/admin/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
