"""
HTTP-level tests through the FastAPI app: auth, role gating and admin routes.
"""
from datetime import timedelta

import pytest
from httpx import Response

from embyhub.core.config import settings
from embyhub.core.rbac import PanelRole
from embyhub.services import ledger
from embyhub.services.dates import utcnow
from tests.fixtures.factories import EMBY_A, auth_headers, make_identity, make_server, make_user

API = "/api/v1"


@pytest.fixture
async def admin(db):
    return await make_identity(db, "admin1", PanelRole.administrator)


@pytest.fixture
async def reseller(db):
    return await make_identity(db, "reseller1")


class TestAuth:
    async def test_login_sets_cookie_and_returns_token(self, async_client, reseller):
        r = await async_client.post(f"{API}/auth/login", json={"username": "reseller1", "password": "secret123"})
        assert r.status_code == 200
        body = r.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "reseller"
        assert "password" not in str(body["user"]).lower()
        cookie = r.headers["set-cookie"]
        assert cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
        assert "httponly" in cookie.lower()

    async def test_wrong_password(self, async_client, reseller):
        r = await async_client.post(f"{API}/auth/login", json={"username": "reseller1", "password": "nope"})
        assert r.status_code == 401

    async def test_me_with_cookie(self, async_client, reseller):
        login = await async_client.post(f"{API}/auth/login", json={"username": "reseller1", "password": "secret123"})
        async_client.cookies.set(settings.SESSION_COOKIE_NAME, login.json()["token"])
        r = await async_client.get(f"{API}/auth/me")
        assert r.json()["authenticated"] is True
        assert r.json()["user"]["username"] == "reseller1"

    async def test_me_anonymous(self, async_client):
        r = await async_client.get(f"{API}/auth/me")
        assert r.status_code == 200
        assert r.json() == {"authenticated": False, "user": None}

    async def test_garbage_token_is_anonymous(self, async_client):
        r = await async_client.get(f"{API}/accounts", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 401

    async def test_change_password(self, async_client, reseller):
        r = await async_client.post(
            f"{API}/auth/change-password",
            json={"current_password": "secret123", "new_password": "secret456"},
            headers=auth_headers(reseller),
        )
        assert r.status_code == 200
        r = await async_client.post(f"{API}/auth/login", json={"username": "reseller1", "password": "secret456"})
        assert r.status_code == 200

    async def test_change_password_wrong_current(self, async_client, reseller):
        r = await async_client.post(
            f"{API}/auth/change-password",
            json={"current_password": "wrong-one", "new_password": "secret456"},
            headers=auth_headers(reseller),
        )
        assert r.status_code == 400


class TestAccountsRoutes:
    async def test_requires_auth(self, async_client):
        r = await async_client.get(f"{API}/accounts")
        assert r.status_code == 401

    async def test_validation_error_is_400(self, async_client, db, reseller):
        server = await make_server(db)
        r = await async_client.post(
            f"{API}/accounts",
            json={"server_id": server.id, "name": "alice", "expiration_date": "2001-01-01"},
            headers=auth_headers(reseller),
        )
        assert r.status_code == 400
        assert "past" in r.json()["detail"]

    async def test_foreign_account_is_403(self, async_client, db, reseller):
        server = await make_server(db)
        other = await make_identity(db, "reseller2")
        await ledger.upsert_creator(db, "u1", server.id, other.id)
        r = await async_client.post(
            f"{API}/accounts/{server.id}/u1/toggle", json={"enable": False}, headers=auth_headers(reseller)
        )
        assert r.status_code == 403

    async def test_list_for_reseller(self, async_client, db, emby_mock, reseller):
        server = await make_server(db)
        emby_mock.get(f"{EMBY_A}/Users").mock(return_value=Response(200, json=[make_user("u1"), make_user("u2")]))
        emby_mock.get(f"{EMBY_A}/Sessions").mock(return_value=Response(200, json=[]))
        await ledger.upsert_expiration(db, "u1", server.id, utcnow() + timedelta(days=20), reseller.id)

        r = await async_client.get(f"{API}/accounts", headers=auth_headers(reseller))
        assert r.status_code == 200
        rows = r.json()
        assert [row["id"] for row in rows] == ["u1"]
        assert rows[0]["subscription_status"] == "active"

    async def test_upstream_failure_is_reported(self, async_client, db, emby_mock, admin):
        server = await make_server(db)
        emby_mock.get(f"{EMBY_A}/Users/u1").mock(return_value=Response(500, text="emby exploded"))
        r = await async_client.post(
            f"{API}/accounts/{server.id}/u1/toggle", json={"enable": False}, headers=auth_headers(admin)
        )
        assert r.status_code == 500
        assert r.json()["detail"] == "emby exploded"


class TestSubscriptionsMap:
    async def test_every_identity_gets_the_full_map(self, async_client, db, admin, reseller):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "u1", server.id, utcnow() + timedelta(days=5), reseller.id)
        await ledger.upsert_expiration(db, "u2", server.id, utcnow() + timedelta(days=5), admin.id)

        for who in (reseller, admin):
            rows = (await async_client.get(f"{API}/subscriptions", headers=auth_headers(who))).json()
            assert set(rows) == {f"{server.id}::u1", f"{server.id}::u2"}
            assert rows[f"{server.id}::u1"]["created_by"] == reseller.id
            assert rows[f"{server.id}::u2"]["created_by"] == admin.id

    async def test_requires_auth(self, async_client):
        r = await async_client.get(f"{API}/subscriptions")
        assert r.status_code == 401


class TestAdminServers:
    async def test_reseller_is_forbidden(self, async_client, reseller):
        r = await async_client.get(f"{API}/admin/servers", headers=auth_headers(reseller))
        assert r.status_code == 403

    async def test_create_tests_connection_and_redacts_key(self, async_client, emby_mock, admin):
        info = emby_mock.get("http://new.test/System/Info").mock(
            return_value=Response(200, json={"ServerName": "New", "Version": "4.8"})
        )
        r = await async_client.post(
            f"{API}/admin/servers",
            json={"name": "New", "url": "http://new.test/", "api_key": "very-secret"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 200
        assert info.called
        body = r.json()
        assert body["api_key"] == "***HIDDEN***"
        assert body["url"] == "http://new.test"

        listed = (await async_client.get(f"{API}/admin/servers", headers=auth_headers(admin))).json()
        assert listed["total"] == 1
        assert "very-secret" not in str(listed)

    async def test_unreachable_server_is_not_saved(self, async_client, emby_mock, admin):
        emby_mock.get("http://new.test/System/Info").mock(return_value=Response(401, text="Access token is invalid"))
        r = await async_client.post(
            f"{API}/admin/servers",
            json={"name": "New", "url": "http://new.test", "api_key": "bad"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 400
        listed = (await async_client.get(f"{API}/admin/servers", headers=auth_headers(admin))).json()
        assert listed["total"] == 0

    async def test_rename_skips_connection_test(self, async_client, db, emby_mock, admin):
        server = await make_server(db)
        info = emby_mock.get(f"{EMBY_A}/System/Info").mock(return_value=Response(200, json={}))
        r = await async_client.patch(
            f"{API}/admin/servers/{server.id}", json={"name": "Renamed"}, headers=auth_headers(admin)
        )
        assert r.status_code == 200
        assert r.json()["name"] == "Renamed"
        assert not info.called

    async def test_public_server_list(self, async_client, db, reseller):
        await make_server(db, "A")
        await make_server(db, "Off", url="http://off.test", enabled=False)
        r = await async_client.get(f"{API}/servers", headers=auth_headers(reseller))
        assert [s["name"] for s in r.json()] == ["A"]
        assert "api_key" not in r.json()[0]


class TestAdminIdentities:
    async def test_create_and_list(self, async_client, admin):
        r = await async_client.post(
            f"{API}/admin/identities",
            json={"username": "reseller9", "password": "secret123", "name": "Nine", "role": "reseller"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 200
        listed = (await async_client.get(f"{API}/admin/identities", headers=auth_headers(admin))).json()
        assert {i["username"] for i in listed["items"]} == {"admin1", "reseller9"}

    async def test_duplicate_username(self, async_client, admin, reseller):
        r = await async_client.post(
            f"{API}/admin/identities",
            json={"username": "reseller1", "password": "secret123", "name": "Dup", "role": "reseller"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 400

    async def test_administrators_cannot_be_deleted(self, async_client, db, admin):
        other = await make_identity(db, "admin2", PanelRole.administrator)
        r = await async_client.delete(f"{API}/admin/identities/{other.id}", headers=auth_headers(admin))
        assert r.status_code == 403

    async def test_delete_reseller(self, async_client, admin, reseller):
        r = await async_client.delete(f"{API}/admin/identities/{reseller.id}", headers=auth_headers(admin))
        assert r.status_code == 200
        r = await async_client.get(f"{API}/admin/identities/{reseller.id}", headers=auth_headers(admin))
        assert r.status_code == 404


class TestSweepRoutes:
    async def test_cron_open_without_secret(self, async_client, db):
        r = await async_client.get(f"{API}/cron/disable-expired")
        assert r.status_code == 200
        assert r.json()["dry_run"] is False

    async def test_cron_secret_mismatch(self, async_client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        r = await async_client.post(f"{API}/cron/disable-expired", headers={"Authorization": "Bearer wrong"})
        assert r.status_code == 401
        r = await async_client.post(f"{API}/cron/disable-expired")
        assert r.status_code == 401

    async def test_cron_secret_match(self, async_client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        r = await async_client.post(f"{API}/cron/disable-expired", headers={"Authorization": "Bearer s3cret"})
        assert r.status_code == 200

    async def test_manual_sweep_is_admin_only(self, async_client, reseller, admin):
        r = await async_client.post(f"{API}/sweep", json={"dry_run": True}, headers=auth_headers(reseller))
        assert r.status_code == 403
        r = await async_client.post(f"{API}/sweep", json={"dry_run": True}, headers=auth_headers(admin))
        assert r.status_code == 200
        assert r.json()["candidates"] == []
