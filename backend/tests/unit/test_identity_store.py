"""
Unit tests for panel identities and first-run bootstrap.
"""
import pytest

from embyhub.core.config import settings
from embyhub.core.errors import AuthorizationError, ValidationError
from embyhub.core.rbac import PanelRole
from embyhub.services import bootstrap, identity_store, server_registry
from tests.fixtures.factories import make_identity


class TestIdentityStore:
    async def test_verify_credentials(self, db):
        await make_identity(db, "reseller1", password="secret123")
        assert (await identity_store.verify_credentials(db, "reseller1", "secret123")).username == "reseller1"
        assert await identity_store.verify_credentials(db, "reseller1", "nope") is None
        assert await identity_store.verify_credentials(db, "ghost", "secret123") is None

    async def test_duplicate_username(self, db):
        await make_identity(db, "reseller1")
        with pytest.raises(ValidationError):
            await make_identity(db, "reseller1")

    async def test_invalid_role(self, db):
        with pytest.raises(ValidationError):
            await identity_store.create(db, "someone", "secret123", "Someone", "superuser")

    async def test_short_password(self, db):
        with pytest.raises(ValidationError):
            await identity_store.create(db, "someone", "123", "Someone", "reseller")

    async def test_change_password_requires_old(self, db):
        r = await make_identity(db, "reseller1", password="secret123")
        with pytest.raises(ValidationError):
            await identity_store.change_password(db, r.id, "wrong", "newsecret")
        await identity_store.change_password(db, r.id, "secret123", "newsecret")
        assert await identity_store.verify_credentials(db, "reseller1", "newsecret")

    async def test_admin_cannot_be_deleted(self, db):
        admin = await make_identity(db, "admin1", PanelRole.administrator)
        with pytest.raises(AuthorizationError):
            await identity_store.delete(db, admin.id)

    async def test_redact_hides_hash(self, db):
        r = await make_identity(db)
        assert "password_hash" not in identity_store.redact(r)


class TestBootstrap:
    async def test_creates_admin_once(self, db):
        first = await identity_store.ensure_bootstrap_admin(db)
        second = await identity_store.ensure_bootstrap_admin(db)
        assert first.id == second.id
        assert first.panel_role == PanelRole.administrator
        assert len(await identity_store.list_all(db)) == 1
        assert await identity_store.verify_credentials(
            db, settings.BOOTSTRAP_ADMIN_USERNAME, settings.BOOTSTRAP_ADMIN_PASSWORD
        )

    async def test_concurrent_creator_wins_without_error(self, db, monkeypatch):
        """Another worker inserts the admin between our lookup and our insert."""
        winner = await make_identity(db, settings.BOOTSTRAP_ADMIN_USERNAME, PanelRole.administrator, name="Winner")
        winner_id = winner.id
        real_lookup = identity_store.get_by_username
        calls = []

        async def stale_first_lookup(session, username):
            calls.append(username)
            if len(calls) == 1:
                return None
            return await real_lookup(session, username)

        monkeypatch.setattr(identity_store, "get_by_username", stale_first_lookup)

        result = await identity_store.ensure_bootstrap_admin(db)
        assert result.id == winner_id
        assert result.name == "Winner"
        assert len(calls) == 2
        assert len(await identity_store.list_all(db)) == 1

    async def test_default_server_seeded_only_when_empty(self, db, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_SERVER_URL", "http://emby.local:8096/")
        monkeypatch.setattr(settings, "DEFAULT_SERVER_API_KEY", "k")
        server = await bootstrap.seed_default_server(db)
        assert server.url == "http://emby.local:8096"
        assert await bootstrap.seed_default_server(db) is None
        assert len(await server_registry.list_all(db)) == 1

    async def test_no_default_server_without_url(self, db):
        assert await bootstrap.seed_default_server(db) is None
