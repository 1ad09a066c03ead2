"""
Unit tests for the subscription ledger.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from embyhub.core.errors import ValidationError
from embyhub.core.rbac import PanelRole
from embyhub.models.subscription import SubscriptionEntry
from embyhub.services import identity_store, ledger, server_registry
from embyhub.services.dates import as_utc
from tests.fixtures.factories import make_identity, make_server

UTC = timezone.utc
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


async def _row_count(db) -> int:
    return int((await db.execute(select(func.count()).select_from(SubscriptionEntry))).scalar_one())


class TestUpserts:
    async def test_repeated_upserts_keep_one_row(self, db):
        server = await make_server(db)
        creator = await make_identity(db)
        await ledger.upsert_creator(db, "u1", server.id, creator.id)
        await ledger.upsert_expiration(db, "u1", server.id, NOW)
        await ledger.upsert_expiration(db, "u1", server.id, NOW + timedelta(days=3))
        assert await _row_count(db) == 1

        entry = await ledger.get(db, "u1", server.id)
        assert entry.created_by == creator.id
        assert as_utc(entry.expiration_date) == NOW + timedelta(days=3)

    async def test_same_account_on_two_servers(self, db):
        a = await make_server(db, "A")
        b = await make_server(db, "B", url="http://emby-b.test")
        await ledger.upsert_expiration(db, "u1", a.id, NOW)
        await ledger.upsert_expiration(db, "u1", b.id, NOW)
        assert set((await ledger.get_all(db)).keys()) == {f"{a.id}::u1", f"{b.id}::u1"}

    async def test_expiration_preserves_creator(self, db):
        server = await make_server(db)
        creator = await make_identity(db)
        other = await make_identity(db, "reseller2")
        await ledger.upsert_expiration(db, "u1", server.id, NOW, creator.id)
        await ledger.upsert_expiration(db, "u1", server.id, NOW + timedelta(days=30), other.id)

        entry = await ledger.get(db, "u1", server.id)
        assert entry.created_by == creator.id
        assert as_utc(entry.expiration_date) == NOW + timedelta(days=30)

    async def test_clearing_expiration(self, db):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "u1", server.id, NOW)
        await ledger.upsert_expiration(db, "u1", server.id, None)
        assert (await ledger.get(db, "u1", server.id)).expiration_date is None


class TestExtend:
    async def test_extends_from_existing_date(self, db):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "u1", server.id, datetime(2025, 1, 10, tzinfo=UTC))
        new_exp = await ledger.extend(db, "u1", server.id, 2, now=NOW)
        assert new_exp == datetime(2025, 3, 10, tzinfo=UTC)
        assert as_utc((await ledger.get(db, "u1", server.id)).expiration_date) == datetime(2025, 3, 10, tzinfo=UTC)

    async def test_extends_past_date_from_that_date(self, db):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "u1", server.id, datetime(2024, 12, 31, tzinfo=UTC))
        assert await ledger.extend(db, "u1", server.id, 2, now=NOW) == datetime(2025, 2, 28, tzinfo=UTC)

    async def test_without_entry_starts_from_now(self, db):
        server = await make_server(db)
        new_exp = await ledger.extend(db, "u9", server.id, 1, now=NOW)
        assert new_exp == datetime(2025, 7, 15, 12, 0, tzinfo=UTC)
        entry = await ledger.get(db, "u9", server.id)
        assert entry is not None
        assert entry.created_by is None

    @pytest.mark.parametrize("months", [0, -1, 121])
    async def test_rejects_out_of_range(self, db, months):
        server = await make_server(db)
        with pytest.raises(ValidationError):
            await ledger.extend(db, "u1", server.id, months, now=NOW)


class TestListExpired:
    async def test_only_past_non_null(self, db):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "past", server.id, NOW - timedelta(days=3, hours=2))
        await ledger.upsert_expiration(db, "future", server.id, NOW + timedelta(days=1))
        await ledger.upsert_creator(db, "none", server.id, None)

        expired = await ledger.list_expired(db, NOW)
        assert [e.account_id for e in expired] == ["past"]
        assert expired[0].days_expired == 3

    async def test_boundary_is_not_expired(self, db):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "edge", server.id, NOW)
        assert await ledger.list_expired(db, NOW) == []


class TestReferentialIntegrity:
    async def test_server_delete_cascades(self, db):
        a = await make_server(db, "A")
        b = await make_server(db, "B", url="http://emby-b.test")
        await ledger.upsert_expiration(db, "u1", a.id, NOW)
        await ledger.upsert_expiration(db, "u2", b.id, NOW)

        await server_registry.delete(db, a)
        assert list((await ledger.get_all(db)).keys()) == [f"{b.id}::u2"]

    async def test_creator_delete_nulls_reference(self, db):
        server = await make_server(db)
        reseller = await make_identity(db, role=PanelRole.reseller)
        await ledger.upsert_creator(db, "u1", server.id, reseller.id)

        await identity_store.delete(db, reseller.id)
        entry = await ledger.get(db, "u1", server.id)
        assert entry is not None
        assert entry.created_by is None

    async def test_delete(self, db):
        server = await make_server(db)
        await ledger.upsert_expiration(db, "u1", server.id, NOW)
        assert await ledger.delete(db, "u1", server.id) is True
        assert await ledger.delete(db, "u1", server.id) is False
