"""Subscription ledger: the panel's own record of who created an account and when it expires.

Rows are keyed by (account_id, server_id) and only ever written through
single-statement upserts, so two requests racing on the same account never
produce a duplicate.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.errors import ValidationError
from embyhub.models.subscription import SubscriptionEntry
from embyhub.services.dates import add_months, as_utc, days_expired, utcnow

MAX_EXTEND_MONTHS = 120


def ledger_key(server_id: int, account_id: str) -> str:
    return f"{server_id}::{account_id}"


@dataclass
class ExpiredEntry:
    account_id: str
    server_id: int
    created_by: int | None
    expiration_date: datetime
    days_expired: int


def _insert_for(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for ledger upsert: {dialect}")


async def _upsert(db: AsyncSession, account_id: str, server_id: int, values: dict[str, Any], update_cols: list[str]) -> None:
    insert = _insert_for(db)
    stmt = insert(SubscriptionEntry).values(account_id=str(account_id), server_id=int(server_id), **values)
    set_ = {c: stmt.excluded[c] for c in update_cols}
    set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["account_id", "server_id"], set_=set_)
    await db.execute(stmt)
    await db.commit()


async def get_all(db: AsyncSession) -> dict[str, SubscriptionEntry]:
    q = await db.execute(select(SubscriptionEntry).execution_options(populate_existing=True))
    return {ledger_key(e.server_id, e.account_id): e for e in q.scalars().all()}


async def get(db: AsyncSession, account_id: str, server_id: int) -> SubscriptionEntry | None:
    q = await db.execute(
        select(SubscriptionEntry)
        .where(SubscriptionEntry.account_id == str(account_id), SubscriptionEntry.server_id == int(server_id))
        .execution_options(populate_existing=True)
    )
    return q.scalar_one_or_none()


async def upsert_creator(db: AsyncSession, account_id: str, server_id: int, creator_id: int | None) -> None:
    await _upsert(db, account_id, server_id, {"created_by": creator_id}, ["created_by"])


async def upsert_expiration(
    db: AsyncSession,
    account_id: str,
    server_id: int,
    expiration: datetime | None,
    creator_id: int | None = None,
) -> None:
    """Set the expiration; `creator_id` only lands when the row is new."""
    await _upsert(
        db,
        account_id,
        server_id,
        {"expiration_date": as_utc(expiration), "created_by": creator_id},
        ["expiration_date"],
    )


async def extend(
    db: AsyncSession,
    account_id: str,
    server_id: int,
    months: int = 1,
    now: datetime | None = None,
) -> datetime:
    try:
        months = int(months)
    except (TypeError, ValueError):
        raise ValidationError("months must be an integer")
    if months < 1 or months > MAX_EXTEND_MONTHS:
        raise ValidationError(f"months must be between 1 and {MAX_EXTEND_MONTHS}")

    entry = await get(db, account_id, server_id)
    base = as_utc(entry.expiration_date) if entry and entry.expiration_date else (now or utcnow())
    new_exp = add_months(base, months)
    await upsert_expiration(db, account_id, server_id, new_exp)
    return new_exp


async def delete(db: AsyncSession, account_id: str, server_id: int) -> bool:
    res = await db.execute(
        sa_delete(SubscriptionEntry).where(
            SubscriptionEntry.account_id == str(account_id),
            SubscriptionEntry.server_id == int(server_id),
        )
    )
    await db.commit()
    return bool(res.rowcount)


async def list_expired(db: AsyncSession, now: datetime | None = None) -> list[ExpiredEntry]:
    now = as_utc(now) if now else utcnow()
    q = await db.execute(
        select(SubscriptionEntry)
        .where(SubscriptionEntry.expiration_date.is_not(None), SubscriptionEntry.expiration_date < now)
        .order_by(SubscriptionEntry.expiration_date.asc())
    )
    out: list[ExpiredEntry] = []
    for e in q.scalars().all():
        exp = as_utc(e.expiration_date)
        # SQLite compares stored text, so recheck in Python
        if exp >= now:
            continue
        out.append(
            ExpiredEntry(
                account_id=e.account_id,
                server_id=e.server_id,
                created_by=e.created_by,
                expiration_date=exp,
                days_expired=days_expired(exp, now),
            )
        )
    return out
