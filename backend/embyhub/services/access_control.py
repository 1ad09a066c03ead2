from __future__ import annotations

from typing import Any, Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.errors import AuthorizationError
from embyhub.core.rbac import PanelRole
from embyhub.core.security import decode_session_token
from embyhub.models.panel_identity import PanelIdentity
from embyhub.models.subscription import SubscriptionEntry
from embyhub.services import identity_store, ledger


async def resolve_actor(db: AsyncSession, token: str | None) -> PanelIdentity | None:
    identity_id = decode_session_token(token)
    if identity_id is None:
        return None
    return await identity_store.get(db, identity_id)


def is_administrator(actor: PanelIdentity | None) -> bool:
    return actor is not None and actor.panel_role == PanelRole.administrator


def is_reseller(actor: PanelIdentity | None) -> bool:
    return actor is not None and actor.panel_role == PanelRole.reseller


def filter_accounts_by_role(
    actor: PanelIdentity | None,
    accounts: Iterable[dict[str, Any]],
    entries: Mapping[str, SubscriptionEntry],
) -> list[dict[str, Any]]:
    """Administrators see everything; resellers only accounts they created.

    Accounts must carry `Id` and `server_id`.
    """
    accounts = list(accounts)
    if is_administrator(actor):
        return accounts
    if not is_reseller(actor):
        return []
    out = []
    for a in accounts:
        e = entries.get(ledger.ledger_key(a.get("server_id"), str(a.get("Id"))))
        if e is not None and e.created_by == actor.id:
            out.append(a)
    return out


async def can_manage(db: AsyncSession, actor: PanelIdentity | None, account_id: str, server_id: int) -> bool:
    if is_administrator(actor):
        return True
    if not is_reseller(actor):
        return False
    entry = await ledger.get(db, account_id, server_id)
    return entry is not None and entry.created_by == actor.id


async def ensure_can_manage(db: AsyncSession, actor: PanelIdentity | None, account_id: str, server_id: int) -> None:
    if not await can_manage(db, actor, account_id, server_id):
        raise AuthorizationError("You can only manage accounts you created")


def ensure_administrator(actor: PanelIdentity | None) -> None:
    if not is_administrator(actor):
        raise AuthorizationError("Administrator only")
