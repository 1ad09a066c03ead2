"""Mutating operations on Emby accounts.

Every operation follows the same order: validate input, authorize the actor
for the (account, server) pair, perform the upstream change, then update the
ledger. Ledger writes after a successful upstream change are best-effort: a
failure is logged and reported as a warning, the upstream change stands.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.config import settings
from embyhub.core.errors import AuthorizationError, NotFoundError, ValidationError
from embyhub.models.panel_identity import PanelIdentity
from embyhub.models.server import Server
from embyhub.services import access_control, ledger, server_registry
from embyhub.services.adapters.base import UpstreamAccountFlags, UpstreamRejectedError
from embyhub.services.adapters.factory import get_adapter
from embyhub.services.dates import as_utc, parse_expiration, utcnow

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


@dataclass
class OpResult:
    ok: bool = True
    message: str = ""
    account: dict[str, Any] | None = None
    subscription: dict[str, Any] | None = None
    warnings: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": self.ok, "message": self.message, "warnings": self.warnings}
        if self.account is not None:
            out["account"] = self.account
        if self.subscription is not None:
            out["subscription"] = self.subscription
        if self.steps:
            out["steps"] = self.steps
        return out


def _require_actor(actor: PanelIdentity | None) -> PanelIdentity:
    if actor is None:
        raise AuthorizationError("Not allowed")
    return actor


def _validate_password(password: str | None) -> None:
    if password and len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _parse_date(value: str | date | datetime | None, required: bool = True) -> datetime | None:
    if value in (None, ""):
        if required:
            raise ValidationError("Expiration date is required")
        return None
    try:
        return parse_expiration(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid expiration date")


def _subscription_out(account_id: str, server_id: int, expiration: datetime | None, created_by: int | None) -> dict:
    return {
        "account_id": account_id,
        "server_id": server_id,
        "expiration_date": as_utc(expiration),
        "created_by": created_by,
    }


async def _server_for(db: AsyncSession, server_id: int) -> Server:
    server = await server_registry.get(db, server_id)
    if not server:
        raise NotFoundError("Server not found")
    return server


async def _authorized_server(db: AsyncSession, actor: PanelIdentity | None, account_id: str, server_id: int) -> Server:
    await access_control.ensure_can_manage(db, _require_actor(actor), account_id, server_id)
    return await _server_for(db, server_id)


async def _ledger_step(db: AsyncSession, result: OpResult, step: str, coro) -> Any:
    try:
        return await coro
    except Exception as e:
        await db.rollback()
        logger.warning("ledger step %s failed: %s", step, str(e)[:220])
        result.warnings.append(f"{step} failed: {str(e)[:220]}")
        return None


async def create_account(
    db: AsyncSession,
    actor: PanelIdentity | None,
    server_id: int,
    name: str,
    expiration_date: str | date | datetime | None,
    password: str | None = None,
    connect_email: str | None = None,
    template: str | None = None,
    is_admin: bool = False,
    libraries: list[str] | str | None = "all",
    now: datetime | None = None,
) -> OpResult:
    actor = _require_actor(actor)
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    _validate_password(password)
    expiration = _parse_date(expiration_date)
    today = (now or utcnow()).date()
    if expiration.date() < today:
        raise ValidationError("Expiration date cannot be in the past")
    if is_admin and not access_control.is_administrator(actor):
        raise AuthorizationError("Only administrators can create media server administrators")

    server = await _server_for(db, server_id)
    server_id, actor_id = server.id, actor.id
    adapter = get_adapter(server)
    template = template if template is not None else (settings.DEFAULT_ACCOUNT_TEMPLATE or None)

    created = await adapter.create_user(
        name,
        password=password or None,
        template=template,
        is_admin=bool(is_admin),
        libraries=libraries,
    )
    account_id = str(created.user.get("Id"))
    result = OpResult(message="Account created", account=created.user, steps=created.report.as_list())
    if template and not created.template_found:
        result.warnings.append(f"Template '{template}' not found; default settings applied")
    for f in created.report.failures:
        result.warnings.append(f"{f.step} failed: {f.detail}")

    email = (connect_email or "").strip()
    if email:
        try:
            await adapter.link_connect(account_id, email)
        except Exception as e:
            logger.warning("connect link failed account=%s err=%s", account_id, str(e)[:220])
            result.warnings.append(f"Emby Connect link failed: {str(e)[:220]}")

    await _ledger_step(db, result, "creator", ledger.upsert_creator(db, account_id, server_id, actor_id))
    await _ledger_step(db, result, "expiration", ledger.upsert_expiration(db, account_id, server_id, expiration, actor_id))
    entry = await _ledger_step(db, result, "ledger read", ledger.get(db, account_id, server_id))
    if entry is not None:
        result.subscription = _subscription_out(account_id, server_id, entry.expiration_date, entry.created_by)
    logger.info("account created server_id=%s account=%s by=%s", server_id, account_id, actor_id)
    return result


async def edit_account(
    db: AsyncSession,
    actor: PanelIdentity | None,
    account_id: str,
    server_id: int,
    name: str | None = None,
    password: str | None = None,
    connect_email: str | None = None,
) -> OpResult:
    """`connect_email` of "" unlinks Emby Connect; None leaves it alone."""
    name = name.strip() if name else None
    if not name and not password and connect_email is None:
        raise ValidationError("Provide at least a name, password or email")
    if name is not None and len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    _validate_password(password)

    server = await _authorized_server(db, actor, account_id, server_id)
    adapter = get_adapter(server)
    result = OpResult(message="Account updated")
    user = await adapter.update_user(account_id, name=name, password=password or None)

    if connect_email is not None:
        email = connect_email.strip()
        if email:
            await adapter.link_connect(account_id, email)
        elif user.get("ConnectUserName") or user.get("ConnectUserId"):
            await adapter.unlink_connect(account_id)
        user = await adapter.get_user(account_id)

    result.account = user
    return result


async def _upstream_flags(adapter, account_id: str) -> UpstreamAccountFlags:
    try:
        user = await adapter.get_user(account_id)
    except UpstreamRejectedError as e:
        if e.upstream_status == 404:
            raise NotFoundError("Account not found on server")
        raise
    return UpstreamAccountFlags.from_user(user)


async def delete_account(db: AsyncSession, actor: PanelIdentity | None, account_id: str, server_id: int) -> OpResult:
    server = await _authorized_server(db, actor, account_id, server_id)
    adapter = get_adapter(server)
    if (await _upstream_flags(adapter, account_id)).is_administrator:
        raise AuthorizationError("Media server administrators cannot be deleted from the panel")

    await adapter.delete_user(account_id)
    result = OpResult(message="Account deleted")
    await _ledger_step(db, result, "ledger delete", ledger.delete(db, account_id, server_id))
    logger.info("account deleted server_id=%s account=%s", server_id, account_id)
    return result


async def toggle_account(
    db: AsyncSession, actor: PanelIdentity | None, account_id: str, server_id: int, enable: bool
) -> OpResult:
    server = await _authorized_server(db, actor, account_id, server_id)
    adapter = get_adapter(server)
    if (await _upstream_flags(adapter, account_id)).is_administrator:
        raise AuthorizationError("Media server administrators cannot be toggled from the panel")

    await adapter.set_disabled(account_id, not enable)
    return OpResult(message="Account enabled" if enable else "Account disabled")


async def set_expiration(
    db: AsyncSession,
    actor: PanelIdentity | None,
    account_id: str,
    server_id: int,
    expiration_date: str | date | datetime | None,
) -> OpResult:
    """A null date clears the expiration (no subscription)."""
    expiration = _parse_date(expiration_date, required=False)
    await _authorized_server(db, actor, account_id, server_id)
    await ledger.upsert_expiration(db, account_id, server_id, expiration, actor.id)
    entry = await ledger.get(db, account_id, server_id)
    return OpResult(
        message="Expiration updated",
        subscription=_subscription_out(account_id, server_id, entry.expiration_date, entry.created_by),
    )


async def extend_subscription(
    db: AsyncSession,
    actor: PanelIdentity | None,
    account_id: str,
    server_id: int,
    months: int = 1,
    now: datetime | None = None,
) -> OpResult:
    if not isinstance(months, int) or months < 1 or months > ledger.MAX_EXTEND_MONTHS:
        raise ValidationError(f"months must be between 1 and {ledger.MAX_EXTEND_MONTHS}")
    await _authorized_server(db, actor, account_id, server_id)
    await ledger.extend(db, account_id, server_id, months, now=now)
    entry = await ledger.get(db, account_id, server_id)
    return OpResult(
        message=f"Subscription extended by {months} month(s)",
        subscription=_subscription_out(account_id, server_id, entry.expiration_date, entry.created_by),
    )


async def _session_owner(adapter, session_id: str) -> str:
    for s in await adapter.list_sessions():
        if str(s.get("Id")) == str(session_id):
            return str(s.get("UserId") or "")
    raise NotFoundError("Session not found")


async def _authorize_session(db: AsyncSession, actor: PanelIdentity | None, server_id: int, session_id: str):
    actor = _require_actor(actor)
    server = await _server_for(db, server_id)
    adapter = get_adapter(server)
    if not access_control.is_administrator(actor):
        owner = await _session_owner(adapter, session_id)
        await access_control.ensure_can_manage(db, actor, owner, server.id)
    return adapter


async def stop_session(db: AsyncSession, actor: PanelIdentity | None, server_id: int, session_id: str) -> OpResult:
    adapter = await _authorize_session(db, actor, server_id, session_id)
    stopped = await adapter.stop_playback(session_id)
    return OpResult(message="Playback stopped" if stopped else "Nothing was playing")


async def logout_session(db: AsyncSession, actor: PanelIdentity | None, server_id: int, session_id: str) -> OpResult:
    adapter = await _authorize_session(db, actor, server_id, session_id)
    report = await adapter.force_logout(session_id)
    return OpResult(
        message="Session closed",
        steps=report.as_list(),
        warnings=[f"{f.step} failed: {f.detail}" for f in report.failures],
    )


async def list_libraries(db: AsyncSession, actor: PanelIdentity | None, server_id: int) -> list[dict[str, Any]]:
    _require_actor(actor)
    server = await _server_for(db, server_id)
    folders = await get_adapter(server).list_libraries()
    return [
        {"id": f.get("ItemId") or f.get("Id"), "name": f.get("Name"), "collection_type": f.get("CollectionType")}
        for f in folders
    ]
