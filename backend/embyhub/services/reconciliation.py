"""Join the ledger with live state from every enabled Emby server.

Nothing here writes to the ledger. The only upstream side effect is the
disable call made by a non-dry-run sweep.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.models.panel_identity import PanelIdentity
from embyhub.services import access_control, identity_store, ledger, server_registry
from embyhub.services.adapters.base import UpstreamAccountFlags
from embyhub.services.adapters.factory import get_adapter
from embyhub.services.dates import as_utc, days_since, parse_upstream_datetime, utcnow
from embyhub.services.fanout import fan_out
from embyhub.services.status_policy import session_is_live, subscription_status
from embyhub.services.task_metrics import SweepStats

logger = logging.getLogger(__name__)

UNKNOWN_CREATOR = "Unknown"


def _session_summary(s: dict[str, Any]) -> dict[str, Any]:
    playing = s.get("NowPlayingItem") or None
    return {
        "id": s.get("Id"),
        "device_name": s.get("DeviceName"),
        "client": s.get("Client"),
        "application_version": s.get("ApplicationVersion"),
        "server_id": s.get("server_id"),
        "now_playing": {"name": playing.get("Name"), "type": playing.get("Type")} if playing else None,
        "last_activity": s.get("LastActivityDate"),
    }


async def _creator_names(db: AsyncSession) -> dict[int, str]:
    return {i.id: i.name for i in await identity_store.list_all(db)}


async def list_enriched_accounts(
    db: AsyncSession,
    actor: PanelIdentity | None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    now = now or utcnow()
    servers = await server_registry.list_enabled(db)
    if not servers:
        return []

    users, sessions = await asyncio.gather(
        fan_out(servers, lambda a: a.list_users()),
        fan_out(servers, lambda a: a.list_sessions()),
    )
    entries = await ledger.get_all(db)

    # upstream administrators never appear in the panel
    users = [u for u in users if not UpstreamAccountFlags.from_user(u).is_administrator]
    users = access_control.filter_accounts_by_role(actor, users, entries)
    names = await _creator_names(db)

    sessions_by_key: dict[tuple[int, str], list[dict[str, Any]]] = {}
    for s in sessions:
        sessions_by_key.setdefault((s.get("server_id"), str(s.get("UserId") or "")), []).append(s)

    out: list[dict[str, Any]] = []
    for u in users:
        account_id = str(u.get("Id"))
        server_id = u.get("server_id")
        flags = UpstreamAccountFlags.from_user(u)
        live = [s for s in sessions_by_key.get((server_id, account_id), []) if session_is_live(s, now)]
        entry = entries.get(ledger.ledger_key(server_id, account_id))
        expiration = as_utc(entry.expiration_date) if entry else None
        status, left = subscription_status(expiration, flags, now)
        created_by = entry.created_by if entry else None

        out.append(
            {
                "id": account_id,
                "name": u.get("Name"),
                "server_id": server_id,
                "server_name": u.get("server_name"),
                "last_activity_date": u.get("LastActivityDate"),
                "last_login_date": u.get("LastLoginDate"),
                "is_disabled": flags.is_disabled,
                "is_administrator": flags.is_administrator,
                "is_online": bool(live),
                "active_sessions": [_session_summary(s) for s in live],
                "days_inactive": days_since(parse_upstream_datetime(u.get("LastActivityDate")), now),
                "has_connect": bool(u.get("ConnectUserId") or u.get("ConnectUserName")),
                "connect_email": u.get("ConnectUserName") or None,
                "expiration_date": expiration,
                "subscription_status": status.value,
                "days_left": left,
                "created_by": created_by,
                "creator_name": (names.get(created_by) or UNKNOWN_CREATOR) if created_by is not None else None,
            }
        )
    return out


@dataclass
class SweepCandidate:
    account_id: str
    name: str | None
    server_id: int
    server_name: str | None
    expiration_date: datetime | None
    days_expired: int | None = None
    days_inactive: int | None = None
    disabled: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.account_id,
            "name": self.name,
            "server_id": self.server_id,
            "server_name": self.server_name,
            "expiration_date": self.expiration_date,
            "days_expired": self.days_expired,
            "days_inactive": self.days_inactive,
            "disabled": self.disabled,
        }


@dataclass
class SweepResult:
    dry_run: bool
    candidates: list[SweepCandidate] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    stats: SweepStats = field(default_factory=SweepStats)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def disabled_count(self) -> int:
        return sum(1 for c in self.candidates if c.disabled)

    @property
    def message(self) -> str:
        n = len(self.candidates)
        if self.dry_run:
            return f"{n} account(s) would be disabled"
        return f"{self.disabled_count} of {n} account(s) disabled"

    def as_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "message": self.message,
            "candidates": [c.as_dict() for c in self.candidates],
            "disabled_count": self.disabled_count,
            "errors": self.errors,
            "stats": self.stats.as_dict(),
            "timestamp": self.timestamp,
        }


async def _disable(result: SweepResult, server, candidate: SweepCandidate) -> None:
    result.stats.remote_actions += 1
    try:
        await get_adapter(server).set_disabled(candidate.account_id, True)
        candidate.disabled = True
    except Exception as e:
        result.stats.remote_failures += 1
        logger.warning(
            "sweep disable failed server_id=%s account=%s err=%s", server.id, candidate.account_id, str(e)[:220]
        )
        result.errors.append(
            {"id": candidate.account_id, "server_id": server.id, "error": str(e)[:220]}
        )


async def run_expiry_sweep(db: AsyncSession, dry_run: bool = False, now: datetime | None = None) -> SweepResult:
    """Disable every live, non-admin, still-enabled account whose ledger expiration has passed."""
    now = now or utcnow()
    result = SweepResult(dry_run=bool(dry_run), timestamp=now)

    expired = await ledger.list_expired(db, now)
    result.stats.scanned_entries = len(expired)
    if not expired:
        return result

    servers = {s.id: s for s in await server_registry.list_enabled(db)}
    wanted = [servers[sid] for sid in {e.server_id for e in expired} if sid in servers]
    users = await fan_out(wanted, lambda a: a.list_users())
    by_key = {(u.get("server_id"), str(u.get("Id"))): u for u in users}

    for e in expired:
        server = servers.get(e.server_id)
        if server is None:
            result.stats.skipped_servers += 1
            continue
        user = by_key.get((e.server_id, e.account_id))
        if user is None:
            result.stats.missing_accounts += 1
            logger.warning("sweep: ledger entry without live account server_id=%s account=%s", e.server_id, e.account_id)
            result.errors.append({"id": e.account_id, "server_id": e.server_id, "error": "user not found"})
            continue
        flags = UpstreamAccountFlags.from_user(user)
        if flags.is_administrator:
            result.stats.skipped_admins += 1
            continue
        if flags.is_disabled:
            result.stats.skipped_disabled += 1
            continue

        candidate = SweepCandidate(
            account_id=e.account_id,
            name=user.get("Name"),
            server_id=server.id,
            server_name=server.name,
            expiration_date=e.expiration_date,
            days_expired=e.days_expired,
        )
        result.candidates.append(candidate)
        if not dry_run:
            await _disable(result, server, candidate)

    result.stats.candidates = len(result.candidates)
    logger.info(
        "expiry sweep dry_run=%s scanned=%s candidates=%s disabled=%s errors=%s",
        result.dry_run,
        result.stats.scanned_entries,
        result.stats.candidates,
        result.disabled_count,
        len(result.errors),
    )
    return result


async def run_inactivity_sweep(
    db: AsyncSession,
    inactive_days: int = 30,
    dry_run: bool = False,
    now: datetime | None = None,
) -> SweepResult:
    """Disable non-admin accounts idle for at least `inactive_days`. Never-active accounts are left alone."""
    now = now or utcnow()
    result = SweepResult(dry_run=bool(dry_run), timestamp=now)
    servers = {s.id: s for s in await server_registry.list_enabled(db)}
    users = await fan_out(list(servers.values()), lambda a: a.list_users())
    entries = await ledger.get_all(db)
    result.stats.scanned_entries = len(users)

    for u in users:
        flags = UpstreamAccountFlags.from_user(u)
        if flags.is_administrator:
            result.stats.skipped_admins += 1
            continue
        if flags.is_disabled:
            result.stats.skipped_disabled += 1
            continue
        idle = days_since(parse_upstream_datetime(u.get("LastActivityDate")), now)
        if idle is None or idle < inactive_days:
            continue

        server = servers[u.get("server_id")]
        entry = entries.get(ledger.ledger_key(server.id, str(u.get("Id"))))
        candidate = SweepCandidate(
            account_id=str(u.get("Id")),
            name=u.get("Name"),
            server_id=server.id,
            server_name=server.name,
            expiration_date=as_utc(entry.expiration_date) if entry else None,
            days_inactive=idle,
        )
        result.candidates.append(candidate)
        if not dry_run:
            await _disable(result, server, candidate)

    result.stats.candidates = len(result.candidates)
    logger.info(
        "inactivity sweep days=%s dry_run=%s candidates=%s disabled=%s",
        inactive_days,
        result.dry_run,
        result.stats.candidates,
        result.disabled_count,
    )
    return result
