from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.config import settings
from embyhub.core.errors import AuthorizationError, NotFoundError, ValidationError
from embyhub.core.rbac import PanelRole, parse_role
from embyhub.core.security import hash_password, verify_password
from embyhub.models.panel_identity import PanelIdentity

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _check_password(password: str | None) -> str:
    p = password or ""
    if len(p) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return p


def redact(identity: PanelIdentity) -> dict:
    return {
        "id": identity.id,
        "username": identity.username,
        "name": identity.name,
        "role": identity.role,
        "created_at": identity.created_at,
    }


async def get(db: AsyncSession, identity_id: int) -> PanelIdentity | None:
    q = await db.execute(select(PanelIdentity).where(PanelIdentity.id == identity_id))
    return q.scalar_one_or_none()


async def get_by_username(db: AsyncSession, username: str) -> PanelIdentity | None:
    q = await db.execute(select(PanelIdentity).where(PanelIdentity.username == (username or "").strip()))
    return q.scalar_one_or_none()


async def list_all(db: AsyncSession) -> list[PanelIdentity]:
    q = await db.execute(select(PanelIdentity).order_by(PanelIdentity.id.asc()))
    return list(q.scalars().all())


async def verify_credentials(db: AsyncSession, username: str, password: str) -> PanelIdentity | None:
    if not username or not password:
        return None
    identity = await get_by_username(db, username)
    if not identity or not verify_password(password, identity.password_hash):
        return None
    return identity


async def create(db: AsyncSession, username: str, password: str, name: str, role: str | PanelRole) -> PanelIdentity:
    username = (username or "").strip()
    if len(username) < 3:
        raise ValidationError("Username must be at least 3 characters")
    _check_password(password)
    parsed = role if isinstance(role, PanelRole) else parse_role(role)
    if parsed is None:
        raise ValidationError("Invalid role")
    if await get_by_username(db, username):
        raise ValidationError("Username already exists")

    identity = PanelIdentity(
        username=username,
        password_hash=hash_password(password),
        name=(name or "").strip() or username,
        role=parsed.value,
    )
    db.add(identity)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Username already exists")
    await db.refresh(identity)
    logger.info("panel identity created id=%s username=%s role=%s", identity.id, identity.username, identity.role)
    return identity


async def change_password(db: AsyncSession, identity_id: int, old_password: str, new_password: str) -> None:
    identity = await get(db, identity_id)
    if not identity:
        raise NotFoundError("User not found")
    if not verify_password(old_password or "", identity.password_hash):
        raise ValidationError("Current password is incorrect")
    identity.password_hash = hash_password(_check_password(new_password))
    await db.commit()


async def reset_password(db: AsyncSession, identity_id: int, new_password: str) -> None:
    identity = await get(db, identity_id)
    if not identity:
        raise NotFoundError("User not found")
    identity.password_hash = hash_password(_check_password(new_password))
    await db.commit()


async def rename(db: AsyncSession, identity_id: int, name: str) -> PanelIdentity:
    identity = await get(db, identity_id)
    if not identity:
        raise NotFoundError("User not found")
    if not (name or "").strip():
        raise ValidationError("Name cannot be empty")
    identity.name = name.strip()
    await db.commit()
    await db.refresh(identity)
    return identity


async def delete(db: AsyncSession, identity_id: int) -> None:
    """Only resellers can be removed; their ledger rows keep a null creator."""
    identity = await get(db, identity_id)
    if not identity:
        raise NotFoundError("User not found")
    if identity.panel_role != PanelRole.reseller:
        raise AuthorizationError("Only resellers can be deleted")
    await db.delete(identity)
    await db.commit()
    logger.info("panel identity deleted id=%s", identity_id)


async def ensure_bootstrap_admin(db: AsyncSession) -> PanelIdentity | None:
    """Create the configured administrator when it is missing. Safe to call from every worker."""
    username = (settings.BOOTSTRAP_ADMIN_USERNAME or "").strip()
    if not username:
        return None
    existing = await get_by_username(db, username)
    if existing:
        return existing

    identity = PanelIdentity(
        username=username,
        password_hash=hash_password(settings.BOOTSTRAP_ADMIN_PASSWORD),
        name=settings.BOOTSTRAP_ADMIN_NAME or username,
        role=PanelRole.administrator.value,
    )
    db.add(identity)
    try:
        await db.commit()
    except IntegrityError:
        # another worker created it first
        await db.rollback()
        logger.debug("bootstrap admin already created concurrently username=%s", username)
        return await get_by_username(db, username)
    await db.refresh(identity)
    logger.info("bootstrap administrator created username=%s", username)
    return identity
