from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.errors import NotFoundError, ValidationError
from embyhub.models.server import Server
from embyhub.services.adapters.base import TestConnectionResult
from embyhub.services.adapters.factory import build_adapter

logger = logging.getLogger(__name__)

REDACTED = "***HIDDEN***"


def normalize_url(url: str) -> str:
    return (url or "").strip().rstrip("/")


async def list_all(db: AsyncSession) -> list[Server]:
    q = await db.execute(select(Server).order_by(Server.id.asc()))
    return list(q.scalars().all())


async def list_enabled(db: AsyncSession) -> list[Server]:
    q = await db.execute(select(Server).where(Server.enabled.is_(True)).order_by(Server.id.asc()))
    return list(q.scalars().all())


async def get(db: AsyncSession, server_id: int) -> Server | None:
    q = await db.execute(select(Server).where(Server.id == server_id))
    return q.scalar_one_or_none()


async def get_or_404(db: AsyncSession, server_id: int) -> Server:
    s = await get(db, server_id)
    if not s:
        raise NotFoundError("Server not found")
    return s


async def add(db: AsyncSession, name: str, url: str, api_key: str, enabled: bool = True) -> Server:
    name = (name or "").strip()
    url = normalize_url(url)
    api_key = (api_key or "").strip()
    if not name or not url or not api_key:
        raise ValidationError("Name, URL and API key are required")

    s = Server(name=name, url=url, api_key=api_key, enabled=bool(enabled))
    db.add(s)
    await db.commit()
    await db.refresh(s)
    logger.info("server added id=%s name=%s", s.id, s.name)
    return s


async def update(
    db: AsyncSession,
    server: Server,
    name: str | None = None,
    url: str | None = None,
    api_key: str | None = None,
    enabled: bool | None = None,
) -> Server:
    if name is not None:
        if not name.strip():
            raise ValidationError("Name cannot be empty")
        server.name = name.strip()
    if url is not None:
        if not normalize_url(url):
            raise ValidationError("URL cannot be empty")
        server.url = normalize_url(url)
    if api_key:
        server.api_key = api_key.strip()
    if enabled is not None:
        server.enabled = bool(enabled)

    await db.commit()
    await db.refresh(server)
    return server


async def delete(db: AsyncSession, server: Server) -> None:
    # ledger rows go with it (ON DELETE CASCADE)
    await db.delete(server)
    await db.commit()
    logger.info("server deleted id=%s", server.id)


async def test_connection(url: str, api_key: str) -> TestConnectionResult:
    url = normalize_url(url)
    if not url or not api_key:
        return TestConnectionResult(ok=False, detail="URL and API key are required")
    return await build_adapter(url, api_key).test_connection()
