from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.config import settings
from embyhub.models.server import Server
from embyhub.services import identity_store, server_registry

logger = logging.getLogger(__name__)


async def seed_default_server(db: AsyncSession) -> Server | None:
    """Register DEFAULT_SERVER_URL when the registry is empty."""
    url = server_registry.normalize_url(settings.DEFAULT_SERVER_URL)
    if not url or not settings.DEFAULT_SERVER_API_KEY:
        return None
    q = await db.execute(select(func.count()).select_from(Server))
    if int(q.scalar_one()) > 0:
        return None
    server = await server_registry.add(
        db,
        name=settings.DEFAULT_SERVER_NAME or "Main Emby",
        url=url,
        api_key=settings.DEFAULT_SERVER_API_KEY,
    )
    logger.info("default server registered id=%s url=%s", server.id, server.url)
    return server


async def run_bootstrap(db: AsyncSession) -> None:
    await identity_store.ensure_bootstrap_admin(db)
    await seed_default_server(db)
