from __future__ import annotations
import asyncio
import logging

from embyhub.core.celery_app import SWEEP_TASK, celery_app
from embyhub.core.config import settings
from embyhub.core.db import AsyncSessionLocal, engine
from embyhub.services.locks import redis_lock
from embyhub.services.reconciliation import run_expiry_sweep

logger = logging.getLogger(__name__)

@celery_app.task(name=SWEEP_TASK)
def disable_expired_accounts(dry_run: bool = False):
    lock_ttl = max(120, int(settings.EXPIRY_SWEEP_SECONDS or 0) * 2)
    with redis_lock("disable_expired_accounts", ttl_seconds=lock_ttl) as ok:
        if not ok:
            logger.info("expiry sweep already running elsewhere; skipped")
            return None
        return asyncio.run(_disable_expired_async(dry_run))


# internal

async def _disable_expired_async(dry_run: bool) -> dict:
    async with AsyncSessionLocal() as db:
        result = await run_expiry_sweep(db, dry_run=dry_run)
    # each asyncio.run gets a fresh loop; pooled connections must not outlive it
    await engine.dispose()
    logger.info("expiry sweep stats: %s", result.stats.as_dict())
    return {
        "dry_run": result.dry_run,
        "message": result.message,
        "disabled_count": result.disabled_count,
        "errors": len(result.errors),
    }
