from __future__ import annotations
from celery import Celery
from celery.signals import worker_ready
import logging
from embyhub.core.config import settings

logger = logging.getLogger(__name__)

SWEEP_TASK = "embyhub.tasks.expiry.disable_expired_accounts"

celery_app = Celery(
    "emby_hub",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["embyhub.tasks.expiry"],
)

celery_app.conf.timezone = "UTC"

# 0 disables the schedule; cron hitting /api/v1/cron/disable-expired is the alternative
sweep_every = int(settings.EXPIRY_SWEEP_SECONDS or 0)
celery_app.conf.beat_schedule = {}
if sweep_every > 0:
    celery_app.conf.beat_schedule["disable_expired_every_interval"] = {
        "task": SWEEP_TASK,
        "schedule": float(max(60, min(86400, sweep_every))),
    }


@worker_ready.connect
def _kickoff_sweep(sender=None, **kwargs):
    if sweep_every <= 0:
        return
    app = getattr(sender, "app", celery_app)
    try:
        app.send_task(SWEEP_TASK)
    except Exception as e:
        logger.warning("celery startup task dispatch failed task=%s err=%s", SWEEP_TASK, str(e)[:220])
