from __future__ import annotations
import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

import redis

from embyhub.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "emby-hub:lock:"


def lock_key(name: str) -> str:
    return f"{KEY_PREFIX}{name}"


def _release(client: redis.Redis, key: str, token: str) -> None:
    # compare-and-delete; a lock that expired and was re-taken by someone else is left alone
    with client.pipeline() as pipe:
        try:
            pipe.watch(key)
            if pipe.get(key) != token:
                pipe.unwatch()
                return
            pipe.multi()
            pipe.delete(key)
            pipe.execute()
        except redis.WatchError:
            logger.info("lock %s changed hands before release", key)


@contextmanager
def redis_lock(name: str, ttl_seconds: int = 120) -> Iterator[bool]:
    """Non-blocking SET NX EX lock; yields whether it was acquired."""
    key = lock_key(name)
    token = uuid.uuid4().hex
    client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    acquired = bool(client.set(key, token, nx=True, ex=ttl_seconds))
    if acquired:
        logger.debug("lock %s acquired ttl=%ss", key, ttl_seconds)
    try:
        yield acquired
    finally:
        if acquired:
            try:
                _release(client, key, token)
            except redis.RedisError as e:
                logger.warning("lock release failed key=%s err=%s", key, str(e)[:220])
