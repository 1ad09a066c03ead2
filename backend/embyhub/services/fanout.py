from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from embyhub.models.server import Server
from embyhub.services.adapters.base import MediaServerAdapter
from embyhub.services.adapters.factory import get_adapter

logger = logging.getLogger(__name__)

FetchFn = Callable[[MediaServerAdapter], Awaitable[list[dict[str, Any]]]]


async def _one(server: Server, fetch: FetchFn) -> list[dict[str, Any]]:
    try:
        items = await fetch(get_adapter(server))
    except Exception as e:
        logger.warning("fan-out failed server_id=%s name=%s err=%s", server.id, server.name, str(e)[:220])
        return []
    return [{**item, "server_id": server.id, "server_name": server.name} for item in items]


async def fan_out(servers: Sequence[Server], fetch: FetchFn) -> list[dict[str, Any]]:
    """Run `fetch` against every server concurrently and concatenate the tagged results.

    A server that fails contributes nothing.
    """
    if not servers:
        return []
    results = await asyncio.gather(*(_one(s, fetch) for s in servers))
    out: list[dict[str, Any]] = []
    for chunk in results:
        out.extend(chunk)
    return out
