from __future__ import annotations

from embyhub.core.config import settings
from embyhub.models.server import Server
from embyhub.services.adapters.base import MediaServerAdapter
from embyhub.services.adapters.emby import EmbyAdapter


def build_adapter(url: str, api_key: str) -> MediaServerAdapter:
    return EmbyAdapter(
        url,
        api_key,
        verify_ssl=bool(settings.UPSTREAM_TLS_VERIFY),
        timeout=float(settings.HTTP_TIMEOUT_SECONDS or 10),
    )


def get_adapter(server: Server) -> MediaServerAdapter:
    if not server.url or not server.api_key:
        raise ValueError(f"Server {server.id} has no url or api key")
    return build_adapter(server.url, server.api_key)
