from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.api.deps import require_admin
from embyhub.models.server import Server
from embyhub.schemas.admin import (
    CreateServerRequest,
    ServerList,
    ServerOut,
    TestConnectionOut,
    TestConnectionRequest,
    UpdateServerRequest,
)
from embyhub.services import server_registry

router = APIRouter()


def _to_out(s: Server) -> ServerOut:
    return ServerOut(
        id=s.id,
        name=s.name,
        url=s.url,
        api_key=server_registry.REDACTED,
        enabled=s.enabled,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def _require_reachable(url: str, api_key: str) -> None:
    result = await server_registry.test_connection(url, api_key)
    if not result.ok:
        raise HTTPException(status_code=400, detail=f"Could not connect to server: {result.detail}")


@router.get("", response_model=ServerList)
async def list_servers(
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=1000),
):
    servers = await server_registry.list_all(db)
    return ServerList(items=[_to_out(s) for s in servers[offset : offset + limit]], total=len(servers))


@router.post("", response_model=ServerOut)
async def create_server(payload: CreateServerRequest, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    await _require_reachable(payload.url, payload.api_key)
    s = await server_registry.add(db, payload.name, payload.url, payload.api_key, enabled=payload.enabled)
    return _to_out(s)


@router.get("/{server_id}", response_model=ServerOut)
async def get_server(server_id: int, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    return _to_out(await server_registry.get_or_404(db, server_id))


@router.patch("/{server_id}", response_model=ServerOut)
async def update_server(
    server_id: int,
    payload: UpdateServerRequest,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    s = await server_registry.get_or_404(db, server_id)

    new_url = server_registry.normalize_url(payload.url) if payload.url is not None else s.url
    new_key = payload.api_key or s.api_key
    if new_url != s.url or new_key != s.api_key:
        await _require_reachable(new_url, new_key)

    s = await server_registry.update(
        db,
        s,
        name=payload.name,
        url=payload.url,
        api_key=payload.api_key,
        enabled=payload.enabled,
    )
    return _to_out(s)


@router.delete("/{server_id}")
async def delete_server(server_id: int, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    # subscriptions for this server are removed with it
    s = await server_registry.get_or_404(db, server_id)
    await server_registry.delete(db, s)
    return {"ok": True}


@router.post("/test-connection", response_model=TestConnectionOut)
async def test_connection(payload: TestConnectionRequest, admin=Depends(require_admin)):
    result = await server_registry.test_connection(payload.url, payload.api_key)
    return TestConnectionOut(ok=result.ok, detail=result.detail, meta=result.meta)


@router.post("/{server_id}/test-connection", response_model=TestConnectionOut)
async def test_server_connection(server_id: int, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    s = await server_registry.get_or_404(db, server_id)
    result = await server_registry.test_connection(s.url, s.api_key)
    return TestConnectionOut(ok=result.ok, detail=result.detail, meta=result.meta)
