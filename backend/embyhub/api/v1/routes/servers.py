from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.api.deps import get_current_actor
from embyhub.services import account_ops, server_registry

router = APIRouter()


@router.get("")
async def list_servers(db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)) -> List[Dict[str, Any]]:
    """Enabled servers for pickers; no credentials."""
    return [{"id": s.id, "name": s.name} for s in await server_registry.list_enabled(db)]


@router.get("/{server_id}/libraries")
async def list_libraries(server_id: int, db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    return await account_ops.list_libraries(db, actor, server_id)
