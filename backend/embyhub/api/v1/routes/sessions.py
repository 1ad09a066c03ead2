from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.api.deps import get_current_actor
from embyhub.schemas.ops import OpResult, SessionActionRequest
from embyhub.services import account_ops

router = APIRouter()


@router.post("/stop", response_model=OpResult)
async def stop_playback(payload: SessionActionRequest, db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    return (await account_ops.stop_session(db, actor, payload.server_id, payload.session_id)).as_dict()


@router.post("/logout", response_model=OpResult)
async def force_logout(payload: SessionActionRequest, db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    return (await account_ops.logout_session(db, actor, payload.server_id, payload.session_id)).as_dict()
