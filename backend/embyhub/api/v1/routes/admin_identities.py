from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.core.rbac import PanelRole
from embyhub.api.deps import require_admin
from embyhub.schemas.admin import CreateIdentityRequest, IdentityList, UpdateIdentityRequest
from embyhub.schemas.auth import IdentityOut
from embyhub.services import identity_store

router = APIRouter()


def _to_out(i) -> IdentityOut:
    return IdentityOut(**identity_store.redact(i))


@router.get("", response_model=IdentityList)
async def list_identities(
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=1000),
):
    rows = await identity_store.list_all(db)
    return IdentityList(items=[_to_out(r) for r in rows[offset : offset + limit]], total=len(rows))


@router.get("/{identity_id}", response_model=IdentityOut)
async def get_identity(identity_id: int, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    i = await identity_store.get(db, identity_id)
    if not i:
        raise HTTPException(status_code=404, detail="User not found")
    return _to_out(i)


@router.post("", response_model=IdentityOut)
async def create_identity(payload: CreateIdentityRequest, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    i = await identity_store.create(db, payload.username, payload.password, payload.name, payload.role)
    return _to_out(i)


@router.patch("/{identity_id}", response_model=IdentityOut)
async def update_identity(
    identity_id: int,
    payload: UpdateIdentityRequest,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    # the role is fixed at creation
    i = await identity_store.get(db, identity_id)
    if not i:
        raise HTTPException(status_code=404, detail="User not found")
    if payload.password:
        if i.panel_role != PanelRole.reseller and i.id != admin.id:
            raise HTTPException(status_code=403, detail="Only reseller passwords can be reset")
        await identity_store.reset_password(db, identity_id, payload.password)
    if payload.name is not None:
        i = await identity_store.rename(db, identity_id, payload.name)
    return _to_out(i)


@router.delete("/{identity_id}")
async def delete_identity(identity_id: int, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    await identity_store.delete(db, identity_id)
    return {"ok": True}
