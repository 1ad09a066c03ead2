from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.api.deps import get_current_actor
from embyhub.schemas.accounts import (
    AccountOut,
    CreateAccountRequest,
    EditAccountRequest,
    ExtendRequest,
    SetExpirationRequest,
    ToggleRequest,
)
from embyhub.schemas.ops import OpResult
from embyhub.services import account_ops, reconciliation

router = APIRouter()


@router.get("", response_model=List[AccountOut])
async def list_accounts(db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    return await reconciliation.list_enriched_accounts(db, actor)


@router.post("", response_model=OpResult)
async def create_account(payload: CreateAccountRequest, db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    result = await account_ops.create_account(
        db,
        actor,
        server_id=payload.server_id,
        name=payload.name,
        expiration_date=payload.expiration_date,
        password=payload.password,
        connect_email=payload.connect_email,
        template=payload.template,
        is_admin=payload.is_admin,
        libraries=payload.libraries,
    )
    return result.as_dict()


@router.patch("/{server_id}/{account_id}", response_model=OpResult)
async def edit_account(
    server_id: int,
    account_id: str,
    payload: EditAccountRequest,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    result = await account_ops.edit_account(
        db,
        actor,
        account_id,
        server_id,
        name=payload.name,
        password=payload.password,
        connect_email=payload.connect_email,
    )
    return result.as_dict()


@router.delete("/{server_id}/{account_id}", response_model=OpResult)
async def delete_account(server_id: int, account_id: str, db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    return (await account_ops.delete_account(db, actor, account_id, server_id)).as_dict()


@router.post("/{server_id}/{account_id}/toggle", response_model=OpResult)
async def toggle_account(
    server_id: int,
    account_id: str,
    payload: ToggleRequest,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    return (await account_ops.toggle_account(db, actor, account_id, server_id, payload.enable)).as_dict()


@router.post("/{server_id}/{account_id}/expiration", response_model=OpResult)
async def set_expiration(
    server_id: int,
    account_id: str,
    payload: SetExpirationRequest,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    return (await account_ops.set_expiration(db, actor, account_id, server_id, payload.expiration_date)).as_dict()


@router.post("/{server_id}/{account_id}/extend", response_model=OpResult)
async def extend_subscription(
    server_id: int,
    account_id: str,
    payload: ExtendRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    months = payload.months if payload else 1
    return (await account_ops.extend_subscription(db, actor, account_id, server_id, months)).as_dict()
