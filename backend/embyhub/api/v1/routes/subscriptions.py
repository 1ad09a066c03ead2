from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.api.deps import get_current_actor
from embyhub.schemas.accounts import SubscriptionOut
from embyhub.services import ledger
from embyhub.services.dates import as_utc

router = APIRouter()


@router.get("", response_model=Dict[str, SubscriptionOut])
async def list_subscriptions(db: AsyncSession = Depends(get_db), actor=Depends(get_current_actor)):
    """Full ledger map keyed "{server_id}::{account_id}" for any signed-in identity."""
    entries = await ledger.get_all(db)
    return {
        key: SubscriptionOut(
            account_id=e.account_id,
            server_id=e.server_id,
            expiration_date=as_utc(e.expiration_date),
            created_by=e.created_by,
        )
        for key, e in entries.items()
    }
