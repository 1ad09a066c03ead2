from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.db import get_db
from embyhub.api.deps import require_admin, verify_cron_secret
from embyhub.schemas.ops import InactivitySweepRequest, SweepOut, SweepRequest
from embyhub.services import reconciliation

router = APIRouter()


@router.post("/sweep", response_model=SweepOut)
async def expiry_sweep(payload: SweepRequest, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    return (await reconciliation.run_expiry_sweep(db, dry_run=payload.dry_run)).as_dict()


@router.post("/sweep/inactive", response_model=SweepOut)
async def inactivity_sweep(payload: InactivitySweepRequest, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    result = await reconciliation.run_inactivity_sweep(db, inactive_days=payload.inactive_days, dry_run=payload.dry_run)
    return result.as_dict()


@router.api_route("/cron/disable-expired", methods=["GET", "POST"], response_model=SweepOut)
async def cron_disable_expired(db: AsyncSession = Depends(get_db), _auth=Depends(verify_cron_secret)):
    return (await reconciliation.run_expiry_sweep(db, dry_run=False)).as_dict()
