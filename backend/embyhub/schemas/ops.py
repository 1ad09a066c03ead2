from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime
from embyhub.schemas.accounts import SubscriptionOut

class SessionActionRequest(BaseModel):
    server_id: int
    session_id: str = Field(min_length=1, max_length=128)

class SweepRequest(BaseModel):
    dry_run: bool = False

class InactivitySweepRequest(BaseModel):
    inactive_days: int = Field(default=30, ge=1, le=3650)
    dry_run: bool = False

class OpResult(BaseModel):
    ok: bool
    message: str = ""
    warnings: List[str] = []
    account: Optional[dict[str, Any]] = None
    subscription: Optional[SubscriptionOut] = None
    steps: List[dict[str, Any]] = []

class SweepCandidateOut(BaseModel):
    id: str
    name: Optional[str] = None
    server_id: int
    server_name: Optional[str] = None
    expiration_date: Optional[datetime] = None
    days_expired: Optional[int] = None
    days_inactive: Optional[int] = None
    disabled: bool = False

class SweepOut(BaseModel):
    dry_run: bool
    message: str
    candidates: List[SweepCandidateOut]
    disabled_count: int
    errors: List[dict[str, Any]]
    stats: dict[str, int]
    timestamp: datetime
