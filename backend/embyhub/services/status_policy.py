from __future__ import annotations
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Optional
from embyhub.core.config import settings
from embyhub.services.adapters.base import UpstreamAccountFlags
from embyhub.services.dates import as_utc, days_left, parse_upstream_datetime, utcnow

class SubscriptionStatus(str, Enum):
    active = "active"
    expiring_soon = "expiring_soon"
    expired = "expired"
    no_subscription = "no_subscription"
    exempt = "exempt"     # upstream administrator, never expires

def subscription_status(
    expiration: Optional[datetime],
    flags: UpstreamAccountFlags | None = None,
    now: Optional[datetime] = None,
    soon_days: Optional[int] = None,
) -> tuple[SubscriptionStatus, Optional[int]]:
    """Bucket an expiration date.
    Returns (status, days_left); days_left is ceil((expiration - now) / 1 day).
    """
    if flags is not None and flags.is_administrator:
        return SubscriptionStatus.exempt, None
    if expiration is None:
        return SubscriptionStatus.no_subscription, None
    soon = settings.EXPIRING_SOON_DAYS if soon_days is None else soon_days
    left = days_left(expiration, now)
    if left < 0:
        return SubscriptionStatus.expired, left
    if left <= soon:
        return SubscriptionStatus.expiring_soon, left
    return SubscriptionStatus.active, left

def session_is_live(session: dict[str, Any], now: Optional[datetime] = None, window_minutes: Optional[int] = None) -> bool:
    """Online heuristic for one Emby session.
      - something is playing, or
      - LastActivityDate within the window, or
      - no LastActivityDate at all but the client accepts remote control
    """
    if session.get("NowPlayingItem"):
        return True
    window = timedelta(minutes=settings.ONLINE_WINDOW_MINUTES if window_minutes is None else window_minutes)
    last = parse_upstream_datetime(session.get("LastActivityDate"))
    if last is not None:
        return ((now or utcnow()) - as_utc(last)) <= window
    return bool(session.get("SupportsRemoteControl"))

def is_online(user_id: str, sessions: Iterable[dict[str, Any]], now: Optional[datetime] = None) -> bool:
    return any(str(s.get("UserId") or "") == str(user_id) and session_is_live(s, now) for s in sessions)
