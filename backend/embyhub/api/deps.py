import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.config import settings
from embyhub.core.db import get_db
from embyhub.models.panel_identity import PanelIdentity
from embyhub.services import access_control

bearer_scheme = HTTPBearer(auto_error=False)


def session_token_from(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


async def get_optional_actor(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> PanelIdentity | None:
    return await access_control.resolve_actor(db, session_token_from(request, credentials))


async def get_current_actor(actor: PanelIdentity | None = Depends(get_optional_actor)) -> PanelIdentity:
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    # role is read from the database on every request; an unknown role is no role
    if actor.panel_role is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    return actor


async def require_admin(actor: PanelIdentity = Depends(get_current_actor)) -> PanelIdentity:
    if not access_control.is_administrator(actor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator only")
    return actor


async def verify_cron_secret(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> None:
    """Without CRON_SECRET the endpoint is open; with it, the bearer value must match."""
    expected = settings.CRON_SECRET or ""
    if not expected:
        return
    given = credentials.credentials if credentials else ""
    if not secrets.compare_digest(given.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
