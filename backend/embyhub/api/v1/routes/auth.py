from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from embyhub.core.config import settings
from embyhub.core.db import get_db
from embyhub.core.security import create_session_token
from embyhub.schemas.auth import ChangePasswordRequest, IdentityOut, LoginRequest, LoginResponse, MeResponse
from embyhub.services import identity_store
from embyhub.api.deps import get_current_actor, get_optional_actor

router = APIRouter()


def _identity_out(identity) -> IdentityOut:
    return IdentityOut(**identity_store.redact(identity))


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    identity = await identity_store.verify_credentials(db, payload.username.strip(), payload.password)
    if not identity:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    token = create_session_token(identity.id)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return LoginResponse(token=token, user=_identity_out(identity))


@router.post("/logout")
async def logout(response: Response, actor=Depends(get_current_actor)):
    # tokens are not stored server side; dropping the cookie ends the browser session
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/me", response_model=MeResponse)
async def me(actor=Depends(get_optional_actor)):
    if actor is None:
        return MeResponse(authenticated=False)
    return MeResponse(authenticated=True, user=_identity_out(actor))


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    if payload.new_password == payload.current_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="New password must differ from the current one")
    await identity_store.change_password(db, actor.id, payload.current_password, payload.new_password)
    return {"ok": True}
