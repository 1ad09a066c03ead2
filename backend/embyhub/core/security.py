import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import jwt, JWTError
from passlib.context import CryptContext
from embyhub.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
ALGORITHM = "HS256"

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unknown/corrupt hash format
        return False

def create_session_token(identity_id: int, expires_minutes: Optional[int] = None) -> str:
    """Signed bearer value: identity reference plus a random component."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or settings.SESSION_TTL_MINUTES)
    to_encode: Dict[str, Any] = {"sub": str(identity_id), "jti": secrets.token_hex(32), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)

def decode_session_token(token: str | None) -> Optional[int]:
    """Return the identity id referenced by the token, or None when absent/invalid/expired."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    jti = payload.get("jti")
    if not sub or not isinstance(jti, str) or len(jti) != 64:
        return None
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None
