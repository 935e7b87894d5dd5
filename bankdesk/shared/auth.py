# bankdesk/shared/auth.py
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError, ExpiredSignatureError  # python-jose[cryptography]
from sqlalchemy.orm import Session

from bankdesk.auth.models import User
from bankdesk.shared.config import settings
from bankdesk.shared.db import get_db
from bankdesk.shared.errors import AuthenticationError

bearer = HTTPBearer(auto_error=False, scheme_name="bearerAuth")

def create_access_token(
    user_id: int,
    role: str = "customer",
    extra: Optional[Dict[str, Any]] = None,
    minutes: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes or settings.JWT_EXPIRE_MIN)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if settings.JWT_ISS:
        payload["iss"] = settings.JWT_ISS
    if settings.JWT_AUD:
        payload["aud"] = settings.JWT_AUD
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.JWT_KEY, algorithm=settings.JWT_ALG)

def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.JWT_KEY,
            algorithms=[settings.JWT_ALG],
            audience=settings.JWT_AUD,
            issuer=settings.JWT_ISS,
            options={
                "verify_aud": bool(settings.JWT_AUD),
                "verify_iss": bool(settings.JWT_ISS),
            },
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a fresh ``User`` row (status is never cached)."""
    if not creds:
        raise AuthenticationError("Invalid token")

    payload = decode_access_token(creds.credentials)
    sub = payload.get("sub")
    if not sub or not str(sub).isdigit():
        raise AuthenticationError("Invalid token")

    user = db.get(User, int(sub))
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")
    return user
