"""
Password hashing (bcrypt) and bearer token handling (PyJWT).

Handlers never trust a user id from the request body without the token:
`get_current_user` resolves the Authorization header into a verified identity.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eventease.core.config import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def _encode(claims: dict, lifetime: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(user_id: str, role: str, expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes if expires_minutes is not None else get_settings().ACCESS_TOKEN_EXPIRE_MINUTES
    return _encode(
        {"sub": user_id, "role": role, "type": ACCESS_TOKEN_TYPE},
        timedelta(minutes=minutes),
    )


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> str:
    """Long-lived token that can only be exchanged at /auth/refresh. Carries no role."""
    days = expires_days if expires_days is not None else get_settings().REFRESH_TOKEN_EXPIRE_DAYS
    return _encode({"sub": user_id, "type": REFRESH_TOKEN_TYPE}, timedelta(days=days))


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """
    Verify signature and expiry and check the token kind.
    Raises jwt.InvalidTokenError (or its ExpiredSignatureError subclass).
    """
    settings = get_settings()
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    if payload.get("type") != expected_type or not payload.get("sub"):
        raise jwt.InvalidTokenError(f"Not an {expected_type} token")
    return payload


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")

    return CurrentUser(id=str(payload["sub"]), role=payload.get("role", "attendee"))


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
