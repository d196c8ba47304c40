"""
Authentication service handling signup, login and token refresh.
"""

import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from eventease.models.user import User
from eventease.schemas.user import Token, UserCreate, UserLogin
from eventease.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from eventease.core.logging import get_logger

logger = get_logger(__name__)


async def signup_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Create a new account with a bcrypt password hash.
    Raises 409 if the email is already registered.
    """
    email = user_data.email.lower()
    result = await db.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        logger.warning("signup_failed", reason="email_exists", email=email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=email,
        name=user_data.name,
        password_hash=hash_password(user_data.password),
        role=user_data.role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    logger.info("user_signed_up", user_id=user.id, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> Token:
    """
    Check credentials and return a signed access and refresh token pair.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.password_hash):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("user_logged_in", user_id=user.id)
    return _issue_tokens(user)


def _issue_tokens(user: User) -> Token:
    return Token(
        access_token=create_access_token(user.id, user.role),
        refresh_token=create_refresh_token(user.id),
    )


async def refresh_tokens(db: AsyncSession, refresh_token: str) -> Token:
    """
    Exchange a refresh token for a new pair (rotation). The role is re-read
    from the database, so role changes apply on the next refresh.
    Raises 401 if the token is invalid or the user no longer exists.
    """
    try:
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, payload["sub"])
    if user is None:
        logger.warning("token_refresh_failed", reason="user_missing", user_id=payload["sub"])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("tokens_refreshed", user_id=user.id)
    return _issue_tokens(user)
