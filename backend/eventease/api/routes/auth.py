"""
Authentication endpoints: signup, login and token refresh.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventease.db.session import get_db
from eventease.schemas.user import RefreshRequest, Token, UserCreate, UserLogin, UserResponse
from eventease.services.auth_service import authenticate_user, refresh_tokens, signup_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Create a new user account."""
    return await signup_user(db, user_data)


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive an access token plus a refresh token."""
    return await authenticate_user(db, login_data)


@router.post("/refresh", response_model=Token)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Rotate tokens: a valid refresh token buys a fresh pair."""
    return await refresh_tokens(db, body.refresh_token)
