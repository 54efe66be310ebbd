import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import CLIENT_URL
from app.database.connection import get_db
from app.database.models import User
from app.models.user import UserCreate, UserLogin, UserResponse, AuthStatus, Token
from app.services import google_oauth
from app.services.auth import (
    get_current_user, get_optional_current_user, register_user, authenticate_user, issue_token,
)
from app.services.google_oauth import GoogleAuthError

# Browser-facing OAuth redirects live under /auth, JSON endpoints under /api/auth
oauth_router = APIRouter()
router = APIRouter()
logger = logging.getLogger(__name__)

OAUTH_STATE_COOKIE = "oauth_state"


def _user_response(user: User) -> UserResponse:
    # display_name is read from the model's property
    return UserResponse.model_validate(user)


@oauth_router.get("/google")
async def google_login():
    state = secrets.token_urlsafe(24)
    try:
        url = google_oauth.authorization_url(state)
    except GoogleAuthError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(OAUTH_STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax")
    return response


@oauth_router.get("/google/callback")
async def google_callback(
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
        oauth_state: Optional[str] = Cookie(default=None),
        db: AsyncSession = Depends(get_db)
):
    failure_url = f"{CLIENT_URL}/?{urlencode({'error': 'auth_failed'})}"
    if error or not code:
        logger.info(f"Google login cancelled or failed: {error}")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)
    if not state or not oauth_state or not secrets.compare_digest(state, oauth_state):
        logger.warning("Google callback with mismatched OAuth state")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    try:
        profile = await google_oauth.fetch_profile(code)
        user = await google_oauth.upsert_google_user(db, profile)
    except GoogleAuthError:
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    token = issue_token(user)
    # Token goes in the fragment, never the query string
    response = RedirectResponse(f"{CLIENT_URL}/auth/callback#{urlencode({'token': token})}",
                                status_code=status.HTTP_302_FOUND)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: AsyncSession = Depends(get_db)):
    new_user = await register_user(user, db)
    return Token(access_token=issue_token(new_user), token_type="bearer", user=_user_response(new_user))


@router.post("/login", response_model=Token)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(credentials.username, credentials.password, db)
    return Token(access_token=issue_token(user), token_type="bearer", user=_user_response(user))


@router.get("/user", response_model=AuthStatus)
async def get_auth_status(current_user: Optional[User] = Depends(get_optional_current_user)):
    if current_user is None:
        return AuthStatus(isAuthenticated=False, user=None)
    return AuthStatus(isAuthenticated=True, user=_user_response(current_user))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return _user_response(current_user)


@router.get("/logout")
async def logout():
    # Tokens are stateless; the client drops its copy
    return {"success": True, "message": "Logged out"}
