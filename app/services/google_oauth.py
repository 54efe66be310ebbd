"""
Google OAuth 2.0 authorization-code flow.

Browser -> /auth/google -> Google consent -> /auth/google/callback?code=...
The callback exchanges the code for tokens, reads the userinfo document and
creates or refreshes the matching local user.
"""

import logging
from urllib.parse import urlencode

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_CALLBACK_URL
from app.database.models import User
from app.models.user import GoogleProfile
from app.services.errors import ServiceError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ["openid", "email", "profile"]


class GoogleAuthError(ServiceError):
    status_code = 401


def authorization_url(state: str) -> str:
    if not GOOGLE_CLIENT_ID:
        raise GoogleAuthError("Google login is not configured")
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "state": state,
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def fetch_profile(code: str) -> GoogleProfile:
    """Exchange an authorization code for the caller's Google profile."""
    data = {
        "code": code,
        "client_id": GOOGLE_CLIENT_ID,
        "client_secret": GOOGLE_CLIENT_SECRET,
        "redirect_uri": GOOGLE_CALLBACK_URL,
        "grant_type": "authorization_code",
    }
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            token_response = await client.post(GOOGLE_TOKEN_URL, data=data)
            token_response.raise_for_status()
            access_token = token_response.json()["access_token"]

            userinfo_response = await client.get(
                GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
            userinfo_response.raise_for_status()
            return GoogleProfile(**userinfo_response.json())
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.warning(f"Google OAuth exchange failed: {e}")
        raise GoogleAuthError("Google authentication failed") from e


async def upsert_google_user(db: AsyncSession, profile: GoogleProfile) -> User:
    """
    First login for a Google id creates the user; later logins refresh the
    mutable profile fields. An existing local account with the same email is
    linked to the Google id.
    """
    result = await db.execute(select(User).where(User.google_id == profile.sub))
    user = result.scalars().first()

    if user is None:
        result = await db.execute(select(User).where(User.email == profile.email))
        user = result.scalars().first()
        if user is not None:
            user.google_id = profile.sub

    if user is None:
        user = User(google_id=profile.sub, email=profile.email, auth_provider="google")
        db.add(user)
        logger.info(f"Creating user for Google account {profile.email}")

    user.name = profile.name or user.name or profile.email.split("@")[0]
    user.first_name = profile.given_name
    user.last_name = profile.family_name
    user.profile_picture = profile.picture

    await db.commit()
    await db.refresh(user)
    return user
