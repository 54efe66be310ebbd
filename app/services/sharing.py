"""
Password-gated public access to a single itinerary.

An owner shares an itinerary with a list of recipients and a password; the
recipients open `<client>/shared/<token>` and must present that password.
Only a bcrypt hash of the password is stored.
"""

import re
import logging
from dataclasses import dataclass
from typing import Iterable, List

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import CLIENT_URL
from app.database.models import Itinerary
from app.models.sharing import PublicItinerary, PublicLocation, PublicOwner
from app.services.errors import ShareValidationError, ItineraryNotFound, IncorrectPassword
from app.utils.security import hash_password, verify_password, generate_share_token

logger = logging.getLogger(__name__)

MIN_SHARE_PASSWORD_LENGTH = 4
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class ShareResult:
    token: str
    shared_with: List[str]

    @property
    def link(self) -> str:
        return share_link(self.token)


def share_link(token: str) -> str:
    return f"{CLIENT_URL}/shared/{token}"


def validate_recipients(emails: Iterable[str]) -> List[str]:
    cleaned = [e.strip() for e in emails or [] if e and e.strip()]
    if not cleaned:
        raise ShareValidationError("Please enter at least one email address")
    invalid = [e for e in cleaned if not EMAIL_PATTERN.match(e)]
    if invalid:
        raise ShareValidationError(f"Invalid email(s): {', '.join(invalid)}")
    return cleaned


def merge_recipients(existing: Iterable[str], new: Iterable[str]) -> List[str]:
    merged = []
    seen = set()
    for email in list(existing or []) + list(new):
        key = email.lower()
        if key not in seen:
            seen.add(key)
            merged.append(email)
    return merged


async def enable_sharing(itinerary: Itinerary, emails: Iterable[str], password: str) -> ShareResult:
    """
    Turn on sharing for `itinerary` and add `emails` to its recipients.

    The token survives repeated calls so links already sent keep working;
    the password hash is replaced on every call.
    """
    recipients = validate_recipients(emails)
    if not password or len(password) < MIN_SHARE_PASSWORD_LENGTH:
        raise ShareValidationError(f"Password must be at least {MIN_SHARE_PASSWORD_LENGTH} characters")

    if not itinerary.share_token:
        itinerary.share_token = generate_share_token()
    # bcrypt runs in a worker thread
    itinerary.share_password = await run_in_threadpool(hash_password, password)
    itinerary.shared_with = merge_recipients(itinerary.shared_with, recipients)
    itinerary.is_shared = True
    return ShareResult(token=itinerary.share_token, shared_with=list(itinerary.shared_with))


def disable_sharing(itinerary: Itinerary) -> None:
    itinerary.is_shared = False
    itinerary.share_token = None
    itinerary.share_password = None


def public_projection(itinerary: Itinerary) -> PublicItinerary:
    owner = itinerary.user
    return PublicItinerary(
        title=itinerary.title,
        date=itinerary.date,
        start_location=itinerary.start_location,
        end_location=itinerary.end_location,
        locations=[PublicLocation.model_validate(loc) for loc in itinerary.locations],
        owner=PublicOwner(name=owner.display_name, email=owner.email),
    )


async def access_shared(db: AsyncSession, token: str, password: str) -> PublicItinerary:
    """
    Resolve a share token for an anonymous viewer.

    Raises:
        ItineraryNotFound: no shared itinerary carries this token.
        IncorrectPassword: the token exists but the password does not match.
    """
    stmt = (
        select(Itinerary)
        .options(selectinload(Itinerary.locations), selectinload(Itinerary.user))
        .where(Itinerary.share_token == token, Itinerary.is_shared.is_(True))
    )
    result = await db.execute(stmt)
    itinerary = result.scalars().first()
    if itinerary is None:
        raise ItineraryNotFound("Shared itinerary not found")

    if not await run_in_threadpool(verify_password, password, itinerary.share_password):
        logger.info(f"Rejected password for shared itinerary {itinerary.id}")
        raise IncorrectPassword()

    return public_projection(itinerary)
