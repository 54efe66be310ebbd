from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
from typing import Optional

from app.config import SHARE_ATTEMPTS_PER_MINUTE
from app.database.connection import get_db
from app.database.models import User
from app.models.sharing import ShareRequest, ShareResponse, SharedAccessRequest, SharedAccessResponse, GeneratedPassword
from app.services.auth import get_current_user
from app.services.errors import ShareValidationError, MailDeliveryError
from app.services.mailer import Mailer, get_mailer
from app.services.password_generator import generate_password, password_strength
from app.services.sharing import enable_sharing, disable_sharing, access_shared
from app.controllers.itinerary import get_owned_itinerary
from app.utils.rate_limiter import InMemoryRateLimiter, rate_limit

# Owner actions mount under /api/itineraries, the public viewer under /api/shared
router = APIRouter()
public_router = APIRouter()
logger = logging.getLogger(__name__)

share_attempt_limiter = InMemoryRateLimiter(max_requests=SHARE_ATTEMPTS_PER_MINUTE)


@router.post("/{itinerary_id}/share", response_model=ShareResponse)
async def share_itinerary(itinerary_id: int, request: ShareRequest,
                          current_user: User = Depends(get_current_user),
                          db: AsyncSession = Depends(get_db),
                          mailer: Mailer = Depends(get_mailer)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    try:
        result = await enable_sharing(db_itinerary, request.emails, request.password)
    except ShareValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    # Nothing is committed unless the invitation went out
    try:
        await db.flush()
        await mailer.send_share_invitation(
            recipients=result.shared_with,
            owner_name=current_user.display_name,
            itinerary_title=db_itinerary.title,
            itinerary_date=db_itinerary.date,
            share_link=result.link,
            password=request.password,
            message=request.message,
        )
        await db.commit()
    except MailDeliveryError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to share itinerary {itinerary_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to share itinerary.")

    logger.info(f"Itinerary {itinerary_id} shared with {len(result.shared_with)} recipient(s)")
    return ShareResponse(shareLink=result.link, sharedWith=result.shared_with)


@router.post("/{itinerary_id}/unshare")
async def unshare_itinerary(itinerary_id: int, current_user: User = Depends(get_current_user),
                            db: AsyncSession = Depends(get_db)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    if db_itinerary.is_shared or db_itinerary.share_token:
        disable_sharing(db_itinerary)
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to unshare itinerary {itinerary_id}: {e}", exc_info=True)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="Failed to unshare itinerary.")
    return {"success": True}


@public_router.post("/shared/{token}", response_model=SharedAccessResponse,
                    dependencies=[Depends(rate_limit(share_attempt_limiter,
                                                     "Too many attempts. Please wait a minute and try again."))])
async def access_shared_itinerary(token: str, request: Optional[SharedAccessRequest] = None,
                                  db: AsyncSession = Depends(get_db)):
    password = request.password if request else None
    if not password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password is required")

    # ItineraryNotFound / IncorrectPassword are rendered by the app's ServiceError handler
    itinerary = await access_shared(db, token, password)
    return SharedAccessResponse(itinerary=itinerary)


@public_router.get("/share-password", response_model=GeneratedPassword)
async def generate_share_password(
        length: int = Query(12, ge=4, le=64),
        uppercase: bool = True,
        lowercase: bool = True,
        numbers: bool = True,
        symbols: bool = False,
):
    password = generate_password(length, uppercase, lowercase, numbers, symbols)
    return GeneratedPassword(password=password, strength=password_strength(password))
