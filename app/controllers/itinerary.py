from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
import logging
from typing import List, Optional

from app.database.connection import get_db
from app.database.models import User, Itinerary as ItineraryModel, Location as LocationModel
from app.models.itinerary import (
    ItineraryCreate, ItineraryUpdate, ItineraryEnvelope, ItineraryListEnvelope, Itinerary as ItineraryResponse,
    LocationCreate, LocationStatusUpdate, LocationReorder,
)
from app.models.travel import TravelReportResponse
from app.services.auth import get_current_user
from app.services.geocoding import Geocoder, get_geocoder
from app.services.travel import calculate_segments, stops_for_itinerary
from app.controllers.travel import report_to_response

router = APIRouter()
logger = logging.getLogger(__name__)

NOT_FOUND_DETAIL = "Itinerary not found"


def convert_to_pydantic(db_itinerary: ItineraryModel) -> ItineraryResponse:
    # locations must already be loaded
    return ItineraryResponse.model_validate(db_itinerary)


def _endpoint(value) -> Optional[dict]:
    return value.model_dump() if value is not None else None


def _build_locations(locations: List[LocationCreate]) -> List[LocationModel]:
    return [LocationModel(position=i, **loc.model_dump()) for i, loc in enumerate(locations)]


async def get_owned_itinerary(db: AsyncSession, itinerary_id: int, user: User) -> ItineraryModel:
    """Owner-scoped lookup. Missing and not-owned both give 404."""
    stmt = (
        select(ItineraryModel)
        .options(selectinload(ItineraryModel.locations), selectinload(ItineraryModel.user))
        .where(ItineraryModel.id == itinerary_id, ItineraryModel.user_id == user.id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    db_itinerary = result.scalars().first()
    if not db_itinerary:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    return db_itinerary


async def _commit(db: AsyncSession, action: str) -> None:
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}.")


@router.get("", response_model=ItineraryListEnvelope)
async def get_user_itineraries(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    stmt = (
        select(ItineraryModel)
        .options(selectinload(ItineraryModel.locations))
        .where(ItineraryModel.user_id == current_user.id)
        .order_by(ItineraryModel.date.desc(), ItineraryModel.created_at.desc(), ItineraryModel.id.desc())
    )
    result = await db.execute(stmt)
    itineraries = result.scalars().unique().all()
    return ItineraryListEnvelope(itineraries=[convert_to_pydantic(it) for it in itineraries])


@router.post("", response_model=ItineraryEnvelope, status_code=status.HTTP_201_CREATED)
async def create_itinerary(itinerary: ItineraryCreate, current_user: User = Depends(get_current_user),
                           db: AsyncSession = Depends(get_db)):
    db_itinerary = ItineraryModel(
        user_id=current_user.id,
        title=itinerary.title,
        date=itinerary.date,
        start_location=_endpoint(itinerary.start_location),
        end_location=_endpoint(itinerary.end_location),
        shared_with=[],
        locations=_build_locations(itinerary.locations),
    )
    db.add(db_itinerary)
    await _commit(db, "create itinerary")
    db_itinerary = await get_owned_itinerary(db, db_itinerary.id, current_user)
    return ItineraryEnvelope(itinerary=convert_to_pydantic(db_itinerary))


@router.get("/{itinerary_id}", response_model=ItineraryEnvelope)
async def get_itinerary(itinerary_id: int, current_user: User = Depends(get_current_user),
                        db: AsyncSession = Depends(get_db)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    return ItineraryEnvelope(itinerary=convert_to_pydantic(db_itinerary))


@router.put("/{itinerary_id}", response_model=ItineraryEnvelope)
async def update_itinerary(itinerary_id: int, update: ItineraryUpdate,
                           current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    fields = update.model_fields_set

    if update.title is not None:
        db_itinerary.title = update.title
    if update.date is not None:
        db_itinerary.date = update.date
    # An explicit null clears the start or end point
    if "start_location" in fields:
        db_itinerary.start_location = _endpoint(update.start_location)
    if "end_location" in fields:
        db_itinerary.end_location = _endpoint(update.end_location)
    if update.locations is not None:
        db_itinerary.locations = _build_locations(update.locations)

    await _commit(db, "update itinerary")
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    return ItineraryEnvelope(itinerary=convert_to_pydantic(db_itinerary))


@router.delete("/{itinerary_id}")
async def delete_itinerary(itinerary_id: int, current_user: User = Depends(get_current_user),
                           db: AsyncSession = Depends(get_db)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    await db.delete(db_itinerary)
    await _commit(db, "delete itinerary")
    return {"success": True}


@router.patch("/{itinerary_id}/locations/{index}/status", response_model=ItineraryEnvelope)
async def update_location_status(itinerary_id: int, index: int, update: LocationStatusUpdate,
                                 current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    if not 0 <= index < len(db_itinerary.locations):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")

    db_itinerary.locations[index].status = update.status
    await _commit(db, "update location status")
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    return ItineraryEnvelope(itinerary=convert_to_pydantic(db_itinerary))


@router.post("/{itinerary_id}/locations/reorder", response_model=ItineraryEnvelope)
async def reorder_locations(itinerary_id: int, reorder: LocationReorder,
                            current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    current = list(db_itinerary.locations)
    if sorted(reorder.order) != list(range(len(current))):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Order must list every location index exactly once.")

    for position, old_index in enumerate(reorder.order):
        current[old_index].position = position

    await _commit(db, "reorder locations")
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    return ItineraryEnvelope(itinerary=convert_to_pydantic(db_itinerary))


@router.get("/{itinerary_id}/travel-times", response_model=TravelReportResponse)
async def get_itinerary_travel_times(itinerary_id: int, current_user: User = Depends(get_current_user),
                                     db: AsyncSession = Depends(get_db), geocoder: Geocoder = Depends(get_geocoder)):
    db_itinerary = await get_owned_itinerary(db, itinerary_id, current_user)
    report = await calculate_segments(stops_for_itinerary(db_itinerary), geocoder)
    return report_to_response(report)
