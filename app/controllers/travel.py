from fastapi import APIRouter, Depends, HTTPException, status
import logging

from app.config import TRAVEL_REQUESTS_PER_MINUTE
from app.models.travel import (
    TravelTimeRequest, TravelTimeResponse, DistanceMatrix, MatrixRow, MatrixElement, TextValue,
    TravelReportResponse, Segment, TravelTotal,
)
from app.services.geocoding import Geocoder, get_geocoder
from app.services.travel import TravelReport, estimate_pair
from app.utils.rate_limiter import InMemoryRateLimiter, rate_limit

router = APIRouter()
logger = logging.getLogger(__name__)

# Public (the shared view calls it too), so it is throttled per client
travel_limiter = InMemoryRateLimiter(max_requests=TRAVEL_REQUESTS_PER_MINUTE)


def report_to_response(report: TravelReport) -> TravelReportResponse:
    segments = []
    for seg in report.segments:
        if seg.ok:
            segments.append(Segment(
                from_name=seg.from_name,
                to_name=seg.to_name,
                duration=seg.estimate.duration_text,
                distance=seg.estimate.distance_text,
                duration_seconds=seg.estimate.duration_seconds,
                distance_meters=seg.estimate.distance_meters,
            ))
        else:
            segments.append(Segment(from_name=seg.from_name, to_name=seg.to_name, error=seg.error))

    total = report.total
    return TravelReportResponse(
        segments=segments,
        total=TravelTotal(
            duration=total.duration_text,
            distance=total.distance_text,
            duration_seconds=total.duration_seconds,
            distance_meters=total.distance_meters,
        ) if total else None,
    )


@router.post("/calculate-travel-times", response_model=TravelTimeResponse,
             dependencies=[Depends(rate_limit(travel_limiter))])
async def calculate_travel_times(request: TravelTimeRequest, geocoder: Geocoder = Depends(get_geocoder)):
    """
    Single origin/destination estimate shaped like a distance-matrix response.
    Only the first origin and first destination are used.
    """
    origins = [o for o in request.origins if o and o.strip()]
    destinations = [d for d in request.destinations if d and d.strip()]
    if not origins or not destinations:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Origins and destinations are required")

    origin, destination = origins[0], destinations[0]
    result = await estimate_pair(origin, destination, geocoder)
    if result is None:
        raise HTTPException(status_code=422,
                            detail="Could not geocode one or both addresses")

    element = MatrixElement(
        status="OK",
        distance=TextValue(text=result.distance_text, value=result.distance_meters),
        duration=TextValue(text=result.duration_text, value=result.duration_seconds),
    )
    return TravelTimeResponse(data=DistanceMatrix(
        status="OK",
        origin_addresses=[origin],
        destination_addresses=[destination],
        rows=[MatrixRow(elements=[element])],
    ))
