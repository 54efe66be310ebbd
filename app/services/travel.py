import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from app.services.distance import Coordinates, DistanceEstimate, estimate, format_distance, format_duration
from app.services.errors import InsufficientLocations
from app.services.geocoding import Geocoder

logger = logging.getLogger(__name__)

GEOCODE_FAILED = "Unable to calculate (NOT_FOUND)"


@dataclass(frozen=True)
class Stop:
    name: str
    address: str


@dataclass
class SegmentResult:
    from_name: str
    to_name: str
    estimate: Optional[DistanceEstimate] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.estimate is not None


@dataclass
class TravelTotal:
    distance_meters: int
    duration_seconds: int

    @property
    def distance_text(self) -> str:
        return format_distance(self.distance_meters)

    @property
    def duration_text(self) -> str:
        return format_duration(self.duration_seconds // 60)


@dataclass
class TravelReport:
    segments: List[SegmentResult] = field(default_factory=list)

    @property
    def total(self) -> Optional[TravelTotal]:
        """Sum of the successful segments; failed segments are left out, not counted as zero."""
        done = [s.estimate for s in self.segments if s.ok]
        if not done:
            return None
        return TravelTotal(
            distance_meters=sum(e.distance_meters for e in done),
            duration_seconds=sum(e.duration_seconds for e in done),
        )


def _field(obj, name):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def build_stops(start_location, locations: Iterable, end_location) -> List[Stop]:
    """
    Ordered list of addressed points for one day: start, every stop, end.
    Points without an address are skipped.
    """
    stops = []
    start_address = (_field(start_location, "address") or "").strip()
    if start_address:
        stops.append(Stop(name=_field(start_location, "name") or "Start Location", address=start_address))

    for loc in locations or []:
        address = (_field(loc, "address") or "").strip()
        if address:
            stops.append(Stop(name=_field(loc, "set_name") or address, address=address))

    end_address = (_field(end_location, "address") or "").strip()
    if end_address:
        stops.append(Stop(name=_field(end_location, "name") or "End Location", address=end_address))
    return stops


def stops_for_itinerary(itinerary) -> List[Stop]:
    return build_stops(itinerary.start_location, itinerary.locations, itinerary.end_location)


async def calculate_segments(stops: List[Stop], geocoder: Geocoder) -> TravelReport:
    """
    Estimate every consecutive leg of `stops`.

    Addresses are geocoded concurrently, each distinct address once. A leg whose
    endpoints did not both resolve carries an error instead of an estimate;
    the remaining legs are still computed.

    Raises:
        InsufficientLocations: fewer than two stops; no lookups are made.
    """
    if len(stops) < 2:
        raise InsufficientLocations()

    addresses = list(dict.fromkeys(stop.address for stop in stops))
    results = await asyncio.gather(*(geocoder.geocode(address) for address in addresses))
    coordinates: Dict[str, Optional[Coordinates]] = dict(zip(addresses, results))

    report = TravelReport()
    for origin, destination in zip(stops, stops[1:]):
        start = coordinates.get(origin.address)
        end = coordinates.get(destination.address)
        if start is None or end is None:
            logger.info(f"Skipping leg {origin.name} -> {destination.name}: address not found")
            report.segments.append(SegmentResult(origin.name, destination.name, error=GEOCODE_FAILED))
            continue
        report.segments.append(SegmentResult(origin.name, destination.name, estimate=estimate(start, end)))
    return report


async def estimate_pair(origin_address: str, destination_address: str, geocoder: Geocoder) -> Optional[DistanceEstimate]:
    """Single origin/destination lookup; None when either address cannot be geocoded."""
    start, end = await asyncio.gather(geocoder.geocode(origin_address), geocoder.geocode(destination_address))
    if start is None or end is None:
        return None
    return estimate(start, end)
