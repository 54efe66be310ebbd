"""Straight-line distance and driving time estimation.

No routing service is involved: the great-circle distance is stretched by a
fixed road factor and divided by a fixed average speed.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple

EARTH_RADIUS_KM = 6371.0
# Roads are rarely straight; typical indirection over great-circle distance
ROAD_FACTOR = 1.25
AVERAGE_SPEED_KMH = 40.0


class Coordinates(NamedTuple):
    lat: float
    lon: float


@dataclass(frozen=True)
class DistanceEstimate:
    distance_meters: int
    duration_seconds: int
    distance_text: str
    duration_text: str


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres.

    Args:
        lat1, lon1: First point (decimal degrees).
        lat2, lon2: Second point (decimal degrees).
    """
    lat1_r, lon1_r = math.radians(lat1), math.radians(lon1)
    lat2_r, lon2_r = math.radians(lat2), math.radians(lon2)

    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def road_distance_km(straight_km: float) -> float:
    return straight_km * ROAD_FACTOR


def estimate_driving_minutes(road_km: float) -> int:
    """Driving time at the average speed, rounded to the nearest minute."""
    return int(math.floor(road_km / AVERAGE_SPEED_KMH * 60 + 0.5))


def format_duration(minutes: int) -> str:
    """Render minutes as "N min(s)" or "H hour(s) M min(s)"."""
    if minutes < 60:
        return f"{minutes} min{'' if minutes == 1 else 's'}"
    hours, mins = divmod(minutes, 60)
    return f"{hours} hour{'s' if hours > 1 else ''} {mins} min{'' if mins == 1 else 's'}"


def format_distance(meters: int) -> str:
    return f"{meters / 1000:.1f} km"


def estimate(origin: Coordinates, destination: Coordinates) -> DistanceEstimate:
    road_km = road_distance_km(haversine_km(origin.lat, origin.lon, destination.lat, destination.lon))
    minutes = estimate_driving_minutes(road_km)
    meters = int(math.floor(road_km * 1000 + 0.5))
    return DistanceEstimate(
        distance_meters=meters,
        duration_seconds=minutes * 60,
        distance_text=format_distance(meters),
        duration_text=format_duration(minutes),
    )
