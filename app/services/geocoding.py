"""
Address lookup through Nominatim (OpenStreetMap).

Nominatim needs no API key but rejects requests without an identifying
User-Agent. Each call is a single request; failures come back as None.
"""

import logging
from typing import Optional

import httpx

from app.config import GEOCODER_URL, GEOCODER_USER_AGENT, GEOCODER_TIMEOUT_SECONDS
from app.services.distance import Coordinates

logger = logging.getLogger(__name__)


class Geocoder:

    def __init__(
        self,
        base_url: str = GEOCODER_URL,
        user_agent: str = GEOCODER_USER_AGENT,
        timeout: float = GEOCODER_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url
        self.user_agent = user_agent
        self.timeout = timeout

    async def geocode(self, address: str) -> Optional[Coordinates]:
        address = (address or "").strip()
        if not address:
            return None

        params = {"q": address, "format": "json", "limit": "1"}
        headers = {"User-Agent": self.user_agent}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/search", params=params, headers=headers)
                response.raise_for_status()
                results = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Geocoding timed out for address: {address}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geocoding request failed for address {address}: {e}")
            return None

        if not results:
            logger.info(f"No geocoding results for address: {address}")
            return None

        try:
            first = results[0]
            return Coordinates(lat=float(first["lat"]), lon=float(first["lon"]))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Malformed geocoding response for address {address}: {e}")
            return None


def get_geocoder() -> Geocoder:
    return Geocoder()
