"""
Address geocoding client.

Resolves a street address to coordinates through a Nominatim-compatible
search endpoint. Failures degrade to ``None``: a property without
coordinates simply cannot have its photos location-attested.
"""

import logging
from typing import Optional

import httpx

from propertysnap.core.config import Settings, get_settings
from propertysnap.schemas.property import Coordinates
from propertysnap.services.interfaces import Geocoder

logger = logging.getLogger(__name__)


class NominatimGeocoder(Geocoder):
    """Geocoder backed by the Nominatim ``/search`` API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.geocoder_base_url.rstrip("/")
        self.timeout = self.settings.geocoder_timeout_s
        self.transport = transport

    async def geocode(self, address: str) -> Optional[Coordinates]:
        address = (address or "").strip()
        if not address:
            return None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url}/search",
                    params={"q": address, "format": "json", "limit": 1},
                    headers={"User-Agent": self.settings.geocoder_user_agent},
                )
        except httpx.TimeoutException:
            logger.warning("Geocoder request timed out for %r", address)
            return None
        except httpx.RequestError as e:
            logger.warning("Geocoder connection error: %s", e)
            return None

        if response.status_code != 200:
            logger.warning("Geocoder returned %s for %r", response.status_code, address)
            return None

        try:
            results = response.json()
            if not results:
                logger.info("No geocoding result for %r", address)
                return None
            first = results[0]
            return Coordinates(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (ValueError, KeyError, TypeError, IndexError) as e:
            logger.warning("Unreadable geocoder response for %r: %s", address, e)
            return None
