"""Reverse geocoding through a Nominatim-compatible service.

Coordinates become a short place name such as
"Mission District, San Francisco, California, United States".
"""

import logging
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

import httpx

from cinevault.config import get_settings
from cinevault.core.exceptions import GeocodeFailure

logger = logging.getLogger(__name__)

# Only the first present key of each group is used
LOCALITY_KEYS = ("neighbourhood", "suburb", "village")
CITY_KEYS = ("city", "town", "county")


def _first_present(address: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return None


def format_location_name(payload: Mapping[str, Any]) -> str | None:
    """Reduce a reverse-geocoding response to a short place name.

    Picks the most specific locality, then the most specific city-level
    name, then state and country. Without any address parts the service's
    ``display_name`` is returned as is.
    """
    address = payload.get("address")
    if not isinstance(address, Mapping):
        address = {}

    parts = [
        _first_present(address, LOCALITY_KEYS),
        _first_present(address, CITY_KEYS),
        _first_present(address, ("state",)),
        _first_present(address, ("country",)),
    ]
    parts = [part for part in parts if part]
    if parts:
        return ", ".join(parts)

    display_name = payload.get("display_name")
    return str(display_name) if display_name else None


class GeocodeResolver:
    """Client for the ``/reverse`` endpoint of a Nominatim-style service."""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 10.0,
        zoom: int = 14,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            base_url: Service root, e.g. https://nominatim.openstreetmap.org
            user_agent: Identifying User-Agent; Nominatim rejects anonymous
                traffic.
            timeout: Seconds before a request counts as failed.
            zoom: Address detail level requested from the service.
            transport: Optional httpx transport, used by tests.
        """
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout
        self._zoom = zoom
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self._user_agent, "Accept": "application/json"}

    async def fetch(self, latitude: float, longitude: float) -> dict[str, Any]:
        """Call the reverse endpoint and return the decoded JSON object.

        Raises:
            GeocodeFailure: On transport errors, timeouts, non-2xx statuses
                or a body that is not a JSON object.
        """
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "zoom": self._zoom,
        }
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers(),
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get("/reverse", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise GeocodeFailure(f"Geocoding timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            raise GeocodeFailure(f"Geocoding HTTP error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GeocodeFailure(f"Cannot reach geocoding service: {e}") from e
        except ValueError as e:
            raise GeocodeFailure(f"Invalid geocoding response: {e}") from e

        if not isinstance(data, dict):
            raise GeocodeFailure(f"Unexpected geocoding response: {type(data).__name__}")
        return data

    async def resolve(self, latitude: float, longitude: float) -> str | None:
        """Place name for the coordinates, or None if it cannot be determined."""
        try:
            payload = await self.fetch(latitude, longitude)
        except GeocodeFailure as e:
            logger.warning(f"역지오코딩 실패: lat={latitude}, lon={longitude}, error={e}")
            return None
        return format_location_name(payload)


@lru_cache
def get_geocode_resolver() -> GeocodeResolver:
    settings = get_settings()
    return GeocodeResolver(
        base_url=settings.geocoder_url,
        user_agent=settings.geocoder_user_agent,
        timeout=settings.geocoder_timeout_seconds,
        zoom=settings.geocoder_zoom,
    )
