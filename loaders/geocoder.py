"""
Geocoder - Convert addresses to coordinates using Nominatim.

Features:
- Forward geocoding restricted to the United States
- Reverse geocoding to state and county names
- Rate limiting and retry via JSONClient

Results are not cached here; the engine's TTL cache sits in front of this
collaborator (see core.location).
"""

import logging
from typing import Optional

from core.errors import IncentiveError
from core.models import Coordinates
from core.validation import validate_coordinates
from loaders.http import JSONClient

log = logging.getLogger(__name__)


class Geocoder:
    """
    Geocoder using the OpenStreetMap Nominatim API.

    Respects rate limits: max 1 request per second.
    """

    NOMINATIM_URL = "https://nominatim.openstreetmap.org"
    USER_AGENT = "CRE-Financial-Tool/1.0"

    # Nominatim zoom levels for reverse lookups
    STATE_ZOOM = 6
    COUNTY_ZOOM = 8

    def __init__(
        self,
        base_url: str = NOMINATIM_URL,
        user_agent: str = USER_AGENT,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = JSONClient(user_agent=user_agent, timeout=timeout)

    @property
    def session(self):
        return self.client.session

    @session.setter
    def session(self, value):
        self.client.session = value

    def geocode(self, address: str) -> Optional[Coordinates]:
        """
        Convert an address to coordinates.

        Args:
            address: Free-form address string, e.g. "123 Main St, Santa Cruz, CA"

        Returns:
            Coordinates, or None if not found

        Raises:
            NetworkError / APIError when Nominatim can't be reached
        """
        params = {
            "q": address,
            "format": "jsonv2",
            "countrycodes": "us",
            "limit": 1,
        }
        results = self.client.get_json(f"{self.base_url}/search", params)

        if not results:
            log.warning(f"No results for: {address}")
            return None

        result = results[0]
        lat, lon = float(result["lat"]), float(result["lon"])
        check = validate_coordinates(lat, lon)
        if not check.is_valid:
            log.warning(f"Discarding invalid coordinates for {address}: {check.errors}")
            return None

        location = Coordinates(
            latitude=lat,
            longitude=lon,
            display_name=result.get("display_name", ""),
        )
        log.info(f"Geocoded: {address} -> ({location.latitude}, {location.longitude})")
        return location

    def _reverse(self, lat: float, lon: float, zoom: int) -> dict:
        params = {
            "lat": lat,
            "lon": lon,
            "format": "jsonv2",
            "zoom": zoom,
            "addressdetails": 1,
        }
        return self.client.get_json(f"{self.base_url}/reverse", params) or {}

    def reverse_geocode_state(self, lat: float, lon: float) -> str:
        """State name for a point, or "Unknown" if it can't be determined."""
        try:
            result = self._reverse(lat, lon, self.STATE_ZOOM)
        except IncentiveError as e:
            log.warning(f"Reverse geocoding (state) failed for ({lat}, {lon}): {e}")
            return "Unknown"
        return result.get("address", {}).get("state") or "Unknown"

    def reverse_geocode_county(self, lat: float, lon: float) -> str:
        """County name for a point, or "Unknown County" if it can't be determined."""
        try:
            result = self._reverse(lat, lon, self.COUNTY_ZOOM)
        except IncentiveError as e:
            log.warning(f"Reverse geocoding (county) failed for ({lat}, {lon}): {e}")
            return "Unknown County"
        return result.get("address", {}).get("county") or "Unknown County"
