"""
Census Tract Loader - resolve coordinates to a census tract.

Uses the Census Bureau geographies/coordinates endpoint. The tract GEOID is
the key into the program eligibility tables.
"""

import logging
from typing import Optional

from core.models import CensusTract
from loaders.http import JSONClient

log = logging.getLogger(__name__)


class CensusTractLoader:
    """Census Bureau geocoder client for tract lookups."""

    CENSUS_GEOCODER_URL = "https://geocoding.geo.census.gov/geocoder"
    TRACT_LAYER = 14  # "Census Tracts" layer id

    def __init__(
        self,
        base_url: str = CENSUS_GEOCODER_URL,
        user_agent: str = "CRE-Financial-Tool/1.0",
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        # The Census geocoder has no published per-second limit
        self.client = JSONClient(user_agent=user_agent, timeout=timeout, min_interval=0.2)

    @property
    def session(self):
        return self.client.session

    @session.setter
    def session(self, value):
        self.client.session = value

    def resolve_census_tract(self, lat: float, lon: float) -> Optional[CensusTract]:
        """
        Look up the census tract containing a point.

        Returns:
            CensusTract, or None if the point is outside tract coverage

        Raises:
            NetworkError / APIError when the Census service can't be reached
        """
        params = {
            "x": lon,
            "y": lat,
            "benchmark": "Public_AR_Current",
            "vintage": "Current_Current",
            "layers": self.TRACT_LAYER,
            "format": "json",
        }
        data = self.client.get_json(f"{self.base_url}/geographies/coordinates", params) or {}

        geographies = (data.get("result") or {}).get("geographies") or {}
        tracts = geographies.get("Census Tracts") or []
        if not tracts:
            log.warning(f"No census tract for ({lat}, {lon})")
            return None

        tract = tracts[0]
        result = CensusTract(
            tract_id=tract["TRACT"],
            county_id=tract["COUNTY"],
            state_id=tract["STATE"],
            geoid=tract["GEOID"],
        )
        log.debug(f"Census tract for ({lat}, {lon}): {result.geoid}")
        return result
