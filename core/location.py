"""
Location Service - cache-fronted async access to the geocoding collaborators.

All five evaluators resolve the same address concurrently. The service makes
sure each lookup reaches upstream at most once per TTL window:

1. A cache hit returns immediately without suspending.
2. A lookup already in flight for the same key is shared (shielded, so one
   cancelled waiter does not cancel it for the others).
3. Otherwise the blocking collaborator call runs in a worker thread.

Cache writes happen in the awaiting coroutine after the lookup settles, so a
cancelled analysis never writes to the cache.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from core.cache import CACHE_TTL, TTLCache, generate_address_cache_key, generate_location_cache_key
from core.errors import ERROR_MESSAGES, GeocodingError
from core.models import CensusTract, Coordinates

log = logging.getLogger(__name__)


class LocationService:
    """
    Resolves addresses to coordinates, census tracts, states and counties.

    Usage:
        service = LocationService(geocoder, census_loader, cache)
        coords = await service.coordinates("1600 Pennsylvania Ave, Washington, DC")
        tract = await service.census_tract(coords)
    """

    def __init__(self, geocoder, census_loader, cache: TTLCache):
        self.geocoder = geocoder
        self.census_loader = census_loader
        self.cache = cache
        self._pending: Dict[str, asyncio.Future] = {}
        self.upstream_calls = 0

    async def _lookup(self, key: str, ttl: float, func: Callable, *args, uncacheable: tuple = ()) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            log.debug(f"Cache hit for: {key}")
            return cached

        pending = self._pending.get(key)
        if pending is None:
            self.upstream_calls += 1
            pending = asyncio.ensure_future(asyncio.to_thread(func, *args))
            self._pending[key] = pending
            pending.add_done_callback(lambda fut, k=key: self._settle(k, fut))

        value = await asyncio.shield(pending)
        if value is not None and value not in uncacheable:
            self.cache.set(key, value, ttl)
        return value

    def _settle(self, key: str, future: asyncio.Future):
        if self._pending.get(key) is future:
            del self._pending[key]
        # Retrieve the exception so an abandoned lookup doesn't log "never retrieved"
        if not future.cancelled():
            future.exception()

    async def coordinates(self, address: str) -> Coordinates:
        """Coordinates for a normalized address. Raises GeocodingError if not found."""
        key = generate_address_cache_key(address)
        coords = await self._lookup(key, CACHE_TTL["LONG"], self.geocoder.geocode, address)
        if coords is None:
            raise GeocodingError(ERROR_MESSAGES["GEOCODING_FAILED"])
        return coords

    async def census_tract(self, coords: Coordinates) -> CensusTract:
        """Census tract containing coords. Raises GeocodingError if not found."""
        key = "tract_" + generate_location_cache_key(coords.latitude, coords.longitude)
        tract = await self._lookup(
            key, CACHE_TTL["LONG"], self.census_loader.resolve_census_tract,
            coords.latitude, coords.longitude,
        )
        if tract is None:
            raise GeocodingError(ERROR_MESSAGES["CENSUS_TRACT_FAILED"])
        return tract

    async def state(self, coords: Coordinates) -> str:
        key = "state_" + generate_location_cache_key(coords.latitude, coords.longitude)
        state = await self._lookup(
            key, CACHE_TTL["LONG"], self.geocoder.reverse_geocode_state,
            coords.latitude, coords.longitude, uncacheable=("Unknown",),
        )
        return state or "Unknown"

    async def county(self, coords: Coordinates) -> str:
        key = "county_" + generate_location_cache_key(coords.latitude, coords.longitude)
        county = await self._lookup(
            key, CACHE_TTL["LONG"], self.geocoder.reverse_geocode_county,
            coords.latitude, coords.longitude, uncacheable=("Unknown County",),
        )
        return county or "Unknown County"

    async def cached(self, key: str, ttl: float, loader: Callable[[], Any]) -> Any:
        """Cache the result of a blocking program-data loader under key."""
        return await self._lookup(key, ttl, loader)

    def peek_coordinates(self, address: str) -> Optional[Coordinates]:
        """Coordinates already cached for an address, without any lookup."""
        return self.cache.get(generate_address_cache_key(address))
