import asyncio
import threading

import pytest

from core.cache import generate_address_cache_key
from core.errors import GeocodingError
from core.location import LocationService

ADDRESS = "1600 Pennsylvania Ave, Washington, DC 20500"


def test_coordinates_cached(location, fake_geocoder):
    """Second lookup is served from the cache."""
    async def scenario():
        first = await location.coordinates(ADDRESS)
        second = await location.coordinates(ADDRESS)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == second
    assert fake_geocoder.geocode_calls == 1
    assert location.peek_coordinates(ADDRESS) == first


def test_concurrent_lookups_coalesce(location, fake_geocoder):
    """Concurrent lookups of one address reach the geocoder once."""
    async def scenario():
        return await asyncio.gather(*(location.coordinates(ADDRESS) for _ in range(5)))

    results = asyncio.run(scenario())
    assert len(set(results)) == 1
    assert fake_geocoder.geocode_calls == 1
    assert location.upstream_calls == 1


def test_cancelled_lookup_writes_nothing(location, fake_geocoder, cache):
    """A lookup abandoned mid-flight leaves the cache untouched."""
    fake_geocoder.gate = threading.Event()

    async def scenario():
        task = asyncio.ensure_future(location.coordinates(ADDRESS))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        fake_geocoder.gate.set()
        for _ in range(100):
            if not location._pending:
                break
            await asyncio.sleep(0.01)

    asyncio.run(scenario())
    assert generate_address_cache_key(ADDRESS) not in cache
    assert len(cache) == 0


def test_geocoding_failure(fake_census, cache):
    class NoResults:
        def geocode(self, address):
            return None

    service = LocationService(NoResults(), fake_census, cache)
    with pytest.raises(GeocodingError):
        asyncio.run(service.coordinates(ADDRESS))
    assert len(cache) == 0


def test_tract_failure(location, fake_census):
    fake_census.tract = None

    async def scenario():
        coords = await location.coordinates(ADDRESS)
        return await location.census_tract(coords)

    with pytest.raises(GeocodingError):
        asyncio.run(scenario())


def test_unknown_state_not_cached(location, fake_geocoder, cache):
    fake_geocoder.state = "Unknown"

    async def scenario():
        coords = await location.coordinates(ADDRESS)
        return await location.state(coords), coords

    state, coords = asyncio.run(scenario())
    assert state == "Unknown"
    assert len(cache) == 1  # coordinates only


def test_cached_loader_runs_once(location):
    calls = []

    def loader():
        calls.append(1)
        return frozenset({"a"})

    async def scenario():
        await location.cached("oz_list_all", 60, loader)
        return await location.cached("oz_list_all", 60, loader)

    assert asyncio.run(scenario()) == frozenset({"a"})
    assert len(calls) == 1
