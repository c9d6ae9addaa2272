import threading

import pytest

from core.cache import TTLCache
from core.location import LocationService
from core.models import CensusTract, Coordinates

WHITE_HOUSE = Coordinates(38.8977, -77.0365, "White House, Washington, DC")
DC_OZ_TRACT = CensusTract(tract_id="007200", county_id="001", state_id="11", geoid="11001007200")


class FakeGeocoder:
    """In-memory stand-in for the Nominatim geocoder."""

    def __init__(self, coords=WHITE_HOUSE, state="District of Columbia", county="Washington County"):
        self.coords = coords
        self.state = state
        self.county = county
        self.geocode_calls = 0
        self.gate = None  # threading.Event to hold lookups open
        self._lock = threading.Lock()

    def geocode(self, address):
        with self._lock:
            self.geocode_calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return self.coords

    def reverse_geocode_state(self, lat, lon):
        return self.state

    def reverse_geocode_county(self, lat, lon):
        return self.county


class FakeCensusLoader:
    def __init__(self, tract=DC_OZ_TRACT):
        self.tract = tract
        self.calls = 0

    def resolve_census_tract(self, lat, lon):
        self.calls += 1
        return self.tract


@pytest.fixture
def fake_geocoder():
    return FakeGeocoder()


@pytest.fixture
def fake_census():
    return FakeCensusLoader()


@pytest.fixture
def cache():
    return TTLCache(max_size=100, default_ttl=300)


@pytest.fixture
def location(fake_geocoder, fake_census, cache):
    return LocationService(fake_geocoder, fake_census, cache)
