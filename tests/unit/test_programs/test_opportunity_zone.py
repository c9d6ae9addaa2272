import asyncio

import pytest

from core.errors import ErrorKind
from core.models import CensusTract, ProgramKey
from programs.opportunity_zone import DESIGNATED_OZ_TRACTS, OpportunityZoneEvaluator

ADDRESS = "1600 Pennsylvania Avenue, Washington, DC 20500"


@pytest.fixture
def evaluator(location):
    return OpportunityZoneEvaluator(location)


def test_designated_tract(evaluator):
    """DC tract 11001007200 is a designated Opportunity Zone."""
    result = asyncio.run(evaluator.evaluate(ADDRESS))

    assert result.program is ProgramKey.OPPORTUNITY_ZONE
    assert result.available is True
    assert result.data.is_opportunity_zone is True
    assert result.data.details["geoid"] == "11001007200"
    assert result.data.benefits["program"] == "Opportunity Zones"
    assert result.data.address == "1600 Pennsylvania Ave, Washington, DC 20500"


def test_non_designated_tract(evaluator, fake_census):
    fake_census.tract = CensusTract("980000", "001", "11", "11001980000")
    result = asyncio.run(evaluator.evaluate(ADDRESS))

    assert result.ok
    assert result.available is False
    assert result.data.benefits is None
    assert result.data.details is None


def test_designation_list_cached(evaluator, cache):
    asyncio.run(evaluator.evaluate(ADDRESS))
    assert cache.get(OpportunityZoneEvaluator.OZ_LIST_CACHE_KEY) == frozenset(DESIGNATED_OZ_TRACTS)


def test_missing_tract_is_geocoding_error(evaluator, fake_census):
    fake_census.tract = None
    result = asyncio.run(evaluator.evaluate(ADDRESS))

    assert result.error_kind is ErrorKind.GEOCODING
    assert result.data is None


def test_invalid_address(evaluator, fake_geocoder):
    result = asyncio.run(evaluator.evaluate("no number here"))

    assert result.error_kind is ErrorKind.VALIDATION
    assert fake_geocoder.geocode_calls == 0
