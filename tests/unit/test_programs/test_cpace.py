import asyncio

import pytest

from core.models import ProjectDetails
from programs.cpace import (
    CPACE_PROVIDERS,
    CPACEEvaluator,
    calculate_cpace_savings,
    get_cpace_providers,
    state_cpace_program,
)

ADDRESS = "1600 Pennsylvania Avenue, Washington, DC 20500"

NO_LOCAL = {"available": False, "program": "No local program"}


@pytest.fixture
def evaluator(location):
    return CPACEEvaluator(location)


def evaluate(evaluator, details=None):
    return asyncio.run(evaluator.evaluate(ADDRESS, details))


def test_state_program_available(evaluator, fake_geocoder):
    fake_geocoder.state = "Colorado"
    fake_geocoder.county = "Denver County"
    evaluator.local_program = lambda coords, county: NO_LOCAL

    result = evaluate(evaluator)

    assert result.available is True
    assert result.data.state_program["program"] == "C-PACE programs"
    assert result.data.county == "Denver County"
    assert result.data.eligible_improvements["renewable_energy"]
    assert result.data.benefits is not None
    assert result.data.providers == CPACE_PROVIDERS["National"]


def test_generic_enabling_state(evaluator, fake_geocoder):
    fake_geocoder.state = "Ohio"
    evaluator.local_program = lambda coords, county: NO_LOCAL

    result = evaluate(evaluator)
    assert result.available is True
    assert result.data.state_program["program"] == "Ohio C-PACE"


def test_local_program_only(evaluator, fake_geocoder):
    fake_geocoder.state = "Alabama"
    evaluator.local_program = lambda coords, county: {"available": True, "program": f"{county} C-PACE Program"}

    result = evaluate(evaluator)
    assert result.available is True
    assert result.data.state_program["available"] is False


def test_not_available(evaluator, fake_geocoder):
    fake_geocoder.state = "Unknown"
    evaluator.local_program = lambda coords, county: NO_LOCAL

    result = evaluate(evaluator)
    assert result.ok
    assert result.available is False
    assert result.data.benefits is None
    assert result.data.eligible_improvements is None
    assert result.data.providers is None
    assert "Unknown energy office" in result.data.state_program["note"]


def test_savings_projection(evaluator, fake_geocoder):
    fake_geocoder.state = "California"
    details = ProjectDetails(improvement_cost=100_000, annual_energy_savings=15_000)

    result = evaluate(evaluator, details)
    assert result.data.savings_projection["payback_period"] == 6.7
    assert result.data.providers == CPACE_PROVIDERS["California"]


def test_local_program_reproducible(evaluator, location):
    coords = asyncio.run(location.coordinates(ADDRESS))
    assert evaluator.local_program(coords, "Washington County") == evaluator.local_program(coords, "Washington County")


def test_calculate_cpace_savings():
    savings = calculate_cpace_savings(100_000, 15_000)

    # 6% over 20 years
    assert savings["annual_payment"] == pytest.approx(8597, abs=2)
    assert savings["net_annual_savings"] == pytest.approx(15_000 - savings["annual_payment"], abs=1)
    assert savings["payback_period"] == 6.7
    assert savings["cash_flow_positive"] is True
    assert savings["interest_rate"] == "6%"


def test_calculate_cpace_savings_zero_rate():
    savings = calculate_cpace_savings(120_000, 10_000, term=10, interest_rate=0.0)
    assert savings["annual_payment"] == 12_000
    assert savings["total_interest"] == 0
    assert savings["cash_flow_positive"] is False


def test_providers_fall_back_to_national():
    assert get_cpace_providers("California") == CPACE_PROVIDERS["California"]
    assert get_cpace_providers("Texas") == CPACE_PROVIDERS["National"]


def test_non_enabling_state():
    assert state_cpace_program("Alabama")["available"] is False
