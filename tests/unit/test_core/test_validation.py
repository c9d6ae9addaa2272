import pytest

from core.errors import ValidationError
from core.models import BusinessInfo, ProjectDetails
from core.validation import (
    normalize_address,
    require_valid_address,
    sanitize_input,
    validate_address,
    validate_business_info,
    validate_coordinates,
    validate_project_details,
)


class TestNormalizeAddress:
    @pytest.mark.parametrize("raw,expected", [
        ("123 Main Street", "123 Main St"),
        ("  456   Oak   avenue  ", "456 Oak Ave"),
        ("789 Sunset BOULEVARD", "789 Sunset Blvd"),
        ("10 Elm road, Apt 2", "10 Elm Rd, Apt 2"),
        ("5 Lake dr", "5 Lake Dr"),
        ("1 Quiet lane", "1 Quiet Ln"),
        ("22 Royal court", "22 Royal Ct"),
        ("8 Market place", "8 Market Pl"),
    ])
    def test_suffixes(self, raw, expected):
        assert normalize_address(raw) == expected

    def test_whole_words_only(self):
        """Suffix words inside other words are untouched."""
        assert normalize_address("12 Streetsboro Rd") == "12 Streetsboro Rd"
        assert normalize_address("3 Stanford Drive") == "3 Stanford Dr"

    @pytest.mark.parametrize("raw", [
        "1600 Pennsylvania Avenue, Washington, DC 20500",
        "  99 first   street  ",
        "42 Place Court Drive",
        "100 Main ſt, Austin, TX",
        "100 Oak Drıve, Austin, TX",
        "7 Café Street",
    ])
    def test_idempotent(self, raw):
        once = normalize_address(raw)
        assert normalize_address(once) == once

    def test_non_ascii_case_folds_left_alone(self):
        """Letters that only case-fold to ASCII don't count as suffixes."""
        assert normalize_address("100 Main ſt, Austin, TX") == "100 Main ſt, Austin, TX"
        assert normalize_address("100 Oak Drıve, Austin, TX") == "100 Oak Drıve, Austin, TX"
        assert normalize_address("100 oak drıve") == "100 oak Drıve"


class TestValidateAddress:
    def test_valid(self):
        result = validate_address("1600 Pennsylvania Avenue, Washington, DC 20500")
        assert result.is_valid
        assert result.normalized == "1600 Pennsylvania Ave, Washington, DC 20500"

    @pytest.mark.parametrize("bad", ["", "   ", None, 12345, "Main Street", "12345 67890"])
    def test_invalid(self, bad):
        assert not validate_address(bad).is_valid

    def test_short_address_warns(self):
        result = validate_address("1 A St")
        assert result.is_valid
        assert result.warnings

    def test_too_long(self):
        assert not validate_address("1 " + "a" * 250).is_valid

    def test_require_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            require_valid_address("")
        assert exc_info.value.field == "address"


class TestBusinessInfo:
    def test_unknown_industry_becomes_other(self):
        result = validate_business_info(BusinessInfo(industry="aerospace"))
        assert result.is_valid
        assert result.normalized.industry == "other"
        assert any("aerospace" in w for w in result.warnings)

    def test_negative_values_rejected(self):
        result = validate_business_info(BusinessInfo(employee_count=-1))
        assert not result.is_valid
        assert result.normalized is None

    def test_occupancy_out_of_range(self):
        assert not validate_business_info(BusinessInfo(owner_occupancy=120)).is_valid

    def test_low_equity_warns(self):
        result = validate_business_info(BusinessInfo(owner_equity=50_000), project_cost=1_000_000)
        assert any("10%" in w for w in result.warnings)

    def test_use_of_funds_lowercased(self):
        result = validate_business_info(BusinessInfo(use_of_funds=[" Working Capital "]))
        assert result.normalized.use_of_funds == ["working capital"]

    def test_none_is_valid(self):
        assert validate_business_info(None).is_valid


class TestProjectDetails:
    def test_non_positive_cost(self):
        assert not validate_project_details(ProjectDetails(project_cost=-5)).is_valid

    def test_over_max_cost(self):
        assert not validate_project_details(ProjectDetails(project_cost=2e9)).is_valid

    def test_unknown_project_type_warns(self):
        result = validate_project_details(ProjectDetails(project_cost=100_000, project_type="spaceport"))
        assert result.is_valid
        assert result.warnings


def test_validate_coordinates():
    assert validate_coordinates(38.9, -77.0).is_valid
    assert not validate_coordinates(91, 0).is_valid
    assert not validate_coordinates("x", 0).is_valid


def test_sanitize_input():
    assert sanitize_input("  <b>123 Main St</b> ") == "b123 Main St/b"
    assert sanitize_input("javascript:alert(1)") == "alert(1)"
    assert sanitize_input(42) == 42
