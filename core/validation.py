"""
Input validation and address normalization.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.errors import ValidationError
from core.models import BusinessInfo, ProjectDetails


ADDRESS_MIN_LENGTH = 10
ADDRESS_MAX_LENGTH = 200

STREET_SUFFIXES = {
    "street": "St", "st": "St",
    "avenue": "Ave", "ave": "Ave",
    "boulevard": "Blvd", "blvd": "Blvd",
    "road": "Rd", "rd": "Rd",
    "drive": "Dr", "dr": "Dr",
    "lane": "Ln", "ln": "Ln",
    "court": "Ct", "ct": "Ct",
    "place": "Pl", "pl": "Pl",
}

_SUFFIX_PATTERN = re.compile(r"\b(" + "|".join(STREET_SUFFIXES) + r")\b", re.IGNORECASE | re.ASCII)
_WHITESPACE = re.compile(r"\s+")

VALID_INDUSTRIES = [
    "retail", "manufacturing", "construction", "professional_services",
    "real_estate", "hospitality", "healthcare", "technology", "other",
]

VALID_PROJECT_TYPES = [
    "new_construction", "renovation", "acquisition", "mixed_use",
    "office", "retail", "industrial", "hospitality", "healthcare",
]

VALID_CONSTRUCTION_TYPES = [
    "ground_up", "substantial_rehab", "adaptive_reuse", "tenant_improvement",
]


@dataclass
class ValidationResult:
    """Outcome of a validation pass. normalized is None when invalid input can't be normalized."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    normalized: Any = None


def normalize_address(address: str) -> str:
    """
    Trim, collapse whitespace and canonicalize street suffixes.

    Idempotent: normalize_address(normalize_address(a)) == normalize_address(a).
    """
    collapsed = _WHITESPACE.sub(" ", address.strip())
    return _SUFFIX_PATTERN.sub(lambda m: STREET_SUFFIXES.get(m.group(0).lower(), m.group(0)), collapsed)


def validate_address(address: Any) -> ValidationResult:
    """Check that an address has a street number and a street name."""
    if not isinstance(address, str):
        return ValidationResult(False, errors=["Address must be a string"])

    trimmed = address.strip()
    if not trimmed:
        return ValidationResult(False, errors=["Address cannot be empty"])

    errors, warnings = [], []

    if len(trimmed) < ADDRESS_MIN_LENGTH:
        warnings.append("Address appears to be incomplete")
    if len(trimmed) > ADDRESS_MAX_LENGTH:
        errors.append(f"Address must be at most {ADDRESS_MAX_LENGTH} characters")
    if not re.search(r"\d", trimmed):
        errors.append("Address should include a street number")
    if not re.search(r"[a-zA-Z]", trimmed):
        errors.append("Address should include a street name")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        normalized=normalize_address(trimmed),
    )


def require_valid_address(address: Any) -> str:
    """Return the normalized address or raise ValidationError."""
    result = validate_address(address)
    if not result.is_valid:
        raise ValidationError(f"Invalid address: {', '.join(result.errors)}", field="address")
    return result.normalized


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def validate_business_info(info: Optional[BusinessInfo], project_cost: Optional[float] = None) -> ValidationResult:
    """Validate SBA-relevant business attributes and normalize the industry."""
    if info is None:
        return ValidationResult(True, normalized=BusinessInfo())

    errors, warnings = [], []

    if not _is_number(info.employee_count) or info.employee_count < 0:
        errors.append("Employee count must be a non-negative number")
    if not _is_number(info.average_annual_receipts) or info.average_annual_receipts < 0:
        errors.append("Average annual receipts must be a non-negative number")
    if not _is_number(info.business_age) or info.business_age < 0:
        errors.append("Business age must be a non-negative number")
    elif info.business_age < 2:
        warnings.append("Many programs require 2+ years of business history")
    if not _is_number(info.owner_equity) or info.owner_equity < 0:
        errors.append("Owner equity must be a non-negative number")
    if not _is_number(info.owner_occupancy) or not 0 <= info.owner_occupancy <= 100:
        errors.append("Owner occupancy must be a percentage between 0 and 100")
    elif info.owner_occupancy < 51:
        warnings.append("Many programs require 51%+ owner occupancy")
    if info.jobs_created is not None and (not _is_number(info.jobs_created) or info.jobs_created < 0):
        errors.append("Jobs created must be a non-negative number")

    industry = info.industry
    if industry not in VALID_INDUSTRIES:
        warnings.append(f'Industry "{industry}" not recognized, using "other"')
        industry = "other"

    if project_cost and _is_number(info.owner_equity) and info.owner_equity:
        if info.owner_equity / project_cost * 100 < 10:
            warnings.append("Owner equity below 10% may limit financing options")

    normalized = BusinessInfo(
        employee_count=info.employee_count,
        average_annual_receipts=info.average_annual_receipts,
        industry=industry,
        business_age=info.business_age,
        owner_equity=info.owner_equity,
        owner_occupancy=info.owner_occupancy,
        jobs_created=info.jobs_created,
        use_of_funds=[use.strip().lower() for use in info.use_of_funds],
    )
    return ValidationResult(not errors, errors, warnings, normalized if not errors else None)


def validate_project_details(details: Optional[ProjectDetails]) -> ValidationResult:
    """Validate project-level financial inputs."""
    if details is None:
        return ValidationResult(True, normalized=ProjectDetails())

    errors, warnings = [], []

    if details.project_cost is not None:
        if not _is_number(details.project_cost) or details.project_cost <= 0:
            errors.append("Project cost must be a positive number")
        elif details.project_cost > 1_000_000_000:
            errors.append("Project cost exceeds the $1B maximum")
    for name in ("improvement_cost", "annual_energy_savings"):
        value = getattr(details, name)
        if value is not None and (not _is_number(value) or value <= 0):
            errors.append(f"{name.replace('_', ' ').capitalize()} must be a positive number")

    if details.project_type and details.project_type not in VALID_PROJECT_TYPES:
        warnings.append(f'Project type "{details.project_type}" not recognized')
    if details.construction_type and details.construction_type not in VALID_CONSTRUCTION_TYPES:
        warnings.append(f'Construction type "{details.construction_type}" not recognized')

    return ValidationResult(not errors, errors, warnings, details if not errors else None)


def validate_coordinates(lat: Any, lon: Any) -> ValidationResult:
    errors = []
    if not _is_number(lat):
        errors.append("Latitude must be a valid number")
    elif not -90 <= lat <= 90:
        errors.append("Latitude must be between -90 and 90")
    if not _is_number(lon):
        errors.append("Longitude must be a valid number")
    elif not -180 <= lon <= 180:
        errors.append("Longitude must be between -180 and 180")
    return ValidationResult(not errors, errors)


def sanitize_input(text: Any) -> Any:
    """Strip markup characters and script protocols from free text."""
    if not isinstance(text, str):
        return text
    cleaned = re.sub(r"[<>]", "", text.strip())
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    return cleaned[:1000]
