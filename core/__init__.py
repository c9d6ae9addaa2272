"""
Core module for the CRE Incentives Engine.
Contains data models, errors, caching, validation and configuration.

The orchestrator lives in core.engine; import it from there.
"""

from core.errors import ErrorKind, IncentiveError, ValidationError, NetworkError, APIError, RateLimitError, GeocodingError
from core.models import (
    ProgramKey,
    Priority,
    Compatibility,
    RiskLevel,
    ResultStatus,
    Coordinates,
    CensusTract,
    BusinessInfo,
    ProjectDetails,
    ProgramResult,
    Recommendation,
    StackingPair,
    Analysis,
)
from core.cache import TTLCache, CACHE_TTL
from core.config import EngineSettings

__all__ = [
    # Errors
    "ErrorKind",
    "IncentiveError",
    "ValidationError",
    "NetworkError",
    "APIError",
    "RateLimitError",
    "GeocodingError",
    # Models
    "ProgramKey",
    "Priority",
    "Compatibility",
    "RiskLevel",
    "ResultStatus",
    "Coordinates",
    "CensusTract",
    "BusinessInfo",
    "ProjectDetails",
    "ProgramResult",
    "Recommendation",
    "StackingPair",
    "Analysis",
    # Infrastructure
    "TTLCache",
    "CACHE_TTL",
    "EngineSettings",
]
