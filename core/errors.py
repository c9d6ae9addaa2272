"""
Error taxonomy for the incentive analysis engine.

Every error carries an explicit ErrorKind so callers can branch on the kind
instead of inspecting exception class names at run time.
"""

from datetime import datetime
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Kinds of failure the engine reports."""
    VALIDATION = "validation"      # Bad input shape/content (caller-fixable)
    NETWORK = "network"            # Transport failure or timeout to a collaborator
    API = "api"                    # Collaborator returned a non-success status
    RATE_LIMIT = "rate_limit"      # Collaborator throttled the request
    GEOCODING = "geocoding"        # Address/tract could not be resolved
    INTERNAL = "internal"          # Unexpected failure inside an evaluator


class IncentiveError(Exception):
    """Base class for all engine errors."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, program: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.program = program
        self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "program": self.program,
            "timestamp": self.timestamp,
        }


class ValidationError(IncentiveError):
    """Input failed validation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None, program: Optional[str] = None):
        super().__init__(message, program=program)
        self.field = field


class NetworkError(IncentiveError):
    """Transport failure talking to an upstream service."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, url: Optional[str] = None, program: Optional[str] = None):
        super().__init__(message, program=program)
        self.url = url


class APIError(IncentiveError):
    """Upstream service answered with a non-success status."""

    kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        status: int = 500,
        url: Optional[str] = None,
        program: Optional[str] = None,
    ):
        super().__init__(message, program=program)
        self.status = status
        self.url = url


class RateLimitError(APIError):
    """Upstream service throttled us (HTTP 429)."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        url: Optional[str] = None,
        program: Optional[str] = None,
    ):
        super().__init__(message, status=429, url=url, program=program)
        self.retry_after = retry_after


class GeocodingError(IncentiveError):
    """Address could not be resolved to coordinates or a census tract."""

    kind = ErrorKind.GEOCODING


# User-facing messages
ERROR_MESSAGES = {
    "INVALID_ADDRESS": "Please provide a valid US address",
    "GEOCODING_FAILED": "Unable to determine location coordinates",
    "CENSUS_TRACT_FAILED": "Unable to determine census tract",
    "API_TIMEOUT": "Request timed out - please try again",
    "RATE_LIMITED": "Too many requests - please wait and try again",
    "NETWORK_ERROR": "Network error - please check your connection",
    "INVALID_PROJECT_COST": "Project cost must be a positive number",
    "NO_ANALYSIS": "Run a property analysis before generating a report",
}
