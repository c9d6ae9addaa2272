"""
Engine configuration.

Defaults live on the dataclass; any of them can be overridden through
CRE_* environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)


@dataclass
class EngineSettings:
    """Runtime settings for the analysis engine and its collaborators."""

    # Cache
    cache_max_size: int = 1000
    cache_default_ttl: float = 5 * 60          # seconds
    cache_sweep_interval: float = 60.0         # seconds

    # Network collaborators
    request_timeout: float = 30.0              # seconds
    user_agent: str = "CRE-Financial-Tool/1.0"
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    census_geocoder_url: str = "https://geocoding.geo.census.gov/geocoder"

    # Engine
    history_size: int = 10                     # analyses kept for the caller
    default_project_cost: float = 1_000_000.0  # placeholder when no cost is supplied

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "EngineSettings":
        """Build settings, overriding defaults with CRE_* environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()

        overrides = {
            "CRE_CACHE_MAX_SIZE": ("cache_max_size", int),
            "CRE_CACHE_DEFAULT_TTL": ("cache_default_ttl", float),
            "CRE_CACHE_SWEEP_INTERVAL": ("cache_sweep_interval", float),
            "CRE_REQUEST_TIMEOUT": ("request_timeout", float),
            "CRE_USER_AGENT": ("user_agent", str),
            "CRE_NOMINATIM_URL": ("nominatim_url", str),
            "CRE_CENSUS_GEOCODER_URL": ("census_geocoder_url", str),
            "CRE_HISTORY_SIZE": ("history_size", int),
            "CRE_DEFAULT_PROJECT_COST": ("default_project_cost", float),
        }

        for var, (attr, cast) in overrides.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                setattr(settings, attr, cast(raw))
            except ValueError:
                log.warning(f"Ignoring invalid {var}={raw!r}, keeping {getattr(settings, attr)!r}")

        return settings
