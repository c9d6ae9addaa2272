"""
Base class for incentive program evaluators.
"""

import logging
import random
from typing import Optional

from core.errors import IncentiveError
from core.location import LocationService
from core.models import Coordinates, ProgramKey, ProgramPayload, ProgramResult, ProjectDetails
from core.validation import require_valid_address

log = logging.getLogger(__name__)


class ProgramEvaluator:
    """
    One incentive program's eligibility rules.

    Subclasses implement check(), which returns the program payload or raises
    an IncentiveError for infrastructure/input failures. Ineligibility is a
    normal payload, never an exception.
    """

    key: ProgramKey

    def __init__(self, location: LocationService):
        self.location = location

    @property
    def name(self) -> str:
        return self.key.display_name

    async def evaluate(self, address: str, context: Optional[ProjectDetails] = None) -> ProgramResult:
        """Evaluate an address. Expected failures come back as an error result."""
        try:
            normalized = require_valid_address(address)
            payload = await self.check(normalized, context or ProjectDetails())
        except IncentiveError as e:
            e.program = self.key.value
            log.warning(f"{self.name} evaluation failed ({e.kind.value}): {e.message}")
            return ProgramResult.failure(self.key, e)

        result = ProgramResult.success(self.key, payload)
        log.info(f"{self.name}: {'available' if result.available else 'not available'} for {normalized}")
        return result

    async def check(self, address: str, context: ProjectDetails) -> ProgramPayload:
        raise NotImplementedError

    @staticmethod
    def seeded_rng(*parts) -> random.Random:
        """Reproducible RNG for simulated data sources, keyed on location."""
        return random.Random("|".join(str(p) for p in parts))

    @staticmethod
    def location_seed(coords: Coordinates) -> str:
        return f"{coords.latitude:.4f},{coords.longitude:.4f}"
