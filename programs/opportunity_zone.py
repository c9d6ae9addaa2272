"""
Opportunity Zone evaluator.

A property qualifies when its census tract is a designated Qualified
Opportunity Zone.
"""

import logging
from typing import Any, Dict

from core.cache import CACHE_TTL
from core.models import CensusTract, OpportunityZoneData, ProgramKey, ProjectDetails
from programs.base import ProgramEvaluator

log = logging.getLogger(__name__)


# Sample of designated QOZ tract GEOIDs (IRS Notice 2018-48)
DESIGNATED_OZ_TRACTS = [
    "06037206002", "06037206100", "06037207300",  # Los Angeles
    "36061000100", "36061000200", "36061000300",  # Manhattan
    "17031081800", "17031081900", "17031082000",  # Chicago
    "11001007200", "11001007401", "11001009700",  # Washington, DC
    "26163517200", "26163520700", "26163521300",  # Detroit
]

OZ_BENEFITS = {
    "program": "Opportunity Zones",
    "incentive_type": "Tax Deferral and Reduction",
    "benefits": [
        {
            "type": "Capital Gains Deferral",
            "description": "Defer taxes on capital gains until 2026 or until the investment is sold",
            "value": "Temporary deferral of existing gains",
        },
        {
            "type": "Capital Gains Reduction",
            "description": "10% reduction in deferred gains if held for 5 years, 15% if held for 7 years",
            "value": "Up to 15% reduction in original gain",
        },
        {
            "type": "Tax-Free Appreciation",
            "description": "No taxes on appreciation if OZ investment is held for 10+ years",
            "value": "100% exclusion of appreciation gains",
        },
    ],
    "requirements": [
        "Investment must be made through a Qualified Opportunity Fund (QOF)",
        "Original gain must be invested within 180 days",
        "QOF must invest 90% of assets in OZ property or business",
        "Must meet substantial improvement requirements for existing buildings",
    ],
    "investment_types": [
        "Commercial real estate development",
        "Substantial rehabilitation of existing buildings",
        "Operating businesses in OZ areas",
        "Mixed-use developments",
    ],
    "timeline": {
        "minimum": "5 years for partial tax reduction",
        "optimal": "10 years for maximum benefits",
        "deadline": "December 31, 2026 for gain deferrals",
    },
}


class OpportunityZoneEvaluator(ProgramEvaluator):
    """Checks census tract designation as a Qualified Opportunity Zone."""

    key = ProgramKey.OPPORTUNITY_ZONE

    OZ_LIST_CACHE_KEY = "oz_list_all"

    async def check(self, address: str, context: ProjectDetails) -> OpportunityZoneData:
        coords = await self.location.coordinates(address)
        tract = await self.location.census_tract(coords)

        designated = await self.location.cached(
            self.OZ_LIST_CACHE_KEY, CACHE_TTL["LONG"], self.load_oz_tracts
        )
        is_oz = tract.geoid in designated

        return OpportunityZoneData(
            address=address,
            coordinates=coords,
            census_tract=tract,
            is_opportunity_zone=is_oz,
            details=self._zone_details(tract) if is_oz else None,
            benefits=OZ_BENEFITS if is_oz else None,
        )

    def load_oz_tracts(self) -> frozenset:
        """Designated tract GEOIDs. Blocking; runs off the event loop."""
        return frozenset(DESIGNATED_OZ_TRACTS)

    @staticmethod
    def _zone_details(tract: CensusTract) -> Dict[str, Any]:
        return {
            "program": "Opportunity Zones",
            "authority": "Internal Revenue Service",
            "designation": "Qualified Opportunity Zone",
            "geoid": tract.geoid,
        }

