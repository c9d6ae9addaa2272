"""
New Markets Tax Credit evaluator.

A tract is a Low-Income Community (LIC) when any of:
1. Poverty rate >= 20%
2. Median family income <= 80% of area median
3. Located in a federally designated empowerment zone

Tract demographics are simulated from a generator seeded by the GEOID, so
the same tract always produces the same figures.
"""

import logging
from typing import Any, Dict, List, Optional

from core.models import CensusTract, NewMarketsData, ProgramKey, ProjectDetails
from programs.base import ProgramEvaluator

log = logging.getLogger(__name__)


NMTC_CREDIT_RATE = 0.39
DEFAULT_EQUITY_FRACTION = 0.25
POVERTY_THRESHOLD = 20.0      # percent
INCOME_RATIO_THRESHOLD = 0.8

NMTC_BENEFITS = {
    "program": "New Markets Tax Credits (NMTC)",
    "credit_rate": "39%",
    "credit_period": "7 years",
    "benefits": [
        {
            "type": "Federal Tax Credit",
            "description": "39% of Qualified Equity Investment (QEI) over 7 years",
            "value": "5% in years 1-3, 6% in years 4-7",
            "timing": "Annual credits for 7 years",
        },
        {
            "type": "Leverage Opportunity",
            "description": "Typically leveraged 2:1 or 3:1 with senior debt",
            "value": "Access to patient capital at below-market rates",
        },
    ],
    "investment_structure": {
        "minimum": "$1M typical minimum",
        "maximum": "No statutory maximum",
        "leverage": "2:1 to 3:1 debt-to-equity typical",
        "irr": "8-12% target returns for investors",
    },
    "timeline": {
        "application": "CDE must apply to CDFI Fund",
        "commitment": "5-year commitment period",
        "deployment": "12 months to deploy 85% of allocation",
        "compliance": "7-year compliance period",
    },
}

NEARBY_CDES = [
    {
        "name": "Urban Development CDE",
        "allocation": "$50M available",
        "focus": "Mixed-use development, community facilities",
        "distance": "2.3 miles",
        "specialties": ["Real Estate", "Community Facilities", "Healthcare"],
    },
    {
        "name": "Community Investment Partners",
        "allocation": "$75M available",
        "focus": "Commercial real estate, small business",
        "distance": "5.7 miles",
        "specialties": ["Grocery Stores", "Manufacturing", "Office Buildings"],
    },
    {
        "name": "Regional Development Fund",
        "allocation": "$100M available",
        "focus": "Large-scale community development",
        "distance": "8.1 miles",
        "specialties": ["Mixed-Use", "Charter Schools", "Health Centers"],
    },
]


def calculate_nmtc_value(project_cost: float, equity_fraction: float = DEFAULT_EQUITY_FRACTION) -> Dict[str, Any]:
    """
    Credit value of an NMTC structure.

    The qualified equity investment is project_cost x equity_fraction; the
    credit is 39% of that investment.
    """
    equity_investment = project_cost * equity_fraction
    credits = equity_investment * NMTC_CREDIT_RATE
    net_equity_cost = equity_investment - credits
    effective_rate = (project_cost - net_equity_cost) / project_cost if project_cost else 0.0

    return {
        "project_cost": project_cost,
        "equity_investment": equity_investment,
        "nmtc_credits": credits,
        "net_equity_cost": net_equity_cost,
        "effective_rate": f"{round(effective_rate * 100)}%",
        "savings": credits,
    }


class NewMarketsEvaluator(ProgramEvaluator):
    """Checks Low-Income Community qualification of the census tract."""

    key = ProgramKey.NEW_MARKETS_TC

    async def check(self, address: str, context: ProjectDetails) -> NewMarketsData:
        coords = await self.location.coordinates(address)
        tract = await self.location.census_tract(coords)

        eligibility = self.check_low_income_eligibility(tract)
        eligible = eligibility["eligible"]

        projection = None
        if eligible and context.project_cost:
            projection = calculate_nmtc_value(context.project_cost)

        return NewMarketsData(
            address=address,
            coordinates=coords,
            census_tract=tract,
            eligible=eligible,
            eligibility_reason=eligibility["reason"],
            criteria=eligibility["criteria"],
            nearby_cdes=NEARBY_CDES,
            benefits=NMTC_BENEFITS if eligible else None,
            value_projection=projection,
        )

    def check_low_income_eligibility(self, tract: CensusTract) -> Dict[str, Any]:
        demographics = self.tract_demographics(tract.geoid)

        by_poverty = demographics["poverty_rate"] >= POVERTY_THRESHOLD
        by_income = demographics["median_income_ratio"] <= INCOME_RATIO_THRESHOLD
        by_designation = demographics["in_empowerment_zone"]
        eligible = by_poverty or by_income or by_designation

        reasons: List[str] = []
        if by_poverty:
            reasons.append(f"Poverty rate: {demographics['poverty_rate']:.1f}% (>=20% required)")
        if by_income:
            reasons.append(
                f"Median income: {round(demographics['median_income_ratio'] * 100)}% "
                "of area median (<=80% required)"
            )
        if by_designation:
            reasons.append("Located in designated empowerment zone")

        return {
            "eligible": eligible,
            "reason": "; ".join(reasons) if eligible else "Does not meet Low-Income Community criteria",
            "criteria": {
                "poverty_rate": demographics["poverty_rate"],
                "median_income_ratio": demographics["median_income_ratio"],
                "in_empowerment_zone": by_designation,
                "qualifications": {
                    "poverty": by_poverty,
                    "income": by_income,
                    "designation": by_designation,
                },
            },
        }

    def tract_demographics(self, geoid: str) -> Dict[str, Any]:
        """Simulated ACS demographics for a tract."""
        rng = self.seeded_rng("acs", geoid)
        return {
            "poverty_rate": 5 + rng.random() * 35,            # 5-40%
            "median_income_ratio": 0.4 + rng.random() * 0.6,  # 40-100% of area median
            "in_empowerment_zone": rng.random() < 0.1,
            "population": 1000 + rng.randrange(9000),
            "median_income": 25000 + rng.randrange(75000),
        }
