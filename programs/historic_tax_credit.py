"""
Historic Tax Credit evaluator.

Federal credit is 20% of qualified rehabilitation expenditures for buildings
listed on (or in a district listed on) the National Register of Historic
Places. Some states add their own credit on top.

The NRHP lookups are simulated with seeded pseudo-randomness keyed on the
coordinates, so a given location always gets the same answer.
"""

import logging
from typing import Any, Dict, List

from core.models import Coordinates, HistoricTaxCreditData, ProgramKey, ProjectDetails
from programs.base import ProgramEvaluator

log = logging.getLogger(__name__)


FEDERAL_CREDIT_RATE = 20  # percent

# Chance that a location falls inside a certified historic district
HISTORIC_DISTRICT_RATE = 0.15

STATE_HTC_PROGRAMS = {
    "California": {
        "programs": ["Mills Act Property Tax Reduction"],
        "benefits": "Property tax reduction up to 50-75%",
        "credit_rate": 0,
        "credit_description": "N/A (property tax benefit)",
        "additional_info": "Local program administered by municipalities",
    },
    "New York": {
        "programs": ["NYS Historic Tax Credit"],
        "benefits": "20% state tax credit",
        "credit_rate": 20,
        "credit_description": "20%",
        "additional_info": "Can be combined with federal credits",
    },
    "Texas": {
        "programs": ["State Historic Tax Credit"],
        "benefits": "25% state tax credit",
        "credit_rate": 25,
        "credit_description": "25%",
        "additional_info": "For certified rehabilitation projects",
    },
    "Florida": {
        "programs": ["Special Assessment for Historic Properties"],
        "benefits": "Property tax assessment cap",
        "credit_rate": 0,
        "credit_description": "N/A (assessment benefit)",
        "additional_info": "Limits annual assessment increases",
    },
}

DEFAULT_STATE_PROGRAM = {
    "programs": ["Contact State Historic Preservation Office"],
    "benefits": "State programs may be available",
    "credit_rate": 0,
    "credit_description": "Varies by state",
    "additional_info": "Check with local SHPO for available programs",
}

FEDERAL_HTC_REQUIREMENTS = {
    "property_requirements": [
        "Property must be listed on National Register of Historic Places",
        "Or be located in a certified historic district",
        "Or be determined eligible for NRHP listing",
    ],
    "project_requirements": [
        "Must be certified rehabilitation project",
        "Rehabilitation costs must exceed $5,000 or adjusted basis",
        "Must meet Secretary of Interior Standards for Rehabilitation",
        "Building must be substantially rehabilitated",
    ],
    "use_requirements": [
        "Must be used for business or income-producing purposes",
        "Cannot be used primarily as personal residence",
        "Must be placed in service before claiming credit",
    ],
}

FEDERAL_HTC_BENEFITS = {
    "program": "Federal Historic Tax Credits",
    "credit_rate": "20%",
    "credit_basis": "Qualified rehabilitation expenditures",
    "benefits": [
        {
            "type": "Federal Tax Credit",
            "description": "20% of qualified rehabilitation expenditures",
            "value": "20% credit rate",
            "timing": "Claimed over 5 years (20% per year)",
        },
        {
            "type": "Depreciation",
            "description": "Depreciate remaining basis over 27.5 or 39 years",
            "value": "Standard depreciation schedules apply",
        },
    ],
    "maximums": {
        "no_statutory_limit": True,
        "note": "Credit limited by tax liability and passive activity rules",
    },
    "timeline": {
        "application": "Part 1 application before work begins",
        "certification": "Part 2 during construction, Part 3 at completion",
        "credit_claim": "Year property is placed in service",
    },
}


def state_htc_program(state: str) -> Dict[str, Any]:
    """State historic credit program, or the SHPO fallback."""
    return STATE_HTC_PROGRAMS.get(state, DEFAULT_STATE_PROGRAM)


def combined_benefits(federal_eligible: bool, state_program: Dict[str, Any]) -> Dict[str, Any]:
    """Federal 20% plus the state credit (0, 20 or 25)."""
    if not federal_eligible:
        return {
            "total_credits": "0%",
            "total_rate": 0,
            "stackable": False,
            "note": "Property not eligible for historic tax credits",
        }

    state_rate = state_program.get("credit_rate", 0)
    total = FEDERAL_CREDIT_RATE + state_rate
    return {
        "federal_credit": f"{FEDERAL_CREDIT_RATE}%",
        "state_credit": state_program.get("credit_description"),
        "total_credits": f"{total}%",
        "total_rate": total,
        "stackable": state_rate > 0,
        "effective_rate": f"Up to {total}% of qualified expenditures",
        "note": (
            "Federal and state credits can typically be combined"
            if state_rate > 0
            else "Check for additional state or local incentives"
        ),
    }


class HistoricTaxCreditEvaluator(ProgramEvaluator):
    """Checks NRHP listing/district status and state historic programs."""

    key = ProgramKey.HISTORIC_TAX_CREDIT

    async def check(self, address: str, context: ProjectDetails) -> HistoricTaxCreditData:
        coords = await self.location.coordinates(address)
        state = await self.location.state(coords)

        in_district = self.check_historic_district(coords)
        nearby = self.find_nearby_historic_properties(coords)
        eligible = in_district or len(nearby) > 0

        program = state_htc_program(state)

        return HistoricTaxCreditData(
            address=address,
            coordinates=coords,
            state=state,
            federal_eligible=eligible,
            property_type=("Historic District" if in_district else "Individual Property") if eligible else None,
            in_historic_district=in_district,
            nearby_properties=nearby,
            requirements=FEDERAL_HTC_REQUIREMENTS,
            state_program=program,
            combined_benefits=combined_benefits(eligible, program),
            benefits=FEDERAL_HTC_BENEFITS if eligible else None,
        )

    def check_historic_district(self, coords: Coordinates) -> bool:
        """Simulated NRHP district lookup (~15% of locations)."""
        rng = self.seeded_rng("district", self.location_seed(coords))
        return rng.random() < HISTORIC_DISTRICT_RATE

    def find_nearby_historic_properties(self, coords: Coordinates) -> List[Dict[str, Any]]:
        """Simulated NRHP listings within half a mile (0-2 properties)."""
        rng = self.seeded_rng("nrhp", self.location_seed(coords))
        properties = []
        for i in range(rng.randrange(3)):
            properties.append({
                "name": f"Historic Property {i + 1}",
                "nrhp_id": f"HP{rng.randrange(10**7, 10**8)}",
                "distance": f"{rng.random() * 0.5 + 0.1:.2f} miles",
                "type": rng.choice(["Building", "District", "Site"]),
                "year_listed": 1980 + rng.randrange(40),
            })
        return properties
