"""
C-PACE (Commercial Property Assessed Clean Energy) evaluator.

Availability depends on state enabling legislation plus any county program.
C-PACE is available when either the state or the local program is.
"""

import logging
from typing import Any, Dict, List, Optional

from core.models import Coordinates, CPACEData, ProgramKey, ProjectDetails
from programs.base import ProgramEvaluator

log = logging.getLogger(__name__)


# States with C-PACE enabling legislation
CPACE_STATES = [
    "California", "New York", "Texas", "Florida", "Colorado", "Connecticut",
    "Maryland", "Minnesota", "Nevada", "New Jersey", "Ohio", "Rhode Island",
    "Virginia", "Wisconsin", "Missouri", "Michigan", "Utah", "Vermont",
]

STATE_CPACE_PROGRAMS = {
    "California": {
        "available": True,
        "program": "HERO Program & CaliforniaFIRST",
        "administrator": "Multiple administrators",
        "coverage": "Statewide",
        "max_financing": "Up to 20-30% of property value",
        "terms": "Up to 25 years",
        "rate_range": "4-8%",
        "special_features": ["Open Market", "Contractor networks"],
    },
    "New York": {
        "available": True,
        "program": "Energize NY",
        "administrator": "Energy Improvement Corporation",
        "coverage": "Most counties participating",
        "max_financing": "Up to 10% of property value",
        "terms": "Up to 20 years",
        "rate_range": "4-7%",
        "special_features": ["Green jobs focus", "Solar emphasis"],
    },
    "Texas": {
        "available": True,
        "program": "Multiple local programs",
        "administrator": "Various local authorities",
        "coverage": "Major metro areas",
        "max_financing": "Varies by locality",
        "terms": "Up to 20 years",
        "rate_range": "5-8%",
        "special_features": ["Local control", "Varied eligibility"],
    },
    "Florida": {
        "available": True,
        "program": "Florida PACE",
        "administrator": "Ygrene Energy Fund",
        "coverage": "Most counties",
        "max_financing": "Up to 20% of property value",
        "terms": "Up to 30 years",
        "rate_range": "4-8%",
        "special_features": ["Hurricane resilience", "Water efficiency"],
    },
    "Colorado": {
        "available": True,
        "program": "C-PACE programs",
        "administrator": "Multiple administrators",
        "coverage": "Denver, Boulder, other metros",
        "max_financing": "Varies by program",
        "terms": "Up to 25 years",
        "rate_range": "4-7%",
        "special_features": ["Renewable energy focus"],
    },
}

# Chance that a county runs its own program
LOCAL_PROGRAM_RATE = 0.3

CPACE_BENEFITS = {
    "program": "Commercial Property Assessed Clean Energy (C-PACE)",
    "financing_type": "Property tax assessment",
    "benefits": [
        {
            "type": "100% Financing",
            "description": "Finance 100% of eligible improvement costs",
            "value": "No upfront capital required",
        },
        {
            "type": "Long-Term Fixed Rates",
            "description": "Fixed interest rates for up to 25-30 years",
            "value": "Predictable payments, typically 4-8%",
        },
        {
            "type": "Non-Recourse",
            "description": "Assessment stays with property, not borrower",
            "value": "Transferable to new owner upon sale",
        },
        {
            "type": "No Personal Guarantees",
            "description": "Secured by property assessment, not personal credit",
            "value": "Preserves other credit lines",
        },
        {
            "type": "Off-Balance Sheet",
            "description": "Not considered traditional debt",
            "value": "May not impact debt-to-equity ratios",
        },
    ],
    "payment_method": {
        "structure": "Paid through property tax bill",
        "frequency": "Annual or semi-annual",
        "collection": "Same priority as property taxes",
        "transferability": "Transfers with property ownership",
    },
}

ELIGIBLE_IMPROVEMENTS = {
    "energy_efficiency": [
        "HVAC system upgrades",
        "LED lighting retrofits",
        "Building envelope improvements",
        "Energy management systems",
        "High-efficiency windows and doors",
        "Insulation upgrades",
    ],
    "renewable_energy": [
        "Solar photovoltaic systems",
        "Solar thermal systems",
        "Geothermal systems",
        "Wind energy systems",
        "Combined heat and power",
        "Energy storage systems",
    ],
    "water_efficiency": [
        "Low-flow fixtures",
        "Smart irrigation systems",
        "Water recycling systems",
        "Drought-resistant landscaping",
        "Water-efficient cooling systems",
    ],
    "resilience_improvements": [
        "Seismic retrofits",
        "Hurricane/wind resistance upgrades",
        "Flood mitigation measures",
        "Backup power systems",
        "Fire-resistant materials",
    ],
    "requirements": {
        "eligibility_criteria": [
            "Improvements must be permanently affixed to property",
            "Must provide measurable energy or water savings",
            "Savings should equal or exceed annual assessment",
            "Must meet program technical standards",
        ],
        "documentation": [
            "Energy audit or engineering study",
            "Contractor licensing verification",
            "Property owner consent",
            "Lender consent (if existing mortgage)",
        ],
    },
}

CPACE_PROVIDERS = {
    "California": [
        {"name": "CaliforniaFIRST", "website": "californiafirst.org", "focus": "Statewide coverage"},
        {"name": "HERO Program", "website": "heroprogram.com", "focus": "Residential & Commercial"},
        {"name": "Ygrene", "website": "ygrene.com", "focus": "Clean energy financing"},
    ],
    "National": [
        {"name": "Petros PACE Finance", "website": "petrospace.com", "focus": "C-PACE nationwide"},
        {"name": "Nuveen Green Capital", "website": "nuveengreencapital.com", "focus": "Large projects"},
        {"name": "Sustainable Real Estate Solutions", "website": "sres-pace.com", "focus": "Commercial focus"},
    ],
}


def state_cpace_program(state: str) -> Dict[str, Any]:
    """State program details; enabling states without a detailed entry get a generic one."""
    if state in STATE_CPACE_PROGRAMS:
        return STATE_CPACE_PROGRAMS[state]

    if state in CPACE_STATES:
        return {
            "available": True,
            "program": f"{state} C-PACE",
            "administrator": "State or county administrators",
            "coverage": "Participating jurisdictions",
            "max_financing": "Varies by program",
            "terms": "Up to 20 years",
            "rate_range": "4-8%",
            "special_features": ["State enabling legislation"],
        }

    return {
        "available": False,
        "program": "Not available",
        "note": f"Check with {state} energy office for potential future programs",
        "alternatives": "Consider utility rebates or federal programs",
    }


def get_cpace_providers(state: str) -> List[Dict[str, str]]:
    """Capital providers for a state, falling back to national providers."""
    return CPACE_PROVIDERS.get(state, CPACE_PROVIDERS["National"])


def calculate_cpace_savings(
    improvement_cost: float,
    annual_savings: float,
    term: int = 20,
    interest_rate: float = 0.06,
) -> Dict[str, Any]:
    """
    Cash flow of financing improvements through a C-PACE assessment.

    Uses a fixed-rate monthly annuity over the term. Payback is the simple
    improvement_cost / annual_savings.
    """
    monthly_rate = interest_rate / 12
    total_payments = term * 12

    if monthly_rate == 0:
        monthly_payment = improvement_cost / total_payments
    else:
        growth = (1 + monthly_rate) ** total_payments
        monthly_payment = improvement_cost * (monthly_rate * growth) / (growth - 1)

    annual_payment = monthly_payment * 12
    total_interest = annual_payment * term - improvement_cost
    net_annual_savings = annual_savings - annual_payment
    payback_period = improvement_cost / annual_savings if annual_savings else None

    return {
        "improvement_cost": improvement_cost,
        "annual_savings": annual_savings,
        "annual_payment": round(annual_payment),
        "net_annual_savings": round(net_annual_savings),
        "total_interest": round(total_interest),
        "payback_period": round(payback_period, 1) if payback_period is not None else None,
        "cash_flow_positive": net_annual_savings > 0,
        "term": term,
        "interest_rate": f"{interest_rate * 100:g}%",
    }


class CPACEEvaluator(ProgramEvaluator):
    """Checks state enabling legislation and county programs."""

    key = ProgramKey.CPACE

    async def check(self, address: str, context: ProjectDetails) -> CPACEData:
        coords = await self.location.coordinates(address)
        state = await self.location.state(coords)
        county = await self.location.county(coords)

        state_program = state_cpace_program(state)
        local_program = self.local_program(coords, county)
        available = state_program["available"] or local_program["available"]

        projection = None
        if available and context.improvement_cost and context.annual_energy_savings:
            projection = calculate_cpace_savings(context.improvement_cost, context.annual_energy_savings)

        return CPACEData(
            address=address,
            coordinates=coords,
            state=state,
            county=county,
            available=available,
            state_program=state_program,
            local_program=local_program,
            benefits=CPACE_BENEFITS if available else None,
            eligible_improvements=ELIGIBLE_IMPROVEMENTS if available else None,
            savings_projection=projection,
            providers=get_cpace_providers(state) if available else None,
        )

    def local_program(self, coords: Coordinates, county: str) -> Dict[str, Any]:
        """Simulated county program lookup (~30% of locations)."""
        rng = self.seeded_rng("cpace-local", self.location_seed(coords), county)
        if rng.random() >= LOCAL_PROGRAM_RATE:
            return {
                "available": False,
                "program": "No local program",
                "note": "Check with local economic development office",
            }

        return {
            "available": True,
            "program": f"{county} C-PACE Program",
            "administrator": f"{county} Economic Development Authority",
            "max_financing": "Up to $5M per project",
            "terms": "Up to 25 years",
            "rate_range": "4-6%",
            "special_features": ["Local economic development focus", "Expedited approvals"],
        }
