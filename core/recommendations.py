"""
Recommendation & Stacking Engine.

Turns normalized program results into prioritized actions, compatible program
combinations and an overall risk level. Priorities are a fixed property of
each program, not a function of the size of the benefit.
"""

import logging
from typing import Dict, Iterable, List, Mapping

from core.models import (
    Compatibility,
    Priority,
    ProgramKey,
    ProgramResult,
    Recommendation,
    RiskLevel,
    StackingPair,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# RECOMMENDATION TABLE
# ═══════════════════════════════════════════════════════════════════════════
RECOMMENDATION_TABLE: Dict[ProgramKey, Recommendation] = {
    ProgramKey.OPPORTUNITY_ZONE: Recommendation(
        program=ProgramKey.OPPORTUNITY_ZONE,
        priority=Priority.HIGH,
        title="Opportunity Zone Investment",
        action="Structure investment through a Qualified Opportunity Fund",
        timeline="Within 180 days of capital gain realization",
        benefit_summary="Up to 15% capital gains reduction plus tax-free appreciation after 10 years",
        requirements=(
            "Establish or invest through a Qualified Opportunity Fund",
            "Meet substantial improvement test for existing buildings",
        ),
    ),
    ProgramKey.HISTORIC_TAX_CREDIT: Recommendation(
        program=ProgramKey.HISTORIC_TAX_CREDIT,
        priority=Priority.HIGH,
        title="Historic Tax Credits",
        action="Submit Part 1 certification application to the State Historic Preservation Office",
        timeline="Before rehabilitation work begins",
        benefit_summary="20% federal tax credit on qualified rehabilitation expenditures",
        requirements=(
            "Obtain historic certification",
            "Follow Secretary of the Interior Standards for Rehabilitation",
        ),
    ),
    ProgramKey.NEW_MARKETS_TC: Recommendation(
        program=ProgramKey.NEW_MARKETS_TC,
        priority=Priority.MEDIUM,
        title="New Markets Tax Credits",
        action="Contact Community Development Entities with available allocation",
        timeline="3-6 months to secure allocation",
        benefit_summary="39% credit on qualified equity investment over 7 years",
        requirements=(
            "Partner with a CDE holding NMTC allocation",
            "Demonstrate community impact",
        ),
    ),
    ProgramKey.CPACE: Recommendation(
        program=ProgramKey.CPACE,
        priority=Priority.LOW,
        title="C-PACE Financing",
        action="Commission an energy audit to scope eligible improvements",
        timeline="2-4 months from audit to closing",
        benefit_summary="100% long-term fixed-rate financing for energy and resilience improvements",
        requirements=(
            "Energy audit or engineering study",
            "Lender consent if the property has an existing mortgage",
        ),
    ),
    ProgramKey.SBA_504: Recommendation(
        program=ProgramKey.SBA_504,
        priority=Priority.MEDIUM,
        title="SBA 504 Loan",
        action="Schedule a consultation with a local Certified Development Company",
        timeline="3-8 months from application to closing",
        benefit_summary="90% financing with long-term fixed rates on the SBA portion",
        requirements=(
            "Owner occupancy of at least 51%",
            "Create or retain 1 job per $65,000 of SBA financing",
        ),
    ),
}

FALLBACK_RECOMMENDATION = Recommendation(
    program=None,
    priority=Priority.MEDIUM,
    title="Explore Alternative Financing",
    action="Explore alternative financing options such as conventional loans, "
           "state and local incentives, and utility rebates",
    timeline="1-3 months",
    benefit_summary="No federal incentive programs matched this property",
    requirements=("Consult a commercial real estate finance advisor",),
)


def generate_recommendations(results: Mapping[ProgramKey, ProgramResult]) -> List[Recommendation]:
    """
    One recommendation per available program, highest priority first.

    Ties keep canonical program order. With nothing available, the single
    fallback recommendation is returned.
    """
    recommendations = [
        RECOMMENDATION_TABLE[key]
        for key in ProgramKey
        if key in results and results[key].available
    ]
    if not recommendations:
        return [FALLBACK_RECOMMENDATION]

    # sorted() is stable
    return sorted(recommendations, key=lambda r: r.priority.weight, reverse=True)


# ═══════════════════════════════════════════════════════════════════════════
# STACKING
# ═══════════════════════════════════════════════════════════════════════════
PAIR_COMPATIBILITY = [
    (
        frozenset({ProgramKey.HISTORIC_TAX_CREDIT, ProgramKey.OPPORTUNITY_ZONE}),
        Compatibility.HIGH,
        "Historic rehabilitation credits plus capital gains deferral and tax-free appreciation",
        ("Rehabilitation spending counts toward the OZ substantial improvement test",),
    ),
    (
        frozenset({ProgramKey.NEW_MARKETS_TC, ProgramKey.HISTORIC_TAX_CREDIT}),
        Compatibility.MEDIUM,
        "Twinned NMTC and historic credit equity",
        ("Basis reduction rules require careful structuring", "Higher transaction costs"),
    ),
    (
        frozenset({ProgramKey.OPPORTUNITY_ZONE, ProgramKey.NEW_MARKETS_TC}),
        Compatibility.MEDIUM,
        "OZ capital gains benefits alongside NMTC below-market financing",
        ("NMTC leverage structure must fit Qualified Opportunity Fund rules",),
    ),
]

# Programs that combine with any other available program
GROUP_COMPATIBILITY = [
    (
        ProgramKey.SBA_504,
        Compatibility.HIGH,
        "SBA 504 debt financing alongside equity and tax incentives",
        ("SBA portion is subordinate to the bank first mortgage",),
    ),
    (
        ProgramKey.CPACE,
        Compatibility.HIGH,
        "C-PACE financing for energy improvements on top of other incentives",
        ("Existing mortgage lenders must consent to the assessment",),
    ),
]


def detect_stacking_opportunities(available: Iterable[ProgramKey]) -> List[StackingPair]:
    """Compatible combinations among the currently available programs."""
    available = frozenset(available)
    opportunities: List[StackingPair] = []

    for programs, compatibility, benefit, considerations in PAIR_COMPATIBILITY:
        if programs <= available:
            opportunities.append(StackingPair(programs, compatibility, benefit, considerations))

    for anchor, compatibility, benefit, considerations in GROUP_COMPATIBILITY:
        if anchor in available and len(available) >= 2:
            opportunities.append(StackingPair(available, compatibility, benefit, considerations))

    return opportunities


def assess_risk_level(available_count: int) -> RiskLevel:
    """Fewer available programs means more reliance on conventional financing."""
    if available_count == 0:
        return RiskLevel.HIGH
    if available_count >= 3:
        return RiskLevel.LOW
    return RiskLevel.MEDIUM
