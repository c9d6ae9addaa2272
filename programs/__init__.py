"""
Incentive program evaluators.

Includes:
- Opportunity Zones (census tract designation)
- Historic Tax Credits (NRHP listing, state programs)
- New Markets Tax Credits (Low-Income Community tracts)
- C-PACE (state and county programs)
- SBA 504 (business eligibility)
"""

from typing import Dict, Optional

from core.location import LocationService
from core.models import ProgramKey
from programs.base import ProgramEvaluator
from programs.opportunity_zone import OpportunityZoneEvaluator
from programs.historic_tax_credit import HistoricTaxCreditEvaluator
from programs.new_markets import NewMarketsEvaluator
from programs.cpace import CPACEEvaluator
from programs.sba504 import SBA504Evaluator, SBA504Policy

EVALUATOR_CLASSES = {
    ProgramKey.OPPORTUNITY_ZONE: OpportunityZoneEvaluator,
    ProgramKey.HISTORIC_TAX_CREDIT: HistoricTaxCreditEvaluator,
    ProgramKey.NEW_MARKETS_TC: NewMarketsEvaluator,
    ProgramKey.CPACE: CPACEEvaluator,
    ProgramKey.SBA_504: SBA504Evaluator,
}


def create_evaluators(
    location: LocationService,
    sba_policy: Optional[SBA504Policy] = None,
) -> Dict[ProgramKey, ProgramEvaluator]:
    """One evaluator per program, in canonical order, sharing a location service."""
    evaluators: Dict[ProgramKey, ProgramEvaluator] = {}
    for key, cls in EVALUATOR_CLASSES.items():
        if cls is SBA504Evaluator:
            evaluators[key] = cls(location, policy=sba_policy)
        else:
            evaluators[key] = cls(location)
    return evaluators


__all__ = [
    "ProgramEvaluator",
    "OpportunityZoneEvaluator",
    "HistoricTaxCreditEvaluator",
    "NewMarketsEvaluator",
    "CPACEEvaluator",
    "SBA504Evaluator",
    "SBA504Policy",
    "EVALUATOR_CLASSES",
    "create_evaluators",
]
