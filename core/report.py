"""
Report Compiler - financial report for a completed analysis.

Compares a conventional financing baseline with an incentive-adjusted
scenario built from fixed per-program estimates.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.errors import ERROR_MESSAGES, ValidationError
from core.models import Analysis, ProgramKey, ProjectDetails, to_jsonable

log = logging.getLogger(__name__)


DEFAULT_PROJECT_COST = 1_000_000

# Estimated value of each program as (scenario bucket, fraction of project cost)
PROGRAM_ESTIMATES = {
    ProgramKey.HISTORIC_TAX_CREDIT: ("tax_credits", 0.20),
    ProgramKey.NEW_MARKETS_TC: ("tax_credits", 0.25 * 0.39),
    ProgramKey.OPPORTUNITY_ZONE: ("tax_benefits", 0.10),
    ProgramKey.SBA_504: ("interest_savings", 0.04),
    ProgramKey.CPACE: ("financing_benefits", 0.03),
}

# Conventional financing baseline
BASE_LOAN_TO_COST = 0.75
BASE_INTEREST_RATE = 0.075
BASE_TERM_YEARS = 25

STRONGLY_RECOMMENDED_THRESHOLD = 100_000
RECOMMENDED_THRESHOLD = 50_000

IMPLEMENTATION_PHASES = [
    {
        "phase": 1,
        "title": "Due Diligence & Pre-Qualification",
        "duration": "0-30 days",
        "tasks": [
            "Confirm property eligibility with program administrators",
            "Engage tax counsel and incentive consultants",
            "Prepare preliminary project budget and pro forma",
        ],
    },
    {
        "phase": 2,
        "title": "Applications & Approvals",
        "duration": "30-120 days",
        "tasks": [
            "Submit program applications and certifications",
            "Secure lender and investor commitments",
            "Coordinate stacking structure across programs",
        ],
    },
    {
        "phase": 3,
        "title": "Closing & Compliance",
        "duration": "120-365 days",
        "tasks": [
            "Close financing and incentive transactions",
            "Complete construction or rehabilitation",
            "Establish ongoing compliance reporting",
        ],
    },
]


def estimated_program_values(analysis: Analysis, project_cost: float) -> Dict[ProgramKey, float]:
    """Estimated dollar value of each available program."""
    return {
        key: project_cost * PROGRAM_ESTIMATES[key][1]
        for key in analysis.available_keys
    }


def _monthly_payment(principal: float, annual_rate: float, years: int) -> float:
    rate = annual_rate / 12
    n = years * 12
    growth = (1 + rate) ** n
    return principal * (rate * growth) / (growth - 1)


def recommendation_strength(total_savings: float) -> str:
    if total_savings > STRONGLY_RECOMMENDED_THRESHOLD:
        return "Strongly Recommended"
    if total_savings > RECOMMENDED_THRESHOLD:
        return "Recommended"
    return "Consider Carefully"


# ═══════════════════════════════════════════════════════════════════════════
# SCENARIOS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class BaseCaseScenario:
    """Conventional financing with no incentives."""
    project_cost: float
    loan_amount: float = 0.0
    equity_required: float = 0.0
    interest_rate: float = BASE_INTEREST_RATE
    term_years: int = BASE_TERM_YEARS
    monthly_payment: float = 0.0
    total_interest: float = 0.0
    total_cost: float = 0.0

    @classmethod
    def calculate(cls, project_cost: float) -> "BaseCaseScenario":
        scenario = cls(project_cost=project_cost)
        scenario.loan_amount = project_cost * BASE_LOAN_TO_COST
        scenario.equity_required = project_cost - scenario.loan_amount
        scenario.monthly_payment = _monthly_payment(scenario.loan_amount, BASE_INTEREST_RATE, BASE_TERM_YEARS)
        scenario.total_interest = scenario.monthly_payment * BASE_TERM_YEARS * 12 - scenario.loan_amount
        scenario.total_cost = project_cost + scenario.total_interest
        return scenario


@dataclass
class IncentiveScenario:
    """Project cost net of estimated incentive values."""
    project_cost: float
    tax_credits: float = 0.0
    tax_benefits: float = 0.0
    interest_savings: float = 0.0
    financing_benefits: float = 0.0
    total_incentives: float = 0.0
    net_project_cost: float = 0.0
    contributions: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def calculate(cls, analysis: Analysis, project_cost: float) -> "IncentiveScenario":
        scenario = cls(project_cost=project_cost)
        for key, value in estimated_program_values(analysis, project_cost).items():
            bucket = PROGRAM_ESTIMATES[key][0]
            setattr(scenario, bucket, getattr(scenario, bucket) + value)
            scenario.contributions[key.value] = value

        scenario.total_incentives = (
            scenario.tax_credits + scenario.tax_benefits
            + scenario.interest_savings + scenario.financing_benefits
        )
        scenario.net_project_cost = project_cost - scenario.total_incentives
        return scenario


@dataclass
class FinancialReport:
    """Structured multi-section report."""
    address: str
    project_cost: float
    executive_summary: Dict[str, Any]
    location_analysis: Dict[str, Any]
    incentive_details: Dict[str, Dict[str, Any]]
    financial_projections: Dict[str, Any]
    implementation_plan: List[Dict[str, Any]]
    risk_assessment: Dict[str, Any]
    next_steps: List[Dict[str, Any]]
    generated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def total_savings(self) -> float:
        return self.financial_projections["comparison"]["total_savings"]

    @property
    def recommendation_strength(self) -> str:
        return self.financial_projections["comparison"]["recommendation"]

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


# ═══════════════════════════════════════════════════════════════════════════
# COMPILER
# ═══════════════════════════════════════════════════════════════════════════
class ReportCompiler:
    """Builds a FinancialReport from an Analysis and optional project details."""

    def __init__(self, default_project_cost: float = DEFAULT_PROJECT_COST):
        self.default_project_cost = default_project_cost

    def compile(self, analysis: Optional[Analysis], details: Optional[ProjectDetails] = None) -> FinancialReport:
        if analysis is None:
            raise ValidationError(ERROR_MESSAGES["NO_ANALYSIS"], field="analysis")

        project_cost = (details.project_cost if details else None) or self.default_project_cost
        values = estimated_program_values(analysis, project_cost)

        base = BaseCaseScenario.calculate(project_cost)
        incentives = IncentiveScenario.calculate(analysis, project_cost)
        total_savings = base.total_cost - incentives.net_project_cost

        log.info(f"Compiled report for {analysis.address}: ${total_savings:,.0f} projected savings")

        return FinancialReport(
            address=analysis.address,
            project_cost=project_cost,
            executive_summary=self._executive_summary(analysis, values),
            location_analysis=self._location_analysis(analysis),
            incentive_details=self._incentive_details(analysis, values),
            financial_projections={
                "base_case": to_jsonable(base),
                "with_incentives": to_jsonable(incentives),
                "comparison": {
                    "total_savings": total_savings,
                    "savings_percentage": total_savings / base.total_cost * 100 if base.total_cost else 0.0,
                    "recommendation": recommendation_strength(total_savings),
                },
            },
            implementation_plan=[
                dict(phase, programs=[key.display_name for key in analysis.available_keys])
                for phase in IMPLEMENTATION_PHASES
            ],
            risk_assessment=self._risk_assessment(analysis),
            next_steps=[
                {
                    "step": i,
                    "program": rec.program.value if rec.program else None,
                    "title": rec.title,
                    "action": rec.action,
                    "timeline": rec.timeline,
                    "priority": rec.priority.value,
                }
                for i, rec in enumerate(analysis.recommendations, start=1)
            ],
        )

    @staticmethod
    def _executive_summary(analysis: Analysis, values: Dict[ProgramKey, float]) -> Dict[str, Any]:
        findings = [
            f"{key.display_name}: estimated ${values[key]:,.0f}"
            for key in analysis.available_keys
        ]
        if analysis.has_stacking_opportunities:
            findings.append(f"{len(analysis.stacking_opportunities)} program stacking opportunities identified")
        if analysis.failed_programs:
            findings.append(
                "Could not evaluate: " + ", ".join(key.display_name for key in analysis.failed_programs)
            )
        if not analysis.available_keys:
            findings.append("No incentive programs currently available for this property")

        return {
            "total_programs_analyzed": len(analysis.results),
            "available_programs": analysis.available_programs,
            "estimated_total_value": sum(values.values()),
            "risk_level": analysis.risk_level.value,
            "key_findings": findings,
        }

    @staticmethod
    def _location_analysis(analysis: Analysis) -> Dict[str, Any]:
        state = county = None
        for result in analysis.results.values():
            data = result.data
            if data is not None:
                state = state or getattr(data, "state", None)
                county = county or getattr(data, "county", None)

        return {
            "address": analysis.address,
            "coordinates": to_jsonable(analysis.coordinates),
            "census_tract": to_jsonable(analysis.census_tract),
            "state": state,
            "county": county,
            "opportunity_zone": analysis.results[ProgramKey.OPPORTUNITY_ZONE].available,
            "low_income_community": analysis.results[ProgramKey.NEW_MARKETS_TC].available,
            "historic_eligible": analysis.results[ProgramKey.HISTORIC_TAX_CREDIT].available,
        }

    @staticmethod
    def _incentive_details(analysis: Analysis, values: Dict[ProgramKey, float]) -> Dict[str, Dict[str, Any]]:
        details = {}
        for key in ProgramKey:
            result = analysis.results[key]
            entry: Dict[str, Any] = {
                "name": key.display_name,
                "available": result.available,
                "status": result.status.value,
                "estimated_value": values.get(key, 0.0),
            }
            if result.ok:
                entry["benefits"] = to_jsonable(getattr(result.data, "benefits", None))
            else:
                entry["error"] = result.error_message
            details[key.value] = entry
        return details

    @staticmethod
    def _risk_assessment(analysis: Analysis) -> Dict[str, Any]:
        factors = []
        mitigations = []

        if analysis.available_programs == 0:
            factors.append("No incentive programs available; project relies on conventional financing")
            mitigations.append("Review state and local incentives not covered by this analysis")
        if analysis.failed_programs:
            factors.append(f"{len(analysis.failed_programs)} programs could not be evaluated")
            mitigations.append("Re-run the analysis or verify eligibility directly with administrators")
        if analysis.has_stacking_opportunities:
            factors.append("Stacked programs add structuring complexity")
            mitigations.append("Engage counsel experienced in combining incentive programs")
        if analysis.available_programs > 0:
            factors.append("Incentive awards are subject to program approval and compliance")
            mitigations.append("Build approval timelines into the project schedule")

        return {
            "overall_risk": analysis.risk_level.value,
            "risk_factors": factors,
            "mitigation_strategies": mitigations,
        }


def compile_report(
    analysis: Optional[Analysis],
    details: Optional[ProjectDetails] = None,
    default_project_cost: float = DEFAULT_PROJECT_COST,
) -> FinancialReport:
    return ReportCompiler(default_project_cost).compile(analysis, details)
