"""
SBA 504 loan evaluator.

Eligibility needs every critical check to pass. By default the critical
checks are size standard, financial caps, use of funds and job creation.
Owner occupancy and business age are reported as issues but only block
eligibility when a policy marks them critical.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from core.errors import ValidationError
from core.models import BusinessInfo, ProgramKey, ProjectDetails, SBA504Data
from core.validation import validate_business_info
from programs.base import ProgramEvaluator

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# PROGRAM LIMITS
# ═══════════════════════════════════════════════════════════════════════════
MAX_PROJECT_COST = 13_750_000
MAX_SBA_PORTION = 5_500_000
MAX_SBA_PORTION_SMALL_MANUFACTURER = 6_500_000
SMALL_MANUFACTURER_RECEIPTS = 15_000_000
SBA_SHARE = 0.40
BANK_SHARE = 0.50
OWNER_EQUITY_MIN = 0.10
OWNER_OCCUPANCY_MIN = 51       # percent
MIN_BUSINESS_AGE = 2           # years
SBA_DOLLARS_PER_JOB = 65_000

# Simplified; real standards vary by NAICS code. None means no limit on that axis.
SBA_SIZE_STANDARDS = {
    "retail": {"employees": 500, "receipts": 8_000_000},
    "manufacturing": {"employees": 1500, "receipts": None},
    "construction": {"employees": None, "receipts": 42_000_000},
    "professional_services": {"employees": None, "receipts": 8_500_000},
    "real_estate": {"employees": None, "receipts": 8_000_000},
    "hospitality": {"employees": None, "receipts": 8_500_000},
    "healthcare": {"employees": None, "receipts": 8_500_000},
    "technology": {"employees": None, "receipts": 8_500_000},
    "other": {"employees": 500, "receipts": 8_000_000},
}

PROHIBITED_USES = [
    "working capital",
    "inventory",
    "debt refinancing",
    "speculation",
    "lending",
    "investing",
]

SIZE_STANDARDS = "size_standards"
FINANCIAL_CAPS = "financial_caps"
USE_OF_FUNDS = "use_of_funds"
JOB_CREATION = "job_creation"
OWNER_OCCUPANCY = "owner_occupancy"
BUSINESS_AGE = "business_age"

CHECK_ORDER = [SIZE_STANDARDS, FINANCIAL_CAPS, USE_OF_FUNDS, JOB_CREATION, OWNER_OCCUPANCY, BUSINESS_AGE]

DEFAULT_CRITICAL_CHECKS = frozenset({SIZE_STANDARDS, FINANCIAL_CAPS, USE_OF_FUNDS, JOB_CREATION})

RECOMMENDATIONS = {
    SIZE_STANDARDS: "Business exceeds SBA size standards for this industry",
    FINANCIAL_CAPS: "Restructure the project to fit SBA 504 limits and inject at least 10% owner equity",
    USE_OF_FUNDS: "Remove prohibited uses (working capital, inventory, refinancing, speculation) from the request",
    JOB_CREATION: "Plan to create or retain 1 job per $65,000 of SBA financing",
    OWNER_OCCUPANCY: "Ensure owner will occupy at least 51% of property",
    BUSINESS_AGE: "Business needs 2+ years operating history",
}


@dataclass(frozen=True)
class SBA504Policy:
    """Which checks block eligibility."""
    critical_checks: FrozenSet[str] = field(default_factory=lambda: DEFAULT_CRITICAL_CHECKS)

    def __post_init__(self):
        unknown = set(self.critical_checks) - set(CHECK_ORDER)
        if unknown:
            raise ValueError(f"Unknown SBA 504 checks: {sorted(unknown)}")


# ═══════════════════════════════════════════════════════════════════════════
# STATIC PROGRAM DATA
# ═══════════════════════════════════════════════════════════════════════════
SBA504_BENEFITS = {
    "program": "SBA 504 Loan Program",
    "financing_type": "Three-part financing",
    "benefits": [
        {
            "type": "Long-Term Fixed Rates",
            "description": "SBA portion has fixed rates for 10 or 20 years",
            "value": "Currently 5-7% fixed rates (varies with Treasury rates)",
        },
        {
            "type": "Low Down Payment",
            "description": "Only 10% owner equity required",
            "value": "90% financing available",
        },
        {
            "type": "No Personal Real Estate Required",
            "description": "Property being purchased serves as primary collateral",
            "value": "Preserves personal assets",
        },
        {
            "type": "Long Amortization",
            "description": "10 or 20-year terms available",
            "value": "Lower monthly payments",
        },
    ],
    "financing_structure": {
        "bank_loan": {
            "portion": "50%",
            "rate": "Market rate (variable or fixed)",
            "term": "Typically 10 years",
            "description": "First mortgage from participating bank",
        },
        "sba_debenture": {
            "portion": "40%",
            "rate": "Fixed rate based on Treasury bonds + spread",
            "term": "10 or 20 years",
            "description": "SBA debenture through Certified Development Company",
        },
        "owner_equity": {
            "portion": "10%",
            "rate": "N/A",
            "term": "N/A",
            "description": "Owner equity injection",
        },
    },
    "maximums": {
        "standard_project": "$5,500,000 SBA portion ($13.75M total project)",
        "manufacturing_project": "$5,500,000 SBA portion",
        "energy_project": "$5,500,000 SBA portion",
        "small_manufacturer": "$6,500,000 SBA portion (businesses under $15M revenue)",
    },
}

SBA504_REQUIREMENTS = {
    "business_requirements": [
        "For-profit business (no non-profits)",
        "Meet SBA size standards",
        "Operate for 2+ years (or equivalent experience)",
        "Demonstrate good credit and management capability",
        "Create or retain jobs (1 job per $65,000 SBA funding)",
        "Owner must occupy 51% of property",
    ],
    "project_requirements": [
        "Purchase land and construct new facility, OR",
        "Purchase existing building and equipment, OR",
        "Expand/renovate existing facility",
        "Project must create or retain jobs",
        "Property must be owner-occupied (51% minimum)",
    ],
    "use_of_funds": [
        "Land acquisition",
        "Building construction or renovation",
        "Machinery and equipment (limited amount)",
        "Soft costs (architects, engineers, legal)",
        "Furniture and fixtures (limited)",
    ],
    "prohibited": [
        "Working capital",
        "Inventory",
        "Debt refinancing (with limited exceptions)",
        "Speculation or investment",
        "Lending or investing activities",
    ],
}

SBA504_PROCESS = {
    "steps": [
        {"step": 1, "title": "Initial Consultation",
         "description": "Meet with CDC and bank to discuss project", "timeframe": "1-2 weeks"},
        {"step": 2, "title": "Application Preparation",
         "description": "Gather financial documents and complete applications", "timeframe": "2-4 weeks"},
        {"step": 3, "title": "Bank Approval",
         "description": "Bank reviews and approves first mortgage", "timeframe": "2-6 weeks"},
        {"step": 4, "title": "SBA Application",
         "description": "CDC submits application to SBA", "timeframe": "4-8 weeks"},
        {"step": 5, "title": "SBA Review",
         "description": "SBA reviews application and orders appraisal", "timeframe": "4-12 weeks"},
        {"step": 6, "title": "Authorization",
         "description": "SBA issues authorization to proceed", "timeframe": "1-2 weeks"},
        {"step": 7, "title": "Closing",
         "description": "Loan closing and fund disbursement", "timeframe": "2-4 weeks"},
    ],
    "total_timeframe": "3-8 months typical",
    "tips": [
        "Start process early - timing can vary significantly",
        "Maintain good communication with CDC and bank",
        "Have all financial documentation ready",
        "Consider pre-qualification to gauge viability",
    ],
}


def local_cdcs(state: str) -> List[Dict[str, Any]]:
    """Certified Development Companies serving the area."""
    return [
        {
            "name": "Regional Development Corporation",
            "coverage": f"{state} statewide",
            "specialties": ["Real estate", "Manufacturing", "Healthcare"],
            "experience": "25+ years",
            "volume": "$50M+ annually",
            "distance": "2.1 miles",
        },
        {
            "name": "Community Business Development Corp",
            "coverage": "Multi-state region",
            "specialties": ["Small business", "Retail", "Professional services"],
            "experience": "15+ years",
            "volume": "$25M+ annually",
            "distance": "5.7 miles",
        },
        {
            "name": "Metro Economic Development CDC",
            "coverage": "Metropolitan area",
            "specialties": ["Technology", "Mixed-use", "Urban development"],
            "experience": "20+ years",
            "volume": "$75M+ annually",
            "distance": "8.3 miles",
        },
    ]


# ═══════════════════════════════════════════════════════════════════════════
# CALCULATIONS
# ═══════════════════════════════════════════════════════════════════════════
def _monthly_payment(principal: float, annual_rate: float, years: int) -> float:
    rate = annual_rate / 12
    n = years * 12
    if rate == 0:
        return principal / n
    growth = (1 + rate) ** n
    return principal * (rate * growth) / (growth - 1)


def calculate_sba504_payments(project_cost: float, bank_rate: float = 0.065, sba_rate: float = 0.055) -> Dict[str, Any]:
    """
    Monthly payments for the 50/40/10 structure.

    Bank loan amortizes over 10 years, SBA debenture over 20.
    """
    owner_equity = project_cost * OWNER_EQUITY_MIN
    bank_loan = project_cost * BANK_SHARE
    sba_loan = project_cost * SBA_SHARE

    bank_payment = _monthly_payment(bank_loan, bank_rate, 10)
    sba_payment = _monthly_payment(sba_loan, sba_rate, 20)
    total_monthly = bank_payment + sba_payment
    total_annual = total_monthly * 12

    return {
        "project_cost": project_cost,
        "owner_equity": owner_equity,
        "bank_loan": bank_loan,
        "sba_loan": sba_loan,
        "bank_payment": round(bank_payment),
        "sba_payment": round(sba_payment),
        "total_monthly_payment": round(total_monthly),
        "total_annual_payment": round(total_annual),
        "effective_rate": f"{total_annual / (bank_loan + sba_loan) * 100:.2f}%" if project_cost else "0.00%",
        "bank_rate": f"{bank_rate * 100:.2f}%",
        "sba_rate": f"{sba_rate * 100:.2f}%",
    }


def meets_size_standard(info: BusinessInfo) -> bool:
    standard = SBA_SIZE_STANDARDS.get(info.industry, SBA_SIZE_STANDARDS["other"])
    if standard["employees"] is not None and info.employee_count > standard["employees"]:
        return False
    if standard["receipts"] is not None and info.average_annual_receipts > standard["receipts"]:
        return False
    return True


def is_small_manufacturer(info: BusinessInfo) -> bool:
    return info.industry == "manufacturing" and info.average_annual_receipts < SMALL_MANUFACTURER_RECEIPTS


def run_checks(info: BusinessInfo, project_cost: Optional[float], policy: SBA504Policy) -> Dict[str, Dict[str, Any]]:
    """
    Every check as {passed, critical, detail}.

    Checks that need a project cost pass when none was given.
    """
    checks: Dict[str, Dict[str, Any]] = {}

    def record(name: str, passed: bool, detail: str):
        checks[name] = {"passed": passed, "critical": name in policy.critical_checks, "detail": detail}

    standard = SBA_SIZE_STANDARDS.get(info.industry, SBA_SIZE_STANDARDS["other"])
    record(SIZE_STANDARDS, meets_size_standard(info),
           f"{info.industry}: max employees {standard['employees'] or 'n/a'}, "
           f"max receipts {standard['receipts'] or 'n/a'}")

    if project_cost:
        sba_portion = project_cost * SBA_SHARE
        sba_cap = MAX_SBA_PORTION_SMALL_MANUFACTURER if is_small_manufacturer(info) else MAX_SBA_PORTION
        problems = []
        if project_cost > MAX_PROJECT_COST:
            problems.append(f"project cost ${project_cost:,.0f} exceeds ${MAX_PROJECT_COST:,}")
        if sba_portion > sba_cap:
            problems.append(f"SBA portion ${sba_portion:,.0f} exceeds ${sba_cap:,}")
        if info.owner_equity < project_cost * OWNER_EQUITY_MIN:
            problems.append(f"owner equity ${info.owner_equity:,.0f} below 10% of project cost")
        record(FINANCIAL_CAPS, not problems, "; ".join(problems) or "Within SBA 504 limits")
    else:
        record(FINANCIAL_CAPS, True, "No project cost supplied")

    prohibited = [
        use for use in info.use_of_funds
        if any(term in use for term in PROHIBITED_USES)
    ]
    record(USE_OF_FUNDS, not prohibited,
           f"Prohibited uses: {', '.join(prohibited)}" if prohibited else "No prohibited uses")

    if info.jobs_created is not None and project_cost:
        required = math.ceil(project_cost * SBA_SHARE / SBA_DOLLARS_PER_JOB)
        record(JOB_CREATION, info.jobs_created >= required,
               f"{info.jobs_created} jobs created, {required} required")
    else:
        record(JOB_CREATION, True, "Presumed for real estate projects")

    record(OWNER_OCCUPANCY, info.owner_occupancy >= OWNER_OCCUPANCY_MIN,
           f"{info.owner_occupancy:g}% owner occupied ({OWNER_OCCUPANCY_MIN}% required)")
    record(BUSINESS_AGE, info.business_age >= MIN_BUSINESS_AGE,
           f"{info.business_age:g} years operating ({MIN_BUSINESS_AGE} required)")

    return checks


class SBA504Evaluator(ProgramEvaluator):
    """Assesses SBA 504 eligibility from the business info in the project details."""

    key = ProgramKey.SBA_504

    def __init__(self, location, policy: Optional[SBA504Policy] = None):
        super().__init__(location)
        self.policy = policy or SBA504Policy()

    async def check(self, address: str, context: ProjectDetails) -> SBA504Data:
        validation = validate_business_info(context.business, context.project_cost)
        if not validation.is_valid:
            raise ValidationError("; ".join(validation.errors), field="business")
        info: BusinessInfo = validation.normalized

        coords = await self.location.coordinates(address)
        state = await self.location.state(coords)

        checks = run_checks(info, context.project_cost, self.policy)
        eligible = all(c["passed"] for c in checks.values() if c["critical"])

        failed = [name for name in CHECK_ORDER if not checks[name]["passed"]]
        issues = [checks[name]["detail"] for name in failed]
        recommendations = [RECOMMENDATIONS[name] for name in failed]
        if not recommendations:
            recommendations.append("Business appears to meet basic SBA 504 eligibility criteria")

        if failed:
            log.debug(f"SBA 504 failed checks for {address}: {failed}")

        projection = None
        if eligible and context.project_cost:
            projection = calculate_sba504_payments(context.project_cost)

        return SBA504Data(
            address=address,
            coordinates=coords,
            state=state,
            eligible=eligible,
            checks=checks,
            issues=issues,
            recommendations=recommendations,
            requirements=SBA504_REQUIREMENTS,
            process=SBA504_PROCESS,
            local_cdcs=local_cdcs(state),
            benefits=SBA504_BENEFITS if eligible else None,
            payment_projection=projection,
        )
