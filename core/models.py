"""
Core data models for the CRE Incentives Engine.

Program results are a closed tagged union: each ProgramKey has exactly one
payload dataclass, and availability is extracted per program.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from core.errors import ErrorKind, IncentiveError, ValidationError


# ═══════════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════════
class ProgramKey(Enum):
    """The five incentive programs, in canonical order."""
    OPPORTUNITY_ZONE = "opportunityZone"
    HISTORIC_TAX_CREDIT = "historicTaxCredit"
    NEW_MARKETS_TC = "newMarketsTC"
    CPACE = "cPACE"
    SBA_504 = "sba504"

    @property
    def display_name(self) -> str:
        return PROGRAM_NAMES[self]


PROGRAM_NAMES = {
    ProgramKey.OPPORTUNITY_ZONE: "Opportunity Zones",
    ProgramKey.HISTORIC_TAX_CREDIT: "Historic Tax Credits",
    ProgramKey.NEW_MARKETS_TC: "New Markets Tax Credits",
    ProgramKey.CPACE: "C-PACE Financing",
    ProgramKey.SBA_504: "SBA 504 Loans",
}


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def weight(self) -> int:
        return {"High": 3, "Medium": 2, "Low": 1}[self.value]


class Compatibility(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class RiskLevel(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ResultStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


# ═══════════════════════════════════════════════════════════════════════════
# LOCATION
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class Coordinates:
    """A validated WGS84 point."""
    latitude: float
    longitude: float
    display_name: str = ""

    def __post_init__(self):
        if not -90 <= self.latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90", field="latitude")
        if not -180 <= self.longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180", field="longitude")


@dataclass(frozen=True)
class CensusTract:
    """Census tract identifiers. geoid keys the program rule tables."""
    tract_id: str
    county_id: str
    state_id: str
    geoid: str


# ═══════════════════════════════════════════════════════════════════════════
# PROJECT INPUTS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class BusinessInfo:
    """Business attributes used by SBA-504 eligibility."""
    employee_count: int = 0
    average_annual_receipts: float = 0.0
    industry: str = "other"
    business_age: float = 0.0       # years
    owner_equity: float = 0.0
    owner_occupancy: float = 51.0   # percent of the property
    jobs_created: Optional[int] = None
    use_of_funds: List[str] = field(default_factory=list)

    # Chat UI field names -> attribute names
    _ALIASES = {
        "employeeCount": "employee_count",
        "averageAnnualReceipts": "average_annual_receipts",
        "businessAge": "business_age",
        "ownerEquity": "owner_equity",
        "ownerOccupancy": "owner_occupancy",
        "jobsCreated": "jobs_created",
        "useOfFunds": "use_of_funds",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BusinessInfo":
        data = data or {}
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in names and value is not None:
                kwargs[name] = value
        return cls(**kwargs)


@dataclass
class ProjectDetails:
    """Optional project financials supplied with an analysis request."""
    project_cost: Optional[float] = None
    business: BusinessInfo = field(default_factory=BusinessInfo)
    project_type: Optional[str] = None
    construction_type: Optional[str] = None
    improvement_cost: Optional[float] = None         # C-PACE eligible improvements
    annual_energy_savings: Optional[float] = None

    _ALIASES = {
        "projectCost": "project_cost",
        "projectType": "project_type",
        "constructionType": "construction_type",
        "improvementCost": "improvement_cost",
        "annualEnergySavings": "annual_energy_savings",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProjectDetails":
        """Build from the mapping shape a UI form submits (camelCase or snake_case)."""
        data = data or {}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name == "business":
                kwargs["business"] = BusinessInfo.from_dict(value)
            elif name in ("project_cost", "project_type", "construction_type",
                          "improvement_cost", "annual_energy_savings"):
                # UI forms send 0 / "" for blank fields
                if value not in (None, "", 0):
                    kwargs[name] = value
        return cls(**kwargs)


# ═══════════════════════════════════════════════════════════════════════════
# PROGRAM PAYLOADS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class OpportunityZoneData:
    address: str
    coordinates: Coordinates
    census_tract: CensusTract
    is_opportunity_zone: bool
    details: Optional[Dict[str, Any]] = None
    benefits: Optional[Dict[str, Any]] = None


@dataclass
class HistoricTaxCreditData:
    address: str
    coordinates: Coordinates
    state: str
    federal_eligible: bool
    property_type: Optional[str]
    in_historic_district: bool
    nearby_properties: List[Dict[str, Any]]
    requirements: Dict[str, List[str]]
    state_program: Dict[str, Any]
    combined_benefits: Dict[str, Any]
    benefits: Optional[Dict[str, Any]] = None


@dataclass
class NewMarketsData:
    address: str
    coordinates: Coordinates
    census_tract: CensusTract
    eligible: bool
    eligibility_reason: str
    criteria: Optional[Dict[str, Any]]
    nearby_cdes: List[Dict[str, Any]]
    benefits: Optional[Dict[str, Any]] = None
    value_projection: Optional[Dict[str, Any]] = None


@dataclass
class CPACEData:
    address: str
    coordinates: Coordinates
    state: str
    county: str
    available: bool
    state_program: Dict[str, Any]
    local_program: Dict[str, Any]
    benefits: Optional[Dict[str, Any]] = None
    eligible_improvements: Optional[Dict[str, Any]] = None
    savings_projection: Optional[Dict[str, Any]] = None
    providers: Optional[List[Dict[str, str]]] = None


@dataclass
class SBA504Data:
    address: str
    coordinates: Coordinates
    state: str
    eligible: bool
    checks: Dict[str, Dict[str, Any]]
    issues: List[str]
    recommendations: List[str]
    requirements: Dict[str, List[str]]
    process: Dict[str, Any]
    local_cdcs: List[Dict[str, Any]]
    benefits: Optional[Dict[str, Any]] = None
    payment_projection: Optional[Dict[str, Any]] = None


ProgramPayload = Union[OpportunityZoneData, HistoricTaxCreditData, NewMarketsData, CPACEData, SBA504Data]

PAYLOAD_TYPES = {
    ProgramKey.OPPORTUNITY_ZONE: OpportunityZoneData,
    ProgramKey.HISTORIC_TAX_CREDIT: HistoricTaxCreditData,
    ProgramKey.NEW_MARKETS_TC: NewMarketsData,
    ProgramKey.CPACE: CPACEData,
    ProgramKey.SBA_504: SBA504Data,
}


def program_availability(key: ProgramKey, data: Optional[ProgramPayload]) -> bool:
    """Whether a program is available, read from its own payload shape."""
    if data is None:
        return False

    expected = PAYLOAD_TYPES[key]
    if not isinstance(data, expected):
        raise TypeError(f"{key.value} expects {expected.__name__}, got {type(data).__name__}")

    if key is ProgramKey.OPPORTUNITY_ZONE:
        return data.is_opportunity_zone
    elif key is ProgramKey.HISTORIC_TAX_CREDIT:
        return data.federal_eligible
    elif key is ProgramKey.NEW_MARKETS_TC:
        return data.eligible
    elif key is ProgramKey.CPACE:
        return data.available
    elif key is ProgramKey.SBA_504:
        return data.eligible
    raise ValueError(f"Unknown program: {key}")


# ═══════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ProgramResult:
    """
    Outcome of one evaluator.

    status=error implies available=False and data=None; on success,
    available is derived from data. Use the success/failure constructors.
    """
    program: ProgramKey
    status: ResultStatus
    available: bool
    data: Optional[ProgramPayload] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def success(cls, program: ProgramKey, data: ProgramPayload) -> "ProgramResult":
        return cls(
            program=program,
            status=ResultStatus.SUCCESS,
            available=program_availability(program, data),
            data=data,
        )

    @classmethod
    def failure(cls, program: ProgramKey, error: Exception) -> "ProgramResult":
        if isinstance(error, IncentiveError):
            kind, message = error.kind, error.message
        else:
            kind, message = ErrorKind.INTERNAL, str(error) or type(error).__name__
        return cls(
            program=program,
            status=ResultStatus.ERROR,
            available=False,
            error_message=message,
            error_kind=kind,
        )

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCESS


@dataclass(frozen=True)
class Recommendation:
    """A prioritized action for one program (program is None for the fallback)."""
    program: Optional[ProgramKey]
    priority: Priority
    title: str
    action: str
    timeline: str
    benefit_summary: str
    requirements: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StackingPair:
    """A compatible combination of two or more available programs."""
    programs: frozenset
    compatibility: Compatibility
    combined_benefit: str
    considerations: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.programs) < 2:
            raise ValueError("A stacking opportunity needs at least two programs")


@dataclass(frozen=True)
class Analysis:
    """Consolidated eligibility for one address. Never mutated after creation."""
    address: str
    coordinates: Optional[Coordinates]
    census_tract: Optional[CensusTract]
    results: Mapping[ProgramKey, ProgramResult]
    recommendations: Tuple[Recommendation, ...]
    stacking_opportunities: Tuple[StackingPair, ...]
    generated_at: str
    analysis_time_ms: float = 0.0

    def __post_init__(self):
        # Read-only view over a private copy
        object.__setattr__(self, "results", MappingProxyType(dict(self.results)))

    @property
    def available_keys(self) -> List[ProgramKey]:
        return [key for key in ProgramKey if self.results[key].available]

    @property
    def available_programs(self) -> int:
        return len(self.available_keys)

    @property
    def failed_programs(self) -> List[ProgramKey]:
        return [key for key in ProgramKey if not self.results[key].ok]

    @property
    def has_stacking_opportunities(self) -> bool:
        return len(self.stacking_opportunities) > 0

    @property
    def risk_level(self) -> RiskLevel:
        from core.recommendations import assess_risk_level
        return assess_risk_level(self.available_programs)

    def estimated_total_value(self, project_cost: float) -> float:
        """Sum of the per-program estimates for the available programs."""
        from core.report import estimated_program_values
        return sum(estimated_program_values(self, project_cost).values())

    def to_dict(self) -> Dict[str, Any]:
        result = to_jsonable(self)
        result["available_programs"] = self.available_programs
        result["risk_level"] = self.risk_level.value
        return result


def to_jsonable(obj: Any) -> Any:
    """Convert models (dataclasses, enums, sets) into JSON-compatible values."""
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {
            (k.value if isinstance(k, Enum) else k): to_jsonable(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (frozenset, set)):
        return sorted(to_jsonable(v) for v in obj)
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj
