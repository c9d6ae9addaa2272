"""
Incentive Analysis Engine - the orchestrator.

Fans an address out to every program evaluator concurrently, isolates each
evaluator's failure into its own result, and assembles the Analysis with
recommendations and stacking opportunities.

Usage:
    async with create_engine() as engine:
        analysis = await engine.analyze_property("1600 Pennsylvania Ave NW, Washington, DC 20500")
        report = engine.generate_financial_report(project_details=ProjectDetails(project_cost=2_000_000))
"""

import asyncio
import json
import logging
import time
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from core.cache import TTLCache
from core.config import EngineSettings
from core.errors import ERROR_MESSAGES, IncentiveError, ValidationError
from core.location import LocationService
from core.models import Analysis, ProgramKey, ProgramResult, ProjectDetails
from core.recommendations import detect_stacking_opportunities, generate_recommendations
from core.report import FinancialReport, ReportCompiler, estimated_program_values
from core.validation import normalize_address, sanitize_input, validate_project_details
from loaders.census import CensusTractLoader
from loaders.geocoder import Geocoder
from programs import ProgramEvaluator, create_evaluators

log = logging.getLogger(__name__)


CSV_COLUMNS = ["Program", "Available", "Status", "Estimated Value", "Notes"]
EXPORT_FORMATS = ("json", "csv")

HEALTH_CHECK_ADDRESS = "1600 Pennsylvania Avenue, Washington, DC 20500"


class IncentiveAnalysisEngine:
    """
    Runs all five program evaluators against an address.

    Per-evaluator failures never fail the analysis; they become error
    results. Only an empty or non-string address is rejected up front.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        geocoder: Optional[Geocoder] = None,
        census_loader: Optional[CensusTractLoader] = None,
        cache: Optional[TTLCache] = None,
        evaluators: Optional[Mapping[ProgramKey, ProgramEvaluator]] = None,
    ):
        self.settings = settings or EngineSettings()
        self.geocoder = geocoder or Geocoder(
            base_url=self.settings.nominatim_url,
            user_agent=self.settings.user_agent,
            timeout=self.settings.request_timeout,
        )
        self.census_loader = census_loader or CensusTractLoader(
            base_url=self.settings.census_geocoder_url,
            user_agent=self.settings.user_agent,
            timeout=self.settings.request_timeout,
        )
        self.cache = cache if cache is not None else TTLCache(
            max_size=self.settings.cache_max_size,
            default_ttl=self.settings.cache_default_ttl,
        )
        self.location = LocationService(self.geocoder, self.census_loader, self.cache)
        self.evaluators: Dict[ProgramKey, ProgramEvaluator] = dict(
            evaluators if evaluators is not None else create_evaluators(self.location)
        )
        missing = [key.value for key in ProgramKey if key not in self.evaluators]
        if missing:
            raise ValueError(f"No evaluator for programs: {missing}")

        self.report_compiler = ReportCompiler(self.settings.default_project_cost)

        self.last_analysis: Optional[Analysis] = None
        self.last_project_details: Optional[ProjectDetails] = None
        self.last_report: Optional[FinancialReport] = None
        self.last_health_check: Optional[Dict[str, Any]] = None
        self.history: deque = deque(maxlen=self.settings.history_size)
        self.analyses_run = 0

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════
    async def start(self):
        """Start the background cache sweep."""
        self.cache.start_cleanup(self.settings.cache_sweep_interval)
        log.info("Incentive analysis engine started")

    async def stop(self):
        self.cache.stop_cleanup()
        log.info("Incentive analysis engine stopped")

    async def __aenter__(self) -> "IncentiveAnalysisEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # ═══════════════════════════════════════════════════════════════════════
    # ANALYSIS
    # ═══════════════════════════════════════════════════════════════════════
    async def analyze_property(
        self,
        address: str,
        project_details: Union[ProjectDetails, Dict[str, Any], None] = None,
    ) -> Analysis:
        """
        Evaluate every incentive program for an address.

        Raises:
            ValidationError: address is empty/not a string, or project details are invalid
        """
        if not isinstance(address, str) or not address.strip():
            raise ValidationError(ERROR_MESSAGES["INVALID_ADDRESS"], field="address")

        details = self._coerce_details(project_details)
        normalized = normalize_address(sanitize_input(address))

        log.info(f"Starting property analysis: {normalized}")
        started = time.perf_counter()

        results: List[ProgramResult] = await asyncio.gather(*(
            self._evaluate(key, evaluator, normalized, details)
            for key, evaluator in self.evaluators.items()
        ))
        by_key = {result.program: result for result in results}
        ordered = {key: by_key[key] for key in ProgramKey}

        available = [key for key in ProgramKey if ordered[key].available]
        coordinates, census_tract = self._location_facts(normalized, ordered)

        analysis = Analysis(
            address=normalized,
            coordinates=coordinates,
            census_tract=census_tract,
            results=ordered,
            recommendations=tuple(generate_recommendations(ordered)),
            stacking_opportunities=tuple(detect_stacking_opportunities(available)),
            generated_at=datetime.now().isoformat(),
            analysis_time_ms=(time.perf_counter() - started) * 1000,
        )

        # Only a completed analysis is recorded
        self.last_analysis = analysis
        self.last_project_details = details
        self.last_report = None
        self.history.append(analysis)
        self.analyses_run += 1

        log.info(
            f"Analysis completed in {analysis.analysis_time_ms:.0f}ms: "
            f"{analysis.available_programs} of {len(ordered)} programs available"
        )
        return analysis

    async def _evaluate(
        self,
        key: ProgramKey,
        evaluator: ProgramEvaluator,
        address: str,
        details: ProjectDetails,
    ) -> ProgramResult:
        """Run one evaluator; any exception becomes an error result for that program."""
        try:
            result = await evaluator.evaluate(address, details)
        except IncentiveError as e:
            log.warning(f"{key.display_name} failed: {e.message}")
            return ProgramResult.failure(key, e)
        except Exception as e:
            log.exception(f"Unexpected error evaluating {key.display_name}")
            return ProgramResult.failure(key, e)

        if result.program is not key:
            log.error(f"Evaluator for {key.value} returned a result for {result.program.value}")
            return ProgramResult.failure(key, RuntimeError("Evaluator returned a result for another program"))
        return result

    @staticmethod
    def _coerce_details(project_details) -> ProjectDetails:
        if project_details is None:
            return ProjectDetails()
        if isinstance(project_details, Mapping):
            project_details = ProjectDetails.from_dict(project_details)

        validation = validate_project_details(project_details)
        if not validation.is_valid:
            raise ValidationError("; ".join(validation.errors), field="project_details")
        for warning in validation.warnings:
            log.warning(warning)
        return validation.normalized

    def _location_facts(self, address: str, results: Mapping[ProgramKey, ProgramResult]):
        """Coordinates and tract as resolved by whichever evaluators got that far."""
        coordinates = None
        census_tract = None
        for result in results.values():
            if result.data is None:
                continue
            coordinates = coordinates or getattr(result.data, "coordinates", None)
            census_tract = census_tract or getattr(result.data, "census_tract", None)
        if coordinates is None:
            coordinates = self.location.peek_coordinates(address)
        return coordinates, census_tract

    # ═══════════════════════════════════════════════════════════════════════
    # REPORTING & EXPORT
    # ═══════════════════════════════════════════════════════════════════════
    def generate_financial_report(
        self,
        analysis: Optional[Analysis] = None,
        project_details: Union[ProjectDetails, Dict[str, Any], None] = None,
    ) -> FinancialReport:
        """
        Compile a financial report for an analysis (default: the last one).

        Raises:
            ValidationError: no analysis is available
        """
        analysis = analysis or self.last_analysis
        if analysis is None:
            raise ValidationError(ERROR_MESSAGES["NO_ANALYSIS"], field="analysis")

        if project_details is None:
            details = self.last_project_details if analysis is self.last_analysis else None
        else:
            details = self._coerce_details(project_details)

        report = self.report_compiler.compile(analysis, details)
        self.last_report = report
        return report

    def _project_cost_for(self, analysis: Analysis) -> float:
        details = self.last_project_details if analysis is self.last_analysis else None
        return (details.project_cost if details else None) or self.settings.default_project_cost

    def export_analysis(self, format: str = "json", analysis: Optional[Analysis] = None) -> str:
        """Serialize an analysis (default: the last one) as JSON or CSV."""
        analysis = analysis or self.last_analysis
        if analysis is None:
            raise ValidationError(ERROR_MESSAGES["NO_ANALYSIS"], field="analysis")

        fmt = format.lower()
        if fmt == "json":
            return json.dumps(analysis.to_dict(), indent=2)
        if fmt == "csv":
            values = estimated_program_values(analysis, self._project_cost_for(analysis))
            rows = []
            for key in ProgramKey:
                result = analysis.results[key]
                if not result.ok:
                    notes = result.error_message
                elif result.available:
                    notes = "Eligible"
                else:
                    notes = "Not eligible"
                rows.append({
                    "Program": key.display_name,
                    "Available": "Yes" if result.available else "No",
                    "Status": result.status.value,
                    "Estimated Value": round(values.get(key, 0.0), 2),
                    "Notes": notes,
                })
            return pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(index=False)

        raise ValidationError(f"Unsupported export format: {format}", field="format")

    def export_report(self, format: str = "json") -> str:
        """Serialize the last financial report, compiling one if needed."""
        report = self.last_report or self.generate_financial_report()

        fmt = format.lower()
        if fmt == "json":
            return json.dumps(report.to_dict(), indent=2)
        if fmt == "csv":
            rows = [
                {
                    "Program": entry["name"],
                    "Available": "Yes" if entry["available"] else "No",
                    "Status": entry["status"],
                    "Estimated Value": round(entry["estimated_value"], 2),
                    "Notes": entry.get("error") or "",
                }
                for entry in report.incentive_details.values()
            ]
            return pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(index=False)

        raise ValidationError(f"Unsupported export format: {format}", field="format")

    # ═══════════════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════════════
    def get_summary_stats(self) -> Dict[str, Any]:
        analysis = self.last_analysis
        if analysis is None:
            return {
                "available_programs": 0,
                "total_estimated_value": 0.0,
                "risk_level": None,
                "has_stacking_opportunities": False,
                "analyses_run": self.analyses_run,
                "history_size": len(self.history),
            }

        return {
            "address": analysis.address,
            "available_programs": analysis.available_programs,
            "total_estimated_value": analysis.estimated_total_value(self._project_cost_for(analysis)),
            "risk_level": analysis.risk_level.value,
            "has_stacking_opportunities": analysis.has_stacking_opportunities,
            "failed_programs": [key.value for key in analysis.failed_programs],
            "analysis_time_ms": analysis.analysis_time_ms,
            "analyses_run": self.analyses_run,
            "history_size": len(self.history),
        }

    def clear_all_caches(self):
        self.cache.clear()
        log.info("All service caches cleared")

    async def health_check(self) -> Dict[str, Any]:
        """Probe the upstream collaborators with a known address."""
        services: Dict[str, str] = {}
        overall = "healthy"

        coords = None
        try:
            coords = await asyncio.to_thread(self.geocoder.geocode, HEALTH_CHECK_ADDRESS)
            services["geocoder"] = "healthy" if coords is not None else "degraded"
        except IncentiveError as e:
            log.warning(f"Geocoder health check failed: {e.message}")
            services["geocoder"] = "unhealthy"

        if coords is None:
            services["census"] = "unknown"
        else:
            try:
                tract = await asyncio.to_thread(
                    self.census_loader.resolve_census_tract, coords.latitude, coords.longitude
                )
                services["census"] = "healthy" if tract is not None else "degraded"
            except IncentiveError as e:
                log.warning(f"Census health check failed: {e.message}")
                services["census"] = "unhealthy"

        if any(status != "healthy" for status in services.values()):
            overall = "degraded"

        self.last_health_check = {
            "overall": overall,
            "services": services,
            "cache": self.cache.get_stats(),
            "cache_sweep_running": self.cache.cleanup_running,
            "timestamp": datetime.now().isoformat(),
        }
        return self.last_health_check


def create_engine(settings: Optional[EngineSettings] = None) -> IncentiveAnalysisEngine:
    """Factory function for the analysis engine, configured from the environment."""
    return IncentiveAnalysisEngine(settings or EngineSettings.from_env())
