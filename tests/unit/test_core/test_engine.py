import asyncio
import json
import threading

import pytest

from core.cache import TTLCache
from core.config import EngineSettings
from core.engine import CSV_COLUMNS, IncentiveAnalysisEngine
from core.errors import ErrorKind, ValidationError
from core.models import ProgramKey, ResultStatus

ADDRESS = "1600 Pennsylvania Avenue, Washington, DC 20500"


@pytest.fixture
def engine(fake_geocoder, fake_census):
    return IncentiveAnalysisEngine(geocoder=fake_geocoder, census_loader=fake_census)


def analyze(engine, address=ADDRESS, details=None):
    return asyncio.run(engine.analyze_property(address, details))


class TestAnalyzeProperty:
    def test_end_to_end(self, engine):
        """All five programs reported, recommendations sorted, counts consistent."""
        analysis = analyze(engine)

        assert list(analysis.results) == list(ProgramKey)
        assert analysis.address == "1600 Pennsylvania Ave, Washington, DC 20500"
        assert analysis.recommendations
        weights = [r.priority.weight for r in analysis.recommendations]
        assert weights == sorted(weights, reverse=True)
        assert analysis.available_programs == sum(1 for r in analysis.results.values() if r.available)
        assert analysis.analysis_time_ms >= 0

    def test_resolves_location_once(self, engine, fake_geocoder, fake_census):
        analysis = analyze(engine)

        assert fake_geocoder.geocode_calls == 1
        assert fake_census.calls == 1
        assert analysis.coordinates.latitude == pytest.approx(38.8977)
        assert analysis.census_tract.geoid == "11001007200"

    def test_dc_tract_is_opportunity_zone(self, engine):
        analysis = analyze(engine)
        assert analysis.results[ProgramKey.OPPORTUNITY_ZONE].available is True

    def test_evaluator_failure_is_isolated(self, engine):
        """One evaluator blowing up doesn't affect the others."""
        async def boom(address, context):
            raise RuntimeError("unexpected")

        engine.evaluators[ProgramKey.CPACE].check = boom
        analysis = analyze(engine)

        cpace = analysis.results[ProgramKey.CPACE]
        assert cpace.status is ResultStatus.ERROR
        assert cpace.error_kind is ErrorKind.INTERNAL
        assert cpace.available is False
        assert cpace.data is None
        for key in ProgramKey:
            if key is not ProgramKey.CPACE:
                assert analysis.results[key].ok

    def test_geocoding_failure_reported_per_program(self, engine, fake_geocoder):
        fake_geocoder.coords = None
        analysis = analyze(engine)

        assert all(r.error_kind is ErrorKind.GEOCODING for r in analysis.results.values())
        assert analysis.available_programs == 0
        assert analysis.recommendations[0].program is None
        assert analysis.coordinates is None

    @pytest.mark.parametrize("address", ["", "   ", None])
    def test_rejects_empty_address(self, engine, address):
        with pytest.raises(ValidationError):
            analyze(engine, address)
        assert engine.last_analysis is None

    def test_malformed_address_becomes_validation_results(self, engine):
        analysis = analyze(engine, "Main Street")
        assert all(r.error_kind is ErrorKind.VALIDATION for r in analysis.results.values())

    @pytest.mark.parametrize("address", [
        "100 Main \u017ft, Austin, TX 78701",
        "100 Oak Dr\u0131ve, Austin, TX 78701",
    ])
    def test_non_ascii_suffix_lookalikes(self, engine, address):
        """Unicode case-folds of suffix words still produce a full analysis."""
        analysis = analyze(engine, address)
        assert list(analysis.results) == list(ProgramKey)
        assert analysis.address == address

    def test_invalid_project_details_rejected(self, engine):
        with pytest.raises(ValidationError):
            analyze(engine, details={"projectCost": -10})

    def test_accepts_form_dict(self, engine):
        analyze(engine, details={"projectCost": 2_000_000, "business": {"industry": "retail"}})
        assert engine.last_project_details.project_cost == 2_000_000
        assert engine.last_project_details.business.industry == "retail"

    def test_cancelled_analysis_leaves_no_trace(self, engine, fake_geocoder):
        fake_geocoder.gate = threading.Event()

        async def scenario():
            task = asyncio.ensure_future(engine.analyze_property(ADDRESS))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            fake_geocoder.gate.set()
            for _ in range(100):
                if not engine.location._pending:
                    break
                await asyncio.sleep(0.01)

        asyncio.run(scenario())
        assert engine.last_analysis is None
        assert len(engine.history) == 0
        assert len(engine.cache) == 0

    def test_history_is_bounded(self, fake_geocoder, fake_census):
        engine = IncentiveAnalysisEngine(
            settings=EngineSettings(history_size=2),
            geocoder=fake_geocoder,
            census_loader=fake_census,
        )
        for _ in range(3):
            analyze(engine)
        assert len(engine.history) == 2
        assert engine.analyses_run == 3
        assert engine.history[-1] is engine.last_analysis


class TestReportsAndExport:
    def test_report_requires_analysis(self, engine):
        with pytest.raises(ValidationError):
            engine.generate_financial_report()

    def test_report_uses_last_project_cost(self, engine):
        analyze(engine, details={"projectCost": 3_000_000})
        report = engine.generate_financial_report()
        assert report.project_cost == 3_000_000
        assert engine.last_report is report

    def test_export_requires_analysis(self, engine):
        with pytest.raises(ValidationError):
            engine.export_analysis("json")

    def test_csv_export(self, engine):
        analysis = analyze(engine)
        lines = engine.export_analysis("csv").strip().splitlines()

        assert lines[0] == ",".join(CSV_COLUMNS)
        assert lines[0] == "Program,Available,Status,Estimated Value,Notes"
        assert len(lines) == 1 + len(analysis.results)
        assert lines[1].startswith("Opportunity Zones,Yes,success")

    def test_json_export(self, engine):
        analyze(engine)
        data = json.loads(engine.export_analysis("json"))
        assert set(data["results"]) == {key.value for key in ProgramKey}

    def test_unknown_export_format(self, engine):
        analyze(engine)
        with pytest.raises(ValidationError):
            engine.export_analysis("xml")

    def test_export_report(self, engine):
        analyze(engine)
        data = json.loads(engine.export_report("json"))
        assert "financial_projections" in data
        assert engine.export_report("csv").startswith("Program,Available,Status,Estimated Value,Notes")


class TestStatus:
    def test_summary_stats_before_analysis(self, engine):
        stats = engine.get_summary_stats()
        assert stats["available_programs"] == 0
        assert stats["risk_level"] is None

    def test_summary_stats(self, engine):
        analysis = analyze(engine)
        stats = engine.get_summary_stats()
        assert stats["available_programs"] == analysis.available_programs
        assert stats["risk_level"] == analysis.risk_level.value
        assert stats["total_estimated_value"] == analysis.estimated_total_value(1_000_000)

    def test_injected_cache_is_used(self, fake_geocoder, fake_census):
        now = [1000.0]
        injected = TTLCache(clock=lambda: now[0])
        engine = IncentiveAnalysisEngine(geocoder=fake_geocoder, census_loader=fake_census, cache=injected)
        assert engine.cache is injected

        analyze(engine)
        assert len(injected) > 0
        analyze(engine)
        assert fake_geocoder.geocode_calls == 1

        now[0] += 10 * 24 * 3600
        analyze(engine)
        assert fake_geocoder.geocode_calls == 2

    def test_clear_all_caches(self, engine, fake_geocoder):
        analyze(engine)
        assert len(engine.cache) > 0
        engine.clear_all_caches()
        assert len(engine.cache) == 0
        analyze(engine)
        assert fake_geocoder.geocode_calls == 2

    def test_health_check(self, engine):
        health = asyncio.run(engine.health_check())
        assert health["overall"] == "healthy"
        assert health["services"] == {"geocoder": "healthy", "census": "healthy"}

    def test_health_check_degraded(self, engine, fake_geocoder):
        fake_geocoder.coords = None
        health = asyncio.run(engine.health_check())
        assert health["overall"] == "degraded"
        assert health["services"]["census"] == "unknown"

    def test_context_manager_runs_sweep(self, engine):
        async def scenario():
            async with engine:
                running = engine.cache.cleanup_running
            return running, engine.cache.cleanup_running

        assert asyncio.run(scenario()) == (True, False)
