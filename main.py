"""
CRE Incentives Engine - command-line driver.

    python main.py analyze "1600 Pennsylvania Avenue, Washington, DC 20500" --project-cost 2000000 --report
    python main.py analyze "123 Main Street, Denver, CO 80202" --export csv
    python main.py health
"""

import argparse
import asyncio
import json
import logging
import sys

from core.engine import EXPORT_FORMATS, create_engine
from core.errors import IncentiveError
from core.models import BusinessInfo, ProjectDetails

log = logging.getLogger("cre")


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s │ %(name)-28s │ %(levelname)-8s │ %(message)s',
        datefmt='%H:%M:%S',
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_analysis(analysis):
    print(f"\n=== INCENTIVE ANALYSIS: {analysis.address} ===")
    if analysis.coordinates:
        print(f"Location: {analysis.coordinates.latitude:.5f}, {analysis.coordinates.longitude:.5f}")
    if analysis.census_tract:
        print(f"Census tract: {analysis.census_tract.geoid}")
    print()

    for key, result in analysis.results.items():
        if not result.ok:
            mark, status = "!", f"error ({result.error_kind.value}): {result.error_message}"
        elif result.available:
            mark, status = "+", "available"
        else:
            mark, status = "-", "not available"
        print(f" {mark} {key.display_name:<26} {status}")

    print(f"\nAvailable programs: {analysis.available_programs}   Risk: {analysis.risk_level.value}")

    print("\nRecommendations:")
    for rec in analysis.recommendations:
        print(f"  [{rec.priority.value:<6}] {rec.title}: {rec.action} ({rec.timeline})")

    if analysis.stacking_opportunities:
        print("\nStacking opportunities:")
        for pair in analysis.stacking_opportunities:
            names = " + ".join(key.display_name for key in analysis.available_keys if key in pair.programs)
            print(f"  [{pair.compatibility.value:<6}] {names}: {pair.combined_benefit}")

    print(f"\nCompleted in {analysis.analysis_time_ms:.0f}ms")


def print_report(report):
    summary = report.executive_summary
    comparison = report.financial_projections["comparison"]
    base = report.financial_projections["base_case"]
    incentives = report.financial_projections["with_incentives"]

    print(f"\n=== FINANCIAL REPORT (project cost ${report.project_cost:,.0f}) ===")
    print(f"Estimated incentive value: ${summary['estimated_total_value']:,.0f}")
    for finding in summary["key_findings"]:
        print(f"  - {finding}")
    print(f"\nConventional total cost:   ${base['total_cost']:,.0f}")
    print(f"Net cost with incentives:  ${incentives['net_project_cost']:,.0f}")
    print(f"Total savings:             ${comparison['total_savings']:,.0f}")
    print(f"Recommendation:            {comparison['recommendation']}")

    print("\nNext steps:")
    for step in report.next_steps:
        print(f"  {step['step']}. {step['action']} ({step['timeline']})")


async def run_analyze(args) -> int:
    details = ProjectDetails(
        project_cost=args.project_cost,
        business=BusinessInfo(
            employee_count=args.employees,
            average_annual_receipts=args.receipts,
            industry=args.industry,
            business_age=args.business_age,
            owner_equity=args.owner_equity,
        ),
    )

    async with create_engine() as engine:
        analysis = await engine.analyze_property(args.address, details)

        if args.export:
            print(engine.export_analysis(args.export))
            return 0

        print_analysis(analysis)
        if args.report:
            print_report(engine.generate_financial_report())
    return 0


async def run_health() -> int:
    engine = create_engine()
    health = await engine.health_check()
    print(json.dumps(health, indent=2))
    return 0 if health["overall"] == "healthy" else 1


def main(argv=None) -> int:
    """CLI interface for the incentive engine."""
    parser = argparse.ArgumentParser(description="Commercial real estate incentive analysis")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Analyze incentive eligibility for an address")
    analyze.add_argument("address", help="Property street address")
    analyze.add_argument("--project-cost", type=float, help="Total project cost in dollars")
    analyze.add_argument("--report", action="store_true", help="Print a financial report")
    analyze.add_argument("--export", choices=EXPORT_FORMATS, help="Print the analysis as JSON or CSV")
    analyze.add_argument("--industry", default="other", help="Business industry (SBA 504)")
    analyze.add_argument("--employees", type=int, default=0, help="Employee count (SBA 504)")
    analyze.add_argument("--receipts", type=float, default=0.0, help="Average annual receipts (SBA 504)")
    analyze.add_argument("--business-age", type=float, default=0.0, help="Years in operation (SBA 504)")
    analyze.add_argument("--owner-equity", type=float, default=0.0, help="Owner equity in dollars (SBA 504)")

    commands.add_parser("health", help="Check the upstream geocoding services")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.command == "analyze":
            return asyncio.run(run_analyze(args))
        return asyncio.run(run_health())
    except IncentiveError as e:
        log.error(f"{e.kind.value}: {e.message}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
