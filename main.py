"""
SpendWatch DZD - Main Entry Point.

Media-buying spend tracker for Algerian e-commerce teams.
Records ad spend, monitors monthly budgets and prints dashboard reports.

Usage:
    python main.py [--config config.yaml] <command> [options]

Example:
    python main.py add-source "Facebook Ads" facebook --color "#1877F2"
    python main.py add-budget 10 2024 100000 --source facebook
    python main.py deactivate-source facebook
    python main.py import spend_october.csv
    python main.py status --month 10 --year 2024
    python main.py report --output-dir reports/
"""

import argparse
import logging
import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from spendwatch import __version__
from spendwatch.config import AppConfig, load_config
from spendwatch.errors import SpendWatchError
from spendwatch.excel_generator import ExcelReporter
from spendwatch.repository import SpendRepository
from spendwatch.schema import BudgetStatus, Currency, DashboardStats, SourceAnalytics
from spendwatch.serialiser import ReportSerialiser
from spendwatch.service import MediaBuyingService
from spendwatch.validator import DataValidator

logger = logging.getLogger(__name__)


def print_header() -> None:
    """Prints the application header."""
    print("=" * 60)
    print("  SpendWatch DZD - Media Buying Tracker")
    print(f"  Version: {__version__}")
    print("=" * 60)
    print()


def print_statuses(statuses: List[BudgetStatus]) -> None:
    """
    Prints one block per budget of the month.

    Args:
        statuses: Budget statuses to print.
    """
    if not statuses:
        print("  No budgets for this month.")
        return

    for status in statuses:
        label = status.source_name or "All sources"
        print(f"  {label} ({status.month:02d}/{status.year})")
        print("  " + "-" * 40)
        print(f"  Budget:            {status.budget_amount:,.2f} DZD")
        print(f"  Spend:             {status.current_spend:,.2f} DZD")
        print(f"  Spend (USD):       $ {status.current_spend_usd:,.2f}")
        print(f"  Remaining:         {status.remaining:,.2f} DZD")
        print(f"  Used:              {status.spend_percentage:.1f}%")
        if status.is_over_budget:
            print("  ❌ OVER BUDGET")
        elif status.is_near_threshold:
            print(f"  ⚠️  Above {status.alert_threshold}% alert threshold")
        else:
            print("  ✓  On track")
        print()


def print_dashboard(stats: DashboardStats) -> None:
    """Prints the dashboard summary."""
    print("  SPEND")
    print("  " + "-" * 40)
    print(f"  Today:             {stats.total_spend_today:,.2f}")
    print(f"  Last 7 days:       {stats.total_spend_week:,.2f}")
    print(f"  Range:             {stats.total_spend_month:,.2f}")
    print(f"  Range (DZD):       {stats.total_spend_in_dzd:,.2f} DZD")
    print(f"  Range (USD):       $ {stats.total_spend_usd:,.2f}")
    print()
    print("  LEADS")
    print("  " + "-" * 40)
    print(f"  Today:             {stats.total_leads_today}")
    print(f"  Last 7 days:       {stats.total_leads_week}")
    print(f"  Range:             {stats.total_leads_month}")
    print(f"  Average CPL:       {stats.average_cpl:,.2f} DZD")
    print(f"  Conversions:       {stats.total_conversions} ({stats.conversion_rate:.1f}%)")
    print()

    best = stats.best_performing_source
    if best is not None:
        print(f"  Best source:       {best.name} ({best.cpl:,.2f} DZD per lead)")

    comparison = stats.period_comparison
    if comparison is not None:
        print(f"  vs previous:       spend {comparison.spend_change:+.1f}%, "
              f"leads {comparison.leads_change:+.1f}%, CPL {comparison.cpl_change:+.1f}%")
    print()

    for item in stats.spend_by_source:
        print(f"  • {item.source_name}: {item.spend_in_dzd:,.2f} DZD "
              f"({item.percentage:.1f}%), {item.leads} leads")
    print()


def print_analytics(analytics: List[SourceAnalytics]) -> None:
    """Prints per-source analytics, highest spend first."""
    for item in analytics:
        print(f"  {item.source_name}")
        print(f"    Spend: {item.total_spend_in_dzd:,.2f} DZD ({item.percentage_of_total:.1f}%)")
        print(f"    Leads: {item.total_leads} | CPL: {item.average_cpl:,.2f} DZD")
        print(f"    Conversions: {item.conversions} ({item.conversion_rate:.1f}%)")
        print()


def build_service(config: AppConfig) -> MediaBuyingService:
    """Opens the configured database and wires the service."""
    repository = SpendRepository(config.database.path)
    return MediaBuyingService(repository, config)


def run_import(service: MediaBuyingService, csv_path: Path, user: Optional[str]) -> int:
    """
    Validates a CSV of daily spend and stores its entries.

    Args:
        service: Media buying service.
        csv_path: Path to input CSV file.
        user: Submitting user id.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    print(f"  Loading: {csv_path}")
    try:
        result = DataValidator().validate_csv(csv_path)
    except FileNotFoundError:
        print(f"\n  ❌ ERROR: File not found: {csv_path}")
        return 1
    except ValueError as e:
        print(f"\n  ❌ ERROR: {e}")
        return 1

    if not result.is_valid:
        print(f"\n  ❌ VALIDATION ERRORS ({result.error_count} errors):")
        for error in result.errors[:10]:
            print(f"     {error}")
        if result.error_count > 10:
            print(f"     ... and {result.error_count - 10} more errors")
        return 1

    entries = service.import_entries(result.entries, created_by_id=user)
    print(f"  ✓ Imported {len(entries)} entries")

    unread = service.get_alerts(unread_only=True)
    if unread:
        print(f"  ⚠️  {len(unread)} unread budget alerts")
    return 0


def run_report(
    service: MediaBuyingService,
    month: Optional[int],
    year: Optional[int],
    output_dir: Path
) -> int:
    """
    Writes the JSON status report and the Excel workbook.

    Returns:
        Exit code.
    """
    now = datetime.now()
    statuses = service.get_budget_status(month, year, now)
    analytics = service.get_analytics_by_source(now=now)

    output_dir.mkdir(parents=True, exist_ok=True)

    serialiser = ReportSerialiser()
    json_path = output_dir / serialiser.generate_filename("budget_status", now)
    serialiser.save_to_file(serialiser.serialise_status_report(statuses, now), json_path)
    print(f"  ✓ Status report saved: {json_path}")

    reporter = ExcelReporter()
    excel_path = output_dir / reporter.generate_filename("spend_report", now)
    reporter.generate_report(statuses, analytics, excel_path, now)
    print(f"  ✓ Excel report saved: {excel_path}")

    print()
    print_statuses(statuses)
    return 0


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SpendWatch DZD - Media buying spend and budget tracker"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    source = commands.add_parser("add-source", help="Register an ad source")
    source.add_argument("name")
    source.add_argument("slug")
    source.add_argument("--color")

    deactivate = commands.add_parser("deactivate-source", help="Deactivate an ad source")
    deactivate.add_argument("source", help="Source slug, name or id")

    budget = commands.add_parser("add-budget", help="Create a monthly budget")
    budget.add_argument("month", type=int)
    budget.add_argument("year", type=int)
    budget.add_argument("amount", type=_decimal)
    budget.add_argument("--source", help="Source slug or name (default: global)")
    budget.add_argument("--currency", default="DZD", choices=[c.value for c in Currency])
    budget.add_argument("--rate", type=_decimal, help="USD to DZD rate for USD budgets")
    budget.add_argument("--threshold", type=_decimal, help="Alert threshold percent")

    rate = commands.add_parser("add-rate", help="Record a USD to DZD exchange rate")
    rate.add_argument("rate", type=_decimal)

    status = commands.add_parser("status", help="Show budget status for a month")
    status.add_argument("--month", type=int)
    status.add_argument("--year", type=int)

    for name, help_text in (
        ("dashboard", "Show dashboard figures"),
        ("analytics", "Show per-source analytics"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--start", type=date.fromisoformat, help="YYYY-MM-DD")
        sub.add_argument("--end", type=date.fromisoformat, help="YYYY-MM-DD")

    imp = commands.add_parser("import", help="Import daily spend from CSV")
    imp.add_argument("csv_file", type=Path)
    imp.add_argument("--user", help="Submitting user id")

    report = commands.add_parser("report", help="Write JSON and Excel reports")
    report.add_argument("--month", type=int)
    report.add_argument("--year", type=int)
    report.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Output directory for reports (default: output/)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    logging.basicConfig(level=config.logging.level, format=config.logging.format)

    service = build_service(config)

    print_header()
    try:
        if args.command == "add-source":
            created = service.create_source(args.name, args.slug, color=args.color)
            print(f"  ✓ Source {created.name} ({created.slug}) created")
        elif args.command == "deactivate-source":
            source = service.resolve_source(args.source)
            service.deactivate_source(source.id)
            print(f"  ✓ Source {source.name} deactivated")
        elif args.command == "add-budget":
            source_id = service.resolve_source(args.source).id if args.source else None
            created = service.create_budget(
                args.month, args.year, args.amount,
                source_id=source_id,
                currency=Currency(args.currency),
                exchange_rate=args.rate,
                alert_threshold=args.threshold,
            )
            print(f"  ✓ Budget of {created.budget_amount:,.2f} DZD for "
                  f"{created.month:02d}/{created.year} created")
        elif args.command == "add-rate":
            recorded = service.create_exchange_rate(args.rate, datetime.now())
            print(f"  ✓ Rate 1 USD = {recorded.rate} DZD recorded")
        elif args.command == "status":
            print_statuses(service.get_budget_status(args.month, args.year))
        elif args.command == "dashboard":
            print_dashboard(service.get_dashboard_stats(args.start, args.end))
        elif args.command == "analytics":
            print_analytics(service.get_analytics_by_source(args.start, args.end))
        elif args.command == "import":
            return run_import(service, args.csv_file, args.user)
        elif args.command == "report":
            return run_report(service, args.month, args.year, args.output_dir)
    except SpendWatchError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"\n  ❌ ERROR: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
