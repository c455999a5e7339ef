"""
Maintenance commands over the configured database.

Run:
    python -m evergreen reconcile
    python -m evergreen sales-report --type monthly > sales.csv
"""

import argparse
import asyncio
import sys
from datetime import date

import structlog
from kungfu import Error, Ok

from evergreen.config import Settings, get_settings
from evergreen.log import configure_logging
from evergreen.reports import ReportKind, write_csv
from evergreen.services import open_services

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════════

async def cmd_reconcile(settings: Settings) -> int:
    """Finish orders left half-written by an interrupted checkout."""
    services, store = await open_services(settings)
    try:
        match await services.finalizer.reconcile():
            case Ok(report):
                for number in report.finalized:
                    print(f"  finalized  {number}")
                for number in report.failed:
                    print(f"  failed     {number}")
                return 1 if report.failed else 0
            case Error(e):
                print(f"  ✗ {e.message}", file=sys.stderr)
                return 2
    finally:
        await store.close()


async def cmd_sales_report(
    settings: Settings,
    kind: str,
    start: date | None,
    end: date | None,
) -> int:
    services, store = await open_services(settings)
    try:
        match await services.reports.sales_report(kind, start, end):
            case Ok(report):
                write_csv(report, sys.stdout)
                return 0
            case Error(e):
                print(f"  ✗ {e.message}", file=sys.stderr)
                return 2
    finally:
        await store.close()


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="evergreen")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("reconcile", help="finish interrupted order finalizations")

    sales = commands.add_parser("sales-report", help="write a sales report as CSV")
    sales.add_argument("--type", dest="kind", default="daily", choices=[k.value for k in ReportKind])
    sales.add_argument("--start", type=date.fromisoformat)
    sales.add_argument("--end", type=date.fromisoformat)
    return parser


async def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_format=settings.log_json)
    logger.info("command_started", command=args.command)

    match args.command:
        case "reconcile":
            return await cmd_reconcile(settings)
        case "sales-report":
            return await cmd_sales_report(settings, args.kind, args.start, args.end)
    return 2


if __name__ == "__main__":
    sys.exit(asyncio.run(run()))
