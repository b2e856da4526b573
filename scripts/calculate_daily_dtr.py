"""Calculate daily time records for all scheduled employees.

Usage:
    python scripts/calculate_daily_dtr.py [--date YYYY-MM-DD | --range N]

Without options, computes yesterday. ``--range N`` computes the N days
ending yesterday. Employees without a schedule on a date, and employees who
are not active, are skipped.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date

from dtr_engine.clock import system_clock
from dtr_engine.config import configure_logging, settings
from dtr_engine.database import dispose_db, init_db
from dtr_engine.services.daily_batch_service import DailyDtrBatchService, days_ending_yesterday


def resolve_target_dates(target_date: date | None, range_days: int | None, today: date) -> list[date]:
    """Dates to process from the command line options."""
    if target_date is not None:
        return [target_date]
    return days_ending_yesterday(today, range_days or 1)


async def calculate(target_dates: list[date]) -> int:
    """Run the batch; returns the number of failed employee/dates."""
    _, session_factory = init_db()
    try:
        service = DailyDtrBatchService(session_factory, policy=settings.policy, clock=system_clock)
        result = await service.run(target_dates)
    finally:
        await dispose_db()

    print(f"Dates: {', '.join(d.isoformat() for d in result.dates)}")
    print(f"  Processed: {result.processed}")
    print(f"  Failed: {result.failed}")
    return result.failed


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Calculate daily time records")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Date to process (YYYY-MM-DD, default: yesterday)",
    )
    group.add_argument(
        "--range",
        type=int,
        default=None,
        dest="range_days",
        help="Process the N days ending yesterday",
    )

    args = parser.parse_args()
    if args.range_days is not None and args.range_days < 1:
        parser.error("--range must be at least 1")

    configure_logging()
    today = date.today()
    failed = asyncio.run(calculate(resolve_target_dates(args.date, args.range_days, today)))
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
