"""
main.py: command-line entry point for one allocation run.

    python main.py 2026-03-02 morning
    python main.py 2026-03-02 afternoon --seed-demo

Initializes the schema, optionally seeds demo rooms and classes, runs the
allocation for the given date and shift, and prints the structured result
as JSON. The process exits non-zero when the run does not succeed.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from seat_allocation.repository.database import Database
from seat_allocation.services.allocation_service import SeatAllocationService
from seat_allocation.utils.config import get_settings
from seat_allocation.utils.logger import get_logger


logger = get_logger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Allocate exam classes to rooms.")
    parser.add_argument("exam_date", help="exam date, ISO 8601 (YYYY-MM-DD)")
    parser.add_argument("shift", help="exam shift, e.g. morning or afternoon")
    parser.add_argument("--exam-id", type=int, default=None)
    parser.add_argument("--database", type=Path, default=None, help="SQLite file path")
    parser.add_argument(
        "--seed-demo",
        action="store_true",
        help="insert demo rooms and classes when the tables are empty",
    )
    parser.add_argument(
        "--allow-partial",
        action="store_true",
        help="commit placed classes even when some remain unplaced",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    if args.database is not None:
        settings = replace(settings, database_path=args.database)
    if args.allow_partial:
        settings = replace(settings, allocation_allow_partial_allocations=True)

    logger.info(
        "%s %s | database=%s",
        settings.app_name,
        settings.app_version,
        settings.database_path,
    )
    database = Database(settings)
    logger.info("Startup: initializing database schema")
    database.initialize_database()
    if args.seed_demo:
        logger.info("Startup: seeding demo rooms and classes (skipped if tables not empty)")
        database.seed_demo_data()

    service = SeatAllocationService.from_settings(settings, database=database)
    result = service.allocate(args.exam_date, args.shift, exam_id=args.exam_id)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
