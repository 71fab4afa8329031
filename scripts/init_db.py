#!/usr/bin/env python
"""Create the payroll tables in the configured database.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --database-url postgresql+asyncpg://...
    python scripts/init_db.py --dry-run
"""

import argparse
import asyncio
import sys

from staff_payroll.config import configure_logging, get_settings
from staff_payroll.database import create_schema, get_engine
from staff_payroll.models import Base


async def init_schema(database_url: str) -> None:
    engine = get_engine(database_url)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create payroll tables")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Async database URL (default: DATABASE_URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the tables without creating them",
    )
    args = parser.parse_args()

    configure_logging()

    print(f"Database: {args.database_url.split('@')[-1]}")
    tables = sorted(Base.metadata.tables)
    print(f"Tables: {', '.join(tables)}")

    if args.dry_run:
        print("[DRY RUN] Nothing created")
        return 0

    try:
        asyncio.run(init_schema(args.database_url))
    except Exception as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Created {len(tables)} tables (existing tables left untouched)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
