#!/usr/bin/env python3
"""
Upgrade the configured database to the newest Alembic revision.
Run this from the project root directory.

Usage:
    python migrate.py [--create-database] [--script-location migrations]
"""

import asyncio
import argparse
import sys

from core.config import get_configuration
from services.database import create_database
from services.migrations import MIGRATIONS_DIR, MigrationError, run_migrations


async def main():
    parser = argparse.ArgumentParser(description="Apply database migrations")
    parser.add_argument(
        "--create-database",
        action="store_true",
        help="Create the configured database first if it does not exist"
    )
    parser.add_argument(
        "--script-location",
        default=MIGRATIONS_DIR,
        help="Alembic script directory (env.py and versions/)"
    )
    args = parser.parse_args()

    configuration = get_configuration()
    db = configuration.database

    print("=" * 60)
    print(f"Migrating {db.host}:{db.port}/{db.database_name}")
    print("=" * 60)

    if args.create_database:
        try:
            created = await create_database(db, if_not_exists=True)
        except Exception as e:
            print(f"✗ Failed to create database: {e}")
            sys.exit(1)
        print("✓ Database created" if created else "✓ Database already exists")

    try:
        applied = await run_migrations(db, args.script_location)
    except MigrationError as e:
        print(f"✗ {e}")
        sys.exit(1)

    if applied:
        print(f"✓ Applied {len(applied)} migration(s): {', '.join(applied)}")
    else:
        print("✓ Nothing to apply, database is up to date")


if __name__ == "__main__":
    asyncio.run(main())
