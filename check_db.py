#!/usr/bin/env python3
"""
Diagnostic script to check the database connection, applied migrations
and the subscriptions table.
"""

import asyncio
import sys

import asyncpg

from core.config import get_configuration
from services.migrations import current_revision, migration_chain, pending_after
from services.subscriptions import count_subscribers, list_subscribers


async def check_database():
    db = get_configuration().database
    print("=" * 60)
    print("Database Connection Diagnostic")
    print("=" * 60)
    print(f"Connecting to: {db.host}:{db.port}/{db.database_name}")
    print()

    try:
        conn = await asyncpg.connect(dsn=db.connection_string(), ssl=db.ssl_mode())
    except (OSError, asyncpg.PostgresError) as e:
        print(f"✗ Error: {e}")
        return 1

    try:
        print("✓ Successfully connected to database!")
        db_name = await conn.fetchval("SELECT current_database()")
        print(f"Current database: {db_name}")

        print("\n" + "-" * 60)
        print("Migrations:")
        print("-" * 60)
        current = await current_revision(conn)
        chain = migration_chain()
        pending = {s.revision for s in pending_after(chain, current)}
        for s in chain:
            mark = "·" if s.revision in pending else "✓"
            print(f"  {mark} {s.revision} {s.doc}")
        if current is None:
            print("\n  ⚠ No migrations applied yet. Run: python migrate.py")
            return 1
        if pending:
            print(f"\n  ⚠ {len(pending)} migration(s) pending. Run: python migrate.py")

        print("\n" + "-" * 60)
        print("Subscriptions:")
        print("-" * 60)
        has_table = await conn.fetchval("SELECT to_regclass('subscriptions') IS NOT NULL")
        if not has_table:
            print("  ⚠ Table 'subscriptions' is missing!")
            return 1
        print(f"  {await count_subscribers(conn)} row(s)")
        latest = await list_subscribers(conn, limit=5)
        if latest:
            print("  Latest:")
        for row in latest:
            print(f"    - {row['subscribed_at']:%Y-%m-%d %H:%M:%S} {row['name']} <{row['email']}>")
    finally:
        await conn.close()

    print("\n" + "=" * 60)
    print("Diagnostic complete!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(check_database()))
