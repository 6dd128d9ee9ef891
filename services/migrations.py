# services/migrations.py
import asyncio
import os
from typing import List

import asyncpg
from alembic import command
from alembic.config import Config
from alembic.script import Script, ScriptDirectory
from alembic.util import CommandError
from sqlalchemy.exc import SQLAlchemyError

from core.config import DatabaseSettings
from core.logger import get_logger

logger = get_logger(__name__)

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "migrations")


class MigrationError(RuntimeError):
    pass


def alembic_config(db: DatabaseSettings, script_location: str = MIGRATIONS_DIR) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", script_location)
    # Config values go through ConfigParser interpolation; quoted credentials carry '%'.
    cfg.set_main_option("sqlalchemy.url", db.sqlalchemy_url().replace("%", "%%"))
    return cfg


def migration_chain(script_location: str = MIGRATIONS_DIR) -> List[Script]:
    """Revisions oldest first. History is kept linear."""
    if not os.path.isdir(script_location):
        raise MigrationError(f"Migrations directory not found: {script_location}")
    try:
        script = ScriptDirectory(script_location)
        return list(reversed(list(script.walk_revisions())))
    except CommandError as e:
        raise MigrationError(f"Cannot read migrations in {script_location}: {e}") from e


def pending_after(chain: List[Script], revision: str | None) -> List[Script]:
    if revision is None:
        return chain
    ids = [s.revision for s in chain]
    if revision not in ids:
        raise MigrationError(f"Database is at unknown revision {revision}")
    return chain[ids.index(revision) + 1:]


async def current_revision(conn) -> str | None:
    """Revision recorded in alembic_version, or None for an unmigrated database."""
    has_table = await conn.fetchval("SELECT to_regclass('alembic_version') IS NOT NULL")
    if not has_table:
        return None
    return await conn.fetchval("SELECT version_num FROM alembic_version")


async def _read_revision(db: DatabaseSettings) -> str | None:
    conn = await asyncpg.connect(dsn=db.connection_string(), ssl=db.ssl_mode())
    try:
        return await current_revision(conn)
    finally:
        await conn.close()


async def run_migrations(db: DatabaseSettings, script_location: str = MIGRATIONS_DIR) -> List[str]:
    """
    Upgrade db to the newest revision and return the revision ids applied, oldest first.
    A failing revision is rolled back on its own and reported as MigrationError;
    revisions before it stay applied.
    """
    chain = migration_chain(script_location)
    try:
        before = await _read_revision(db)
    except (OSError, asyncpg.PostgresError) as e:
        raise MigrationError(f"Cannot reach {db.host}:{db.port}/{db.database_name}: {e}") from e
    pending = pending_after(chain, before)
    if not pending:
        return []

    try:
        # env.py runs its own event loop, so keep it off ours.
        await asyncio.to_thread(command.upgrade, alembic_config(db, script_location), "head")
    except (CommandError, SQLAlchemyError, OSError) as e:
        failed = pending_after(chain, await _read_revision(db))
        name = os.path.basename(failed[0].path) if failed else "<unknown>"
        raise MigrationError(f"Migration {name} failed: {e}") from e

    for s in pending:
        logger.info("Applied migration %s (%s)", s.revision, s.doc)
    return [s.revision for s in pending]
