# services/database.py
import asyncpg

from core.config import DatabaseSettings
from core.logger import get_logger

logger = get_logger(__name__)

# Database asyncpg falls back to when the DSN names none.
MAINTENANCE_DB = "postgres"


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


async def create_pool(db: DatabaseSettings, min_size: int = 1, max_size: int = 10):
    """
    Open a connection pool against db.database_name.
    Raises straight away if the server is unreachable so startup fails fast.
    """
    logger.info("Creating pool for %s:%s/%s", db.host, db.port, db.database_name)
    return await asyncpg.create_pool(
        dsn=db.connection_string(),
        min_size=min_size,
        max_size=max_size,
        ssl=db.ssl_mode(),
    )


async def connect_without_db(db: DatabaseSettings):
    return await asyncpg.connect(
        dsn=db.connection_string_without_db(),
        database=MAINTENANCE_DB,
        ssl=db.ssl_mode(),
    )


async def database_exists(conn, name: str) -> bool:
    found = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", name)
    return found is not None


async def create_database(db: DatabaseSettings, if_not_exists: bool = False) -> bool:
    """Create db.database_name on the server. Returns False if it was already there."""
    conn = await connect_without_db(db)
    try:
        if if_not_exists and await database_exists(conn, db.database_name):
            return False
        await conn.execute(f"CREATE DATABASE {_quote_ident(db.database_name)}")
        logger.info("Created database %s", db.database_name)
        return True
    finally:
        await conn.close()


async def drop_database(db: DatabaseSettings):
    conn = await connect_without_db(db)
    try:
        # WITH (FORCE) needs Postgres 13+
        await conn.execute(f"DROP DATABASE IF EXISTS {_quote_ident(db.database_name)} WITH (FORCE)")
        logger.info("Dropped database %s", db.database_name)
    finally:
        await conn.close()
