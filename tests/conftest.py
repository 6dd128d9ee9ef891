import asyncio
import socket
import uuid

import httpx
import pytest

from core.config import DatabaseSettings, get_configuration
from main import run
from services.database import create_database, create_pool, drop_database
from services.migrations import run_migrations


class TestApp:
    __test__ = False

    def __init__(self, address: str, client: httpx.AsyncClient, database_pool):
        self.address = address
        self.client = client
        self.database_pool = database_pool

    async def post_subscriptions(self, body: str) -> httpx.Response:
        return await self.client.post(
            f"{self.address}/subscriptions",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            content=body,
        )


async def configure_database(db: DatabaseSettings):
    """Create db.database_name, migrate it and return a pool on it."""
    await create_database(db)
    await run_migrations(db)
    return await create_pool(db)


def bind_ephemeral() -> socket.socket:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    return listener


async def _serve(pool):
    listener = bind_ephemeral()
    application = run(listener, pool)
    task = asyncio.create_task(application.run_until_stopped())
    return application, task


async def _shutdown(application, task):
    application.stop()
    await asyncio.wait_for(task, timeout=10)


@pytest.fixture
async def spawn_app():
    configuration = get_configuration()
    # Fresh database for every test
    configuration.database.database_name = str(uuid.uuid4())
    pool = await configure_database(configuration.database)

    application, task = await _serve(pool)
    try:
        async with httpx.AsyncClient() as client:
            yield TestApp(f"http://127.0.0.1:{application.port}", client, pool)
    finally:
        await _shutdown(application, task)
        await pool.close()
        await drop_database(configuration.database)


@pytest.fixture
async def app_without_db():
    """Server with no pool behind it; any database access would fail the request."""
    application, task = await _serve(None)
    try:
        async with httpx.AsyncClient() as client:
            yield TestApp(f"http://127.0.0.1:{application.port}", client, None)
    finally:
        await _shutdown(application, task)
