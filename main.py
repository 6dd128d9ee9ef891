# main.py
import asyncio
import socket
import uuid

import asyncpg
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from pydantic import ValidationError

from core.config import ApplicationSettings, get_configuration
from core.logger import get_logger
from services import database, subscriptions
from services.subscriptions import MalformedForm, NewSubscriber

logger = get_logger("newsletter.api")

# Errors that mean the database, not the client, let the request down.
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

router = APIRouter()


class StartupError(RuntimeError):
    pass


def get_pool(request: Request):
    return request.app.state.pool


def _describe_errors(errors) -> list:
    return [
        {"field": str(err["loc"][-1]) if err.get("loc") else None, "message": err["msg"]}
        for err in errors
    ]


async def subscriber_form(request: Request) -> NewSubscriber:
    """Parse the form body strictly; every way it can be wrong is a 400."""
    body = await request.body()
    try:
        fields = subscriptions.decode_form(body)
    except MalformedForm as e:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, e)
        raise HTTPException(status_code=400, detail=[{"field": None, "message": str(e)}])
    try:
        return NewSubscriber.model_validate(fields)
    except ValidationError as e:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, e.errors())
        raise HTTPException(status_code=400, detail=_describe_errors(e.errors()))


@router.get("/health_check")
async def health_check():
    return Response(status_code=200)


@router.post("/subscriptions")
async def subscribe(subscriber: NewSubscriber = Depends(subscriber_form), pool=Depends(get_pool)):
    subscriber_id = uuid.uuid4()
    logger.info("Adding subscriber %s (name=%r, email=%r)", subscriber_id, subscriber.name, subscriber.email)
    try:
        await subscriptions.insert_subscriber(pool, subscriber, subscriber_id)
    except DATABASE_ERRORS as e:
        logger.error("Failed to save subscriber %s: %s", subscriber_id, e)
        raise HTTPException(status_code=500, detail="Failed to save subscription")

    logger.info("Saved subscriber %s", subscriber_id)
    return Response(status_code=200)


def create_app(pool) -> FastAPI:
    """Build the API around an already open asyncpg pool."""
    app = FastAPI(title="Newsletter Backend")
    app.state.pool = pool
    app.include_router(router)
    return app


class Application:
    """A configured server that has not started serving yet."""

    def __init__(self, server: uvicorn.Server, listener: socket.socket):
        self.server = server
        self.listener = listener

    @property
    def port(self) -> int:
        return self.listener.getsockname()[1]

    async def run_until_stopped(self):
        await self.server.serve(sockets=[self.listener])

    def stop(self):
        self.server.should_exit = True


def bind_listener(app_settings: ApplicationSettings) -> socket.socket:
    family = socket.AF_INET6 if ":" in app_settings.host else socket.AF_INET
    try:
        return socket.create_server((app_settings.host, app_settings.port), family=family)
    except OSError as e:
        raise StartupError(f"Failed to bind {app_settings.host}:{app_settings.port}: {e}") from e


def run(listener: socket.socket, pool, backlog: int = 2048) -> Application:
    """
    Wrap a bound listener and a live pool into an Application.
    Nothing is served until run_until_stopped() is awaited.
    """
    if listener.fileno() == -1:
        raise StartupError("Listener socket is closed")
    if listener.family not in (socket.AF_INET, socket.AF_INET6):
        raise StartupError(f"Unsupported listener family: {listener.family!r}")
    try:
        port = listener.getsockname()[1]
        if port == 0:
            raise StartupError("Listener is not bound to a port")
        # Connections made before the server task first runs queue in the backlog.
        listener.listen(backlog)
    except OSError as e:
        raise StartupError(f"Listener is not usable: {e}") from e

    config = uvicorn.Config(create_app(pool), log_config=None, backlog=backlog)
    return Application(uvicorn.Server(config), listener)


async def main():
    configuration = get_configuration()
    pool = await database.create_pool(
        configuration.database,
        min_size=configuration.pool_min_size,
        max_size=configuration.pool_max_size,
    )
    try:
        listener = bind_listener(configuration.application)
        application = run(listener, pool)
        logger.info("Listening on %s:%s", configuration.application.host, application.port)
        await application.run_until_stopped()
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
