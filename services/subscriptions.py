# services/subscriptions.py
import re
import uuid
from datetime import datetime, timezone
from urllib.parse import parse_qsl

from pydantic import BaseModel, Field

INSERT_SUBSCRIPTION_SQL = """
INSERT INTO subscriptions (id, email, name, subscribed_at)
VALUES ($1, $2, $3, $4)
"""

# A '%' must always start a two-digit hex escape.
BAD_ESCAPE_RE = re.compile(rb"%(?![0-9A-Fa-f]{2})")


class MalformedForm(ValueError):
    pass


class NewSubscriber(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)


def decode_form(body: bytes) -> dict:
    """
    Decode an application/x-www-form-urlencoded body.
    Stray '%' signs and escapes that don't decode to UTF-8 raise MalformedForm.
    The first occurrence of a repeated key wins.
    """
    if BAD_ESCAPE_RE.search(body):
        raise MalformedForm("malformed percent-encoding")
    try:
        pairs = parse_qsl(body.decode("utf-8"), keep_blank_values=True, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise MalformedForm("form data is not valid UTF-8") from e
    fields = {}
    for key, value in pairs:
        fields.setdefault(key, value)
    return fields


async def insert_subscriber(pool, subscriber: NewSubscriber, subscriber_id: uuid.UUID | None = None) -> uuid.UUID:
    """
    Store one subscription row and return its id.
    Each call is a single INSERT on a connection checked out from pool,
    so there is no partial state if the request goes away mid-flight.
    """
    subscriber_id = subscriber_id or uuid.uuid4()
    async with pool.acquire() as conn:
        await conn.execute(
            INSERT_SUBSCRIPTION_SQL,
            subscriber_id,
            subscriber.email,
            subscriber.name,
            datetime.now(timezone.utc),
        )
    return subscriber_id


async def count_subscribers(conn) -> int:
    return await conn.fetchval("SELECT count(*) FROM subscriptions")


async def list_subscribers(conn, limit: int = 10):
    """Most recent subscriptions first."""
    rows = await conn.fetch(
        "SELECT id, name, email, subscribed_at FROM subscriptions ORDER BY subscribed_at DESC LIMIT $1",
        limit,
    )
    return [dict(r) for r in rows]
