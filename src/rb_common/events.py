"""After-commit domain events.

Services publish an event only once their transaction has committed. Delivery is
fire-and-forget: a publishing failure is logged and never reaches the caller, so
it can never roll back (or fail) a ledger operation that already succeeded.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

import redis.asyncio as aioredis

from src.rb_common.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    type: str                      # e.g. "chest.settled"
    data: dict[str, Any]
    streamer_id: str | None = None
    user_id: str | None = None
    occurred_at: datetime = field(default_factory=utc_now)

    def to_json(self) -> str:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return json.dumps(payload, default=str)


class EventPublisher(Protocol):
    async def publish(self, event: DomainEvent) -> None: ...


class NullEventPublisher:
    """Drops events. Used when EVENTS_ENABLED is false."""

    async def publish(self, event: DomainEvent) -> None:
        logger.debug("Event dropped (publisher disabled): %s", event.type)


class RedisEventPublisher:
    """Publishes events as JSON on a Redis pub/sub channel.

    Owns its connection pool: start() at application startup, close() at shutdown.
    publish() before start() connects lazily.
    """

    def __init__(self, url: str, channel: str) -> None:
        self._url = url
        self._channel = channel
        self._redis: aioredis.Redis | None = None

    async def start(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(self._url, decode_responses=True)
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, event: DomainEvent) -> None:
        try:
            client = await self.start()
            await client.publish(self._channel, event.to_json())
        except Exception:
            logger.warning("Failed to publish event %s", event.type, exc_info=True)
