import contextlib
import logging
from typing import AsyncContextManager, AsyncIterator, NamedTuple, Protocol

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class BusMessage(NamedTuple):
    topic: str
    data: str


class Publisher(Protocol):
    async def publish(self, topic: str, payload: str) -> None: ...


class Subscriber(Protocol):
    def subscribe(self, *topics: str) -> AsyncContextManager[AsyncIterator[BusMessage]]: ...


class RedisBus:
    """Topic bus over Redis pub/sub.

    One client (and its connection pool) is shared by every publisher in the
    process; each ``subscribe`` opens its own pubsub connection, released on
    exit of the context manager.
    """

    def __init__(self, client: redis.Redis, logger: logging.Logger = logger):
        self.client = client
        self.logger = logger

    @classmethod
    def from_url(cls, url: str) -> "RedisBus":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    async def publish(self, topic: str, payload: str) -> None:
        await self.client.publish(topic, payload)

    @contextlib.asynccontextmanager
    async def subscribe(self, *topics: str) -> AsyncIterator[AsyncIterator[BusMessage]]:
        pubsub = self.client.pubsub()
        await pubsub.subscribe(*topics)
        self.logger.debug("Subscribed to %s", ", ".join(topics))
        try:
            yield self._messages(pubsub)
        finally:
            await pubsub.unsubscribe(*topics)
            await pubsub.aclose()
            self.logger.debug("Unsubscribed from %s", ", ".join(topics))

    async def _messages(self, pubsub) -> AsyncIterator[BusMessage]:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            data = message["data"]
            if isinstance(data, bytes):
                data = data.decode("utf-8", errors="replace")
            channel = message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode("utf-8")
            yield BusMessage(channel, data)

    async def close(self):
        await self.client.aclose()
