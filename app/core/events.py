"""
Change feed: tells subscribers that a collection changed after a commit.

Events carry only the collection and document id. Subscribers re-read the
store, so what they render is always the committed state.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Set

import redis.asyncio as redis

from app.core.cache import get_redis
from app.core.config import settings

logger = logging.getLogger(__name__)

VEHICLES = "vehicles"
VEHICLE_REQUESTS = "vehicle_requests"
TRIP_HISTORY = "trip_history"
USERS = "users"

COLLECTIONS = (VEHICLES, VEHICLE_REQUESTS, TRIP_HISTORY, USERS)


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    document_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({"collection": self.collection, "document_id": self.document_id})

    @classmethod
    def from_json(cls, raw: str) -> "ChangeEvent":
        data = json.loads(raw)
        return cls(collection=data["collection"], document_id=data.get("document_id"))


class Listener:
    """One consumer's queue of change events. Closing it stops delivery."""

    def __init__(self, feed: "ChangeFeed", maxsize: int = 256):
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def deliver(self, event: ChangeEvent) -> None:
        if self.closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            # A slow consumer only needs to know something changed
            logger.debug("Listener queue full; dropping %s", event)

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        while not self.closed:
            event = await self._queue.get()
            if event is None or self.closed:
                return
            yield event

    def shutdown(self) -> None:
        """Stop delivery without touching the feed."""
        self.closed = True
        if not self._queue.full():
            # Wake a consumer blocked on get
            self._queue.put_nowait(None)

    async def close(self) -> None:
        if self.closed:
            return
        self.shutdown()
        await self._feed.unsubscribe(self)


class ChangeFeed:
    async def publish(self, event: ChangeEvent) -> None:
        raise NotImplementedError

    async def subscribe(self) -> Listener:
        raise NotImplementedError

    async def unsubscribe(self, listener: Listener) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LocalChangeFeed(ChangeFeed):
    """In-process fan-out for a single API worker."""

    def __init__(self):
        self._listeners: Set[Listener] = set()

    async def publish(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            listener.deliver(event)

    async def subscribe(self) -> Listener:
        listener = Listener(self)
        self._listeners.add(listener)
        return listener

    async def unsubscribe(self, listener: Listener) -> None:
        self._listeners.discard(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class RedisChangeFeed(LocalChangeFeed):
    """Fan-out across workers through a Redis pub/sub channel.

    Published events go to Redis; one background reader per worker relays
    them to the local listeners. The channel is joined before `subscribe()`
    returns, and if the reader stops the current listeners are closed so
    their consumers can reconnect.
    """

    def __init__(self, client: redis.Redis, channel: str = None):
        super().__init__()
        self._redis = client
        self._channel = channel or settings.REDIS_CHANNEL_PREFIX
        self._reader: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    async def publish(self, event: ChangeEvent) -> None:
        try:
            await self._redis.publish(self._channel, event.to_json())
        except redis.RedisError as e:
            logger.error(f"Failed to publish change event: {str(e)}")
            # Local listeners still hear about local writes
            await super().publish(event)

    async def subscribe(self) -> Listener:
        async with self._lock:
            if self._reader is None or self._reader.done():
                pubsub = self._redis.pubsub()
                await pubsub.subscribe(self._channel)
                self._reader = asyncio.create_task(self._relay(pubsub))
                self._reader.add_done_callback(self._reader_done)
        return await super().subscribe()

    async def _relay(self, pubsub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                await super().publish(ChangeEvent.from_json(message["data"]))
        finally:
            try:
                await pubsub.unsubscribe(self._channel)
                await pubsub.aclose()
            except redis.RedisError as e:
                logger.warning(f"Failed to leave change channel: {str(e)}")

    def _reader_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"Change feed reader failed: {task.exception()}")
        else:
            logger.warning("Change feed reader stopped")
        listeners, self._listeners = self._listeners, set()
        for listener in listeners:
            listener.shutdown()

    async def close(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None


_feed: Optional[ChangeFeed] = None


def get_change_feed() -> ChangeFeed:
    global _feed
    if _feed is None:
        client = get_redis()
        _feed = RedisChangeFeed(client.redis) if client is not None else LocalChangeFeed()
    return _feed


async def close_change_feed() -> None:
    global _feed
    if _feed is not None:
        await _feed.close()
        _feed = None
