"""Fanout over Redis Pub/Sub: the outbox worker publishes, every API instance listens."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from rems_messaging.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


class RedisPubSubPublisher:
    """EventPublisher over a Redis channel. Zero receivers is not an error."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event_type: str, data: dict[str, Any]) -> int:
        receivers = await self._redis.publish(channel, serialize_event(event_type, data))
        logger.debug("Published %s to %s (%d receivers)", event_type, channel, receivers)
        return receivers


FanoutCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background listener on one channel. Resubscribes after the connection drops."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: FanoutCallback,
        *,
        retry_delay: float = 1.0,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._retry_delay = retry_delay
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="redis-fanout-listener")
        logger.info("Fanout listener started on channel=%s", self._channel)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Fanout listener stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._listen_once()
            except RedisConnectionError:
                logger.warning(
                    "Fanout listener lost Redis, retrying in %.1fs", self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)

    async def _listen_once(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self._dispatch(message["data"])
        finally:
            await pubsub.aclose()

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
        except ValueError:
            logger.warning("Dropping malformed fanout message: %r", raw)
            return
        try:
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Fanout handler failed for %s", event_type)
