"""Outbox worker: publishes committed events to Redis Pub/Sub for WebSocket fanout.

Run with ``python -m rems_messaging.workers.outbox_worker``.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from rems_messaging.api.deps import open_uow
from rems_messaging.application.ports.bus import EventPublisher
from rems_messaging.application.uow import UnitOfWork
from rems_messaging.config import settings
from rems_messaging.infrastructure.bus.redis_pubsub import RedisPubSubPublisher

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def next_retry_at(attempts: int, now: datetime | None = None) -> datetime:
    """Exponential backoff from BASE_DELAY_SECONDS, capped at MAX_DELAY_SECONDS."""
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=delay)


async def publish_batch(
    uow: UnitOfWork,
    publisher: EventPublisher,
    *,
    channel: str,
    batch_size: int,
    max_attempts: int,
) -> int:
    """Publish one batch of due records and commit their new status. Returns the sent count."""
    batch = await uow.outbox.fetch_pending(batch_size, max_attempts)
    if not batch:
        return 0

    sent_ids: list[int] = []
    for record in batch:
        try:
            await publisher.publish(channel, record.event_type, record.payload)
        except Exception:
            logger.exception("Failed to publish outbox record %d", record.id)
            if record.attempts + 1 >= max_attempts:
                logger.error("Outbox record %d gave up after %d attempts", record.id, max_attempts)
            await uow.outbox.mark_failed(record.id, next_retry_at(record.attempts))
        else:
            sent_ids.append(record.id)

    await uow.outbox.mark_sent(sent_ids)
    await uow.commit()
    return len(sent_ids)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                async with open_uow() as uow:
                    sent = await publish_batch(
                        uow,
                        publisher,
                        channel=settings.REDIS_PUBSUB_CHANNEL,
                        batch_size=settings.OUTBOX_BATCH_SIZE,
                        max_attempts=settings.OUTBOX_MAX_ATTEMPTS,
                    )
                if sent:
                    logger.info("Published %d outbox records", sent)
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
