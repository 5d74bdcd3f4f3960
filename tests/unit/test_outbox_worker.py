from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from rems_messaging.application.repositories.outbox import OutboxRecord
from rems_messaging.workers.outbox_worker import MAX_DELAY_SECONDS, next_retry_at, publish_batch
from tests.conftest import T0, FakeUoW


class RecordingPublisher:
    def __init__(self, fail_ids: set[int] | None = None) -> None:
        self.fail_ids = fail_ids or set()
        self.published: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(self, channel: str, event_type: str, data: dict[str, Any]) -> int:
        if data.get("record") in self.fail_ids:
            raise ConnectionError("redis down")
        self.published.append((channel, event_type, data))
        return 1


def _record(record_id: int, attempts: int = 0) -> OutboxRecord:
    return OutboxRecord(
        id=record_id,
        event_type="message.created",
        payload={"record": record_id, "participant_ids": ["a", "b"]},
        attempts=attempts,
    )


@pytest.mark.asyncio
async def test_publish_batch_sends_and_marks():
    uow = FakeUoW()
    uow.outbox._pending = [_record(1), _record(2)]
    publisher = RecordingPublisher()

    sent = await publish_batch(uow, publisher, channel="fanout", batch_size=10, max_attempts=5)

    assert sent == 2
    assert uow.outbox._sent == [1, 2]
    assert publisher.published[0] == (
        "fanout",
        "message.created",
        {"record": 1, "participant_ids": ["a", "b"]},
    )
    assert uow._committed is True


@pytest.mark.asyncio
async def test_publish_failure_schedules_retry():
    uow = FakeUoW()
    uow.outbox._pending = [_record(1), _record(2, attempts=1)]
    publisher = RecordingPublisher(fail_ids={2})

    sent = await publish_batch(uow, publisher, channel="fanout", batch_size=10, max_attempts=5)

    assert sent == 1
    assert uow.outbox._sent == [1]
    assert [record_id for record_id, _ in uow.outbox._failed] == [2]


@pytest.mark.asyncio
async def test_exhausted_records_are_not_fetched():
    uow = FakeUoW()
    uow.outbox._pending = [_record(1, attempts=5)]

    sent = await publish_batch(uow, RecordingPublisher(), channel="fanout", batch_size=10, max_attempts=5)

    assert sent == 0
    assert uow._committed is False


def test_backoff_grows_and_caps():
    assert next_retry_at(0, T0) == T0 + timedelta(seconds=5)
    assert next_retry_at(2, T0) == T0 + timedelta(seconds=20)
    assert next_retry_at(10, T0) == T0 + timedelta(seconds=MAX_DELAY_SECONDS)
