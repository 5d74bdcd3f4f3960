from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from rems_messaging.domain.value_objects.enums import EventType


@dataclass(frozen=True, slots=True)
class OutboxRecord:
    """Pending event as seen by the outbox worker."""

    id: int
    event_type: str
    payload: dict[str, Any]
    attempts: int


class OutboxWriter(Protocol):
    async def add(self, event_type: EventType, payload: dict[str, Any]) -> None: ...

    async def fetch_pending(self, batch_size: int, max_attempts: int) -> list[OutboxRecord]: ...

    async def mark_sent(self, ids: list[int]) -> None: ...

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None: ...
