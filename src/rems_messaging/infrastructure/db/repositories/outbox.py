from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rems_messaging.application.repositories.outbox import OutboxRecord
from rems_messaging.domain.value_objects.enums import EventType, OutboxStatus
from rems_messaging.infrastructure.db.models.outbox import OutboxMessageModel

_RETRYABLE = (OutboxStatus.PENDING, OutboxStatus.FAILED)


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: EventType, payload: dict[str, Any]) -> None:
        self._session.add(OutboxMessageModel(event_type=str(event_type), payload=payload))
        await self._session.flush()

    async def fetch_pending(self, batch_size: int, max_attempts: int) -> list[OutboxRecord]:
        """Claim due records in one statement and move them to processing.

        Rows locked by another worker are skipped. Records that used up
        ``max_attempts`` are never claimed again and stay failed.
        """
        model = OutboxMessageModel
        due = (
            select(model.id)
            .where(
                model.status.in_(_RETRYABLE),
                model.attempts < max_attempts,
                model.next_retry_at.is_(None) | (model.next_retry_at <= datetime.now(timezone.utc)),
            )
            .order_by(model.created_at, model.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        claim = (
            update(model)
            .where(model.id.in_(due.scalar_subquery()))
            .values(status=OutboxStatus.PROCESSING)
            .returning(model.id, model.event_type, model.payload, model.attempts)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(claim)
        records = [
            OutboxRecord(id=row.id, event_type=row.event_type, payload=row.payload, attempts=row.attempts)
            for row in result
        ]
        # RETURNING order is unspecified; ids follow insertion order
        return sorted(records, key=lambda r: r.id)

    async def mark_sent(self, ids: list[int]) -> None:
        if ids:
            await self._session.execute(
                update(OutboxMessageModel)
                .where(OutboxMessageModel.id.in_(ids))
                .values(status=OutboxStatus.SENT)
            )

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.FAILED,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
            )
        )
