from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from rems_messaging.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Return up to `limit` messages older than `cursor`, newest first."""
        ...

    async def count_unread(
        self, viewer_id: UUID, conversation_ids: list[UUID]
    ) -> dict[UUID, int]:
        """Count unread messages not sent by the viewer, per conversation."""
        ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on client_msg_id → return existing."""
        ...

    async def get_by_client_msg_id(
        self,
        conversation_id: UUID,
        sender_id: UUID,
        client_msg_id: UUID,
    ) -> Message | None: ...

    async def mark_read(
        self, conversation_id: UUID, reader_id: UUID, at: datetime
    ) -> int:
        """Mark the reader's unread incoming messages read. Return how many flipped."""
        ...
