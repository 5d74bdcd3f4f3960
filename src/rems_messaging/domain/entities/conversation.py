from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LastMessage:
    """Denormalized snapshot of the newest message in a conversation."""

    content: str
    sent_at: datetime
    sender_id: UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    title: str | None
    property_id: UUID | None
    last_message: LastMessage | None
    created_at: datetime
    updated_at: datetime
