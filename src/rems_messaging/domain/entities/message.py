from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    client_msg_id: UUID
    sent_at: datetime
    is_read: bool = False
    read_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.is_read != (self.read_at is not None):
            raise ValueError("read_at must be set exactly when is_read is true")

    def mark_read(self, at: datetime) -> Message:
        """Return the read version of this message. Already-read messages are returned as is."""
        if self.is_read:
            return self
        return replace(self, is_read=True, read_at=at)

    def is_unread_for(self, viewer_id: UUID) -> bool:
        return not self.is_read and self.sender_id != viewer_id
