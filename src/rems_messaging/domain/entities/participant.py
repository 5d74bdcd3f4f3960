from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Participant:
    conversation_id: UUID
    user_id: UUID
    position: int
    joined_at: datetime
    is_archived: bool = False
    last_read_at: datetime | None = None
