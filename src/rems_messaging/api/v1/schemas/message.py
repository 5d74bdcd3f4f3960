from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class SendMessageRequest(BaseModel):
    content: str
    client_msg_id: UUID | None = None


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    client_msg_id: UUID
    sent_at: datetime
    is_read: bool
    read_at: datetime | None

    model_config = {"from_attributes": True}


class MessagePageResponse(BaseModel):
    """One page of history, oldest first. Pass ``next_cursor`` back to get older messages."""

    items: list[MessageResponse]
    next_cursor: str | None = None

    model_config = {"from_attributes": True}
