from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ParticipantResponse(BaseModel):
    id: UUID
    name: str
    email: str | None = None
    avatar_url: str | None = None

    model_config = {"from_attributes": True}


class LastMessageResponse(BaseModel):
    content: str
    sent_at: datetime
    sender_id: UUID

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    id: UUID
    title: str | None
    property_id: UUID | None
    participants: list[ParticipantResponse]
    last_message: LastMessageResponse | None
    unread_count: int
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StartConversationRequest(BaseModel):
    recipient_id: UUID
    initial_message: str
    property_id: UUID | None = None
    title: str | None = Field(None, max_length=200)


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    marked: int
