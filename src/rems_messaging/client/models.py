from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ParticipantSummary(BaseModel):
    id: UUID
    name: str
    email: str | None = None
    avatar_url: str | None = None


class LastMessageSummary(BaseModel):
    content: str
    sent_at: datetime
    sender_id: UUID


class ConversationSummary(BaseModel):
    """One entry of the viewer's conversation list.

    ``unread_count`` is kept optional: an absent or null value counts as zero.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: UUID
    title: str | None = None
    property_id: UUID | None = None
    participants: list[ParticipantSummary] = Field(default_factory=list)
    last_message: LastMessageSummary | None = None
    unread_count: int | None = Field(None, ge=0)
    is_archived: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


ConversationList = TypeAdapter(list[ConversationSummary])
