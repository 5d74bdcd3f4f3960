from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from rems_messaging.domain.entities.conversation import LastMessage


@dataclass(frozen=True, slots=True)
class ParticipantProfile:
    id: UUID
    name: str
    email: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class ConversationView:
    """A conversation as seen by one viewer."""

    id: UUID
    title: str | None
    property_id: UUID | None
    participants: list[ParticipantProfile]
    last_message: LastMessage | None
    unread_count: int
    is_archived: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class StartConversationDTO:
    recipient_id: UUID
    initial_message: str
    property_id: UUID | None = None
    title: str | None = None
