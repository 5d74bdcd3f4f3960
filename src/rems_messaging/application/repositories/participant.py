from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from rems_messaging.application.dto.conversation import ParticipantProfile
from rems_messaging.domain.entities.participant import Participant


class ParticipantReader(Protocol):
    async def get(self, conversation_id: UUID, user_id: UUID) -> Participant | None: ...

    async def list_participants(
        self, conversation_id: UUID
    ) -> list[Participant]: ...

    async def list_memberships(self, user_id: UUID) -> list[Participant]: ...

    async def list_profiles(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, list[ParticipantProfile]]:
        """Participants joined with their user records, in position order."""
        ...


class ParticipantWriter(Protocol):
    async def add(self, participant: Participant) -> None: ...

    async def set_archived(
        self, conversation_id: UUID, user_ids: list[UUID], archived: bool
    ) -> None: ...

    async def touch_last_read(
        self, conversation_id: UUID, user_id: UUID, ts: datetime
    ) -> None: ...
