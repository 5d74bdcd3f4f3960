from __future__ import annotations

from typing import Protocol
from uuid import UUID

from rems_messaging.domain.entities.conversation import Conversation, LastMessage


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def list_by_ids(self, conversation_ids: list[UUID]) -> list[Conversation]:
        """Return the conversations ordered by updated_at, newest first."""
        ...

    async def find_between(
        self, user_a: UUID, user_b: UUID, *, property_id: UUID | None = None,
    ) -> Conversation | None:
        """Find a conversation both users take part in, optionally about one property."""
        ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def record_last_message(
        self, conversation_id: UUID, last_message: LastMessage
    ) -> None:
        """Rewrite the denormalized last message and advance updated_at."""
        ...
