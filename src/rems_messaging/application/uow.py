from __future__ import annotations

from typing import Protocol

from rems_messaging.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from rems_messaging.application.repositories.message import MessageReader, MessageWriter
from rems_messaging.application.repositories.outbox import OutboxWriter
from rems_messaging.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from rems_messaging.application.repositories.user import UserReader


class UnitOfWork(Protocol):
    """Repositories sharing one transaction.

    Writers (``*_w``) and the outbox only touch the open transaction;
    nothing is visible to other units of work or to the fanout worker until
    ``commit()``.
    """

    users: UserReader
    conversations: ConversationReader
    conversations_w: ConversationWriter
    participants: ParticipantReader
    participants_w: ParticipantWriter
    messages: MessageReader
    messages_w: MessageWriter
    outbox: OutboxWriter

    async def flush(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...
