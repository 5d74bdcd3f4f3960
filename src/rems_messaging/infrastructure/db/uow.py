from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rems_messaging.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from rems_messaging.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from rems_messaging.infrastructure.db.repositories.outbox import OutboxWriterRepo
from rems_messaging.infrastructure.db.repositories.participant import (
    ParticipantReaderRepo,
    ParticipantWriterRepo,
)
from rems_messaging.infrastructure.db.repositories.user import UserReaderRepo


class SqlAlchemyUoW:
    """One AsyncSession per unit of work, opened on enter and closed on exit.

    Nothing is committed implicitly: services call ``commit()`` once their
    writes and outbox rows are in place, and leaving the block with an
    exception rolls back.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("Unit of work used outside 'async with'")
        return self._session

    async def __aenter__(self) -> Self:
        session = self._session = self._session_factory()
        self.users = UserReaderRepo(session)
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.participants = ParticipantReaderRepo(session)
        self.participants_w = ParticipantWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        session, self._session = self.session, None
        try:
            if exc_type is not None:
                await session.rollback()
        finally:
            await session.close()

    async def flush(self) -> None:
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
