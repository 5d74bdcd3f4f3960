from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from rems_messaging.domain.entities.conversation import Conversation, LastMessage
from rems_messaging.infrastructure.db.mappers import conversation as mapper
from rems_messaging.infrastructure.db.models.conversation import ConversationModel
from rems_messaging.infrastructure.db.models.participant import ParticipantModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def list_by_ids(self, conversation_ids: list[UUID]) -> list[Conversation]:
        if not conversation_ids:
            return []
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.id.in_(conversation_ids))
            .order_by(ConversationModel.updated_at.desc(), ConversationModel.id)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def find_between(
        self,
        user_a: UUID,
        user_b: UUID,
        *,
        property_id: UUID | None = None,
    ) -> Conversation | None:
        pa = aliased(ParticipantModel)
        pb = aliased(ParticipantModel)
        stmt = (
            select(ConversationModel)
            .join(pa, pa.conversation_id == ConversationModel.id)
            .join(pb, pb.conversation_id == ConversationModel.id)
            .where(pa.user_id == user_a, pb.user_id == user_b)
        )
        if property_id is not None:
            stmt = stmt.where(ConversationModel.property_id == property_id)
        stmt = stmt.order_by(ConversationModel.updated_at.desc()).limit(1)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def record_last_message(
        self,
        conversation_id: UUID,
        last_message: LastMessage,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(
                last_message_content=last_message.content,
                last_message_sent_at=last_message.sent_at,
                last_message_sender_id=last_message.sender_id,
                updated_at=last_message.sent_at,
            )
        )
        await self._session.execute(stmt)
