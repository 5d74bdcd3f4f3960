from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rems_messaging.application.dto.conversation import ParticipantProfile
from rems_messaging.domain.entities.participant import Participant
from rems_messaging.infrastructure.db.mappers import participant as mapper
from rems_messaging.infrastructure.db.models.participant import ParticipantModel
from rems_messaging.infrastructure.db.models.user import UserModel


class ParticipantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, conversation_id: UUID, user_id: UUID) -> Participant | None:
        stmt = select(ParticipantModel).where(
            ParticipantModel.conversation_id == conversation_id,
            ParticipantModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_participants(self, conversation_id: UUID) -> list[Participant]:
        stmt = (
            select(ParticipantModel)
            .where(ParticipantModel.conversation_id == conversation_id)
            .order_by(ParticipantModel.position)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_memberships(self, user_id: UUID) -> list[Participant]:
        stmt = select(ParticipantModel).where(ParticipantModel.user_id == user_id)
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_profiles(
        self,
        conversation_ids: list[UUID],
    ) -> dict[UUID, list[ParticipantProfile]]:
        if not conversation_ids:
            return {}
        stmt = (
            select(ParticipantModel.conversation_id, UserModel)
            .join(UserModel, UserModel.id == ParticipantModel.user_id)
            .where(ParticipantModel.conversation_id.in_(conversation_ids))
            .order_by(ParticipantModel.conversation_id, ParticipantModel.position)
        )
        result = await self._session.execute(stmt)
        profiles: dict[UUID, list[ParticipantProfile]] = {}
        for conversation_id, user in result.all():
            profiles.setdefault(conversation_id, []).append(mapper.user_to_profile(user))
        return profiles


class ParticipantWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, participant: Participant) -> None:
        model = mapper.entity_to_model(participant)
        self._session.add(model)
        await self._session.flush()

    async def set_archived(
        self,
        conversation_id: UUID,
        user_ids: list[UUID],
        archived: bool,
    ) -> None:
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id.in_(user_ids),
            )
            .values(is_archived=archived)
        )
        await self._session.execute(stmt)

    async def touch_last_read(
        self,
        conversation_id: UUID,
        user_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
            )
            .values(last_read_at=ts)
        )
        await self._session.execute(stmt)
