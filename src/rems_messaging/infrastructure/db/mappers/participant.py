from __future__ import annotations

from rems_messaging.application.dto.conversation import ParticipantProfile
from rems_messaging.domain.entities.participant import Participant
from rems_messaging.infrastructure.db.models.participant import ParticipantModel
from rems_messaging.infrastructure.db.models.user import UserModel


def model_to_entity(model: ParticipantModel) -> Participant:
    return Participant(
        conversation_id=model.conversation_id,
        user_id=model.user_id,
        position=model.position,
        joined_at=model.joined_at,
        is_archived=model.is_archived,
        last_read_at=model.last_read_at,
    )


def entity_to_model(entity: Participant) -> ParticipantModel:
    return ParticipantModel(
        conversation_id=entity.conversation_id,
        user_id=entity.user_id,
        position=entity.position,
        joined_at=entity.joined_at,
        is_archived=entity.is_archived,
        last_read_at=entity.last_read_at,
    )


def user_to_profile(user: UserModel) -> ParticipantProfile:
    return ParticipantProfile(
        id=user.id,
        name=user.name,
        email=user.email,
        avatar_url=user.avatar_url,
    )
