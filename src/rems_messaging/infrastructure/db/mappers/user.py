from __future__ import annotations

from rems_messaging.domain.entities.user import User
from rems_messaging.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        name=model.name,
        email=model.email,
        avatar_url=model.avatar_url,
    )


def entity_to_model(entity: User) -> UserModel:
    return UserModel(
        id=entity.id,
        name=entity.name,
        email=entity.email,
        avatar_url=entity.avatar_url,
    )
