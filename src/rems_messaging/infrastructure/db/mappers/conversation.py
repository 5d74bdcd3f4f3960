from __future__ import annotations

from rems_messaging.domain.entities.conversation import Conversation, LastMessage
from rems_messaging.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    last_message = None
    if model.last_message_sent_at is not None and model.last_message_sender_id is not None:
        last_message = LastMessage(
            content=model.last_message_content or "",
            sent_at=model.last_message_sent_at,
            sender_id=model.last_message_sender_id,
        )
    return Conversation(
        id=model.id,
        title=model.title,
        property_id=model.property_id,
        last_message=last_message,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    last = entity.last_message
    return ConversationModel(
        id=entity.id,
        title=entity.title,
        property_id=entity.property_id,
        last_message_content=last.content if last else None,
        last_message_sent_at=last.sent_at if last else None,
        last_message_sender_id=last.sender_id if last else None,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )
