from __future__ import annotations

from rems_messaging.domain.entities.message import Message
from rems_messaging.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        content=model.content,
        client_msg_id=model.client_msg_id,
        sent_at=model.sent_at,
        is_read=model.is_read,
        read_at=model.read_at,
    )


def entity_to_values(entity: Message) -> dict:
    """Column values for a Core insert."""
    return {
        "id": entity.id,
        "conversation_id": entity.conversation_id,
        "sender_id": entity.sender_id,
        "content": entity.content,
        "client_msg_id": entity.client_msg_id,
        "sent_at": entity.sent_at,
        "is_read": entity.is_read,
        "read_at": entity.read_at,
    }
