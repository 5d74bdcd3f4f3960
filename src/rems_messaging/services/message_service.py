from __future__ import annotations

import uuid
from datetime import datetime, timezone

from rems_messaging.application.cursor import encode_cursor
from rems_messaging.application.dto.message import MessagePage
from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.exceptions import ConflictError, ValidationError
from rems_messaging.application.policies.permissions import assert_conversation_access
from rems_messaging.application.uow import UnitOfWork
from rems_messaging.config import settings
from rems_messaging.domain.entities.conversation import LastMessage
from rems_messaging.domain.entities.message import Message
from rems_messaging.domain.value_objects.enums import EventType
from rems_messaging.services import read_state_service


def clean_content(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message content is required")
    if len(text) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message content exceeds {settings.MESSAGE_MAX_LENGTH} characters"
        )
    return text


async def append_message(
    conversation_id: uuid.UUID,
    sender_id: uuid.UUID,
    content: str,
    client_msg_id: uuid.UUID | None,
    uow: UnitOfWork,
) -> tuple[Message, bool]:
    """Insert a message and its side effects without committing.

    `content` must already be cleaned. On first insert the conversation's
    last message is rewritten and a message.created event is queued.
    """
    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        client_msg_id=client_msg_id or uuid.uuid4(),
        sent_at=datetime.now(timezone.utc),
    )

    msg, created = await uow.messages_w.create_if_not_exists(msg)
    if not created:
        return msg, False

    await uow.conversations_w.record_last_message(
        conversation_id,
        LastMessage(content=msg.content, sent_at=msg.sent_at, sender_id=msg.sender_id),
    )
    participants = await uow.participants.list_participants(conversation_id)
    # recipients who archived the conversation do not count it as unread
    audience = [p for p in participants if p.user_id == sender_id or not p.is_archived]
    await uow.outbox.add(
        EventType.MESSAGE_CREATED,
        {
            "conversation_id": str(msg.conversation_id),
            "participant_ids": [str(p.user_id) for p in audience],
            "message": {
                "id": str(msg.id),
                "sender_id": str(msg.sender_id),
                "content": msg.content,
                "client_msg_id": str(msg.client_msg_id),
                "sent_at": msg.sent_at.isoformat(),
            },
        },
    )
    return msg, True


async def send_message(
    conversation_id: uuid.UUID,
    principal: Principal,
    content: str | None,
    client_msg_id: uuid.UUID | None,
    uow: UnitOfWork,
) -> tuple[Message, bool]:
    """Create a message idempotently.

    Returns (message, created). A retry with the same client_msg_id gets the
    stored message back with created=False; reusing the id for different
    content is a conflict.
    """
    text = clean_content(content)
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)

    msg, created = await append_message(
        conversation_id, principal.user_id, text, client_msg_id, uow,
    )
    if not created and msg.content != text:
        raise ConflictError("client_msg_id was already used for a different message")
    if created:
        await uow.commit()
    return msg, created


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    cursor: str | None,
    limit: int,
    uow: UnitOfWork,
) -> MessagePage:
    """Return one page of history, oldest first, and mark the conversation read."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)

    newest_first = await uow.messages.list_messages(
        conversation_id, cursor=cursor, limit=limit + 1,
    )
    next_cursor = None
    if len(newest_first) > limit:
        newest_first = newest_first[:limit]
        oldest = newest_first[-1]
        next_cursor = encode_cursor(oldest.sent_at, oldest.id)

    await read_state_service.mark_read_unchecked(conversation_id, principal, uow)
    await uow.commit()
    return MessagePage(items=list(reversed(newest_first)), next_cursor=next_cursor)
