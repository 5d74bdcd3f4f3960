from __future__ import annotations

import uuid
from datetime import datetime, timezone

from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.policies.permissions import assert_conversation_access
from rems_messaging.application.uow import UnitOfWork
from rems_messaging.domain.value_objects.enums import EventType


async def mark_read_unchecked(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> int:
    """Flip the viewer's incoming unread messages to read. Caller checks access and commits."""
    now = datetime.now(timezone.utc)
    marked = await uow.messages_w.mark_read(conversation_id, principal.user_id, now)
    await uow.participants_w.touch_last_read(conversation_id, principal.user_id, now)
    if marked:
        participants = await uow.participants.list_participants(conversation_id)
        await uow.outbox.add(
            EventType.CONVERSATION_READ,
            {
                "conversation_id": str(conversation_id),
                "reader_id": str(principal.user_id),
                "participant_ids": [str(p.user_id) for p in participants],
                "read_at": now.isoformat(),
                "marked": marked,
            },
        )
    return marked


async def mark_conversation_read(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> int:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    marked = await mark_read_unchecked(conversation_id, principal, uow)
    await uow.commit()
    return marked
