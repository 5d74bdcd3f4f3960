from __future__ import annotations

import uuid
from datetime import datetime, timezone

from rems_messaging.application.dto.conversation import ConversationView, StartConversationDTO
from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.exceptions import NotFoundError, ValidationError
from rems_messaging.application.policies.permissions import assert_conversation_access
from rems_messaging.application.uow import UnitOfWork
from rems_messaging.domain.entities.conversation import Conversation
from rems_messaging.domain.entities.participant import Participant
from rems_messaging.domain.value_objects.enums import EventType
from rems_messaging.services import message_service


async def _build_views(
    conversations: list[Conversation],
    archived: dict[uuid.UUID, bool],
    viewer_id: uuid.UUID,
    uow: UnitOfWork,
) -> list[ConversationView]:
    ids = [c.id for c in conversations]
    unread = await uow.messages.count_unread(viewer_id, ids)
    profiles = await uow.participants.list_profiles(ids)
    return [
        ConversationView(
            id=c.id,
            title=c.title,
            property_id=c.property_id,
            participants=profiles.get(c.id, []),
            last_message=c.last_message,
            unread_count=unread.get(c.id, 0),
            is_archived=archived.get(c.id, False),
            created_at=c.created_at,
            updated_at=c.updated_at,
        )
        for c in conversations
    ]


async def list_user_conversations(
    principal: Principal,
    include_archived: bool,
    uow: UnitOfWork,
) -> list[ConversationView]:
    """Conversations visible to the viewer, most recently updated first."""
    memberships = await uow.participants.list_memberships(principal.user_id)
    archived = {
        m.conversation_id: m.is_archived
        for m in memberships
        if include_archived or not m.is_archived
    }
    conversations = await uow.conversations.list_by_ids(list(archived))
    return await _build_views(conversations, archived, principal.user_id, uow)


async def unread_total(principal: Principal, uow: UnitOfWork) -> int:
    memberships = await uow.participants.list_memberships(principal.user_id)
    active = [m.conversation_id for m in memberships if not m.is_archived]
    counts = await uow.messages.count_unread(principal.user_id, active)
    return sum(counts.values())


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationView:
    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation, membership = await assert_conversation_access(
        principal, conversation, uow.participants,
    )
    views = await _build_views(
        [conversation], {conversation.id: membership.is_archived}, principal.user_id, uow,
    )
    return views[0]


async def start_conversation(
    principal: Principal,
    data: StartConversationDTO,
    uow: UnitOfWork,
) -> tuple[ConversationView, bool]:
    """Open (or reopen) a conversation with another user and post the first message.

    Returns (view, created) where created=True if a new conversation was made.
    An existing conversation between the same two users (about the same property,
    when one is given) is reused and un-archived for both of them.
    """
    if data.recipient_id == principal.user_id:
        raise ValidationError("Cannot start a conversation with yourself")
    text = message_service.clean_content(data.initial_message)

    recipient = await uow.users.get_by_id(data.recipient_id)
    if recipient is None:
        raise NotFoundError("Recipient not found")

    members = [principal.user_id, recipient.id]
    existing = await uow.conversations.find_between(
        principal.user_id, recipient.id, property_id=data.property_id,
    )
    if existing is not None:
        conversation = existing
        await uow.participants_w.set_archived(conversation.id, members, False)
        created = False
    else:
        now = datetime.now(timezone.utc)
        conversation = await uow.conversations_w.create(
            Conversation(
                id=uuid.uuid4(),
                title=data.title,
                property_id=data.property_id,
                last_message=None,
                created_at=now,
                updated_at=now,
            )
        )
        for position, user_id in enumerate(members):
            await uow.participants_w.add(
                Participant(
                    conversation_id=conversation.id,
                    user_id=user_id,
                    position=position,
                    joined_at=now,
                )
            )
        await uow.outbox.add(
            EventType.CONVERSATION_CREATED,
            {
                "conversation_id": str(conversation.id),
                "participant_ids": [str(u) for u in members],
                "property_id": str(data.property_id) if data.property_id else None,
            },
        )
        created = True

    await message_service.append_message(conversation.id, principal.user_id, text, None, uow)
    await uow.commit()
    return await get_conversation(conversation.id, principal, uow), created


async def archive_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    """Hide a conversation from the viewer's list. Nothing is deleted."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    await uow.participants_w.set_archived(conversation_id, [principal.user_id], True)
    await uow.commit()
