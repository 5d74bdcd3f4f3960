from __future__ import annotations

from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.exceptions import ForbiddenError, NotFoundError
from rems_messaging.application.repositories.participant import ParticipantReader
from rems_messaging.domain.entities.conversation import Conversation
from rems_messaging.domain.entities.participant import Participant


async def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
    participants: ParticipantReader,
) -> tuple[Conversation, Participant]:
    """Raise if conversation doesn't exist or principal has no access.

    Returns the conversation together with the caller's participant row.
    """
    if conversation is None:
        raise NotFoundError("Conversation not found")

    membership = await participants.get(conversation.id, principal.user_id)
    if membership is None:
        raise ForbiddenError("Not a participant of this conversation")

    return conversation, membership
