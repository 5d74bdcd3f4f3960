from __future__ import annotations

import pytest

from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.exceptions import ForbiddenError
from rems_messaging.services import conversation_service, read_state_service
from tests.conftest import FakeUoW, make_message, make_user


@pytest.mark.asyncio
async def test_mark_read_flips_only_incoming(buyer, agent, buyer_principal):
    uow = FakeUoW()
    conv = uow.add_conversation(buyer, agent)
    uow.add_messages(
        make_message(conversation_id=conv.id, sender_id=agent.id),
        make_message(conversation_id=conv.id, sender_id=agent.id),
        make_message(conversation_id=conv.id, sender_id=buyer.id),
    )

    marked = await read_state_service.mark_conversation_read(conv.id, buyer_principal, uow)

    assert marked == 2
    for m in uow.messages._messages:
        assert m.is_read == (m.read_at is not None)
        assert m.is_read == (m.sender_id == agent.id)
    membership = await uow.participants.get(conv.id, buyer.id)
    assert membership.last_read_at is not None
    assert uow._committed is True


@pytest.mark.asyncio
async def test_mark_read_queues_event_with_participants(buyer, agent, buyer_principal):
    uow = FakeUoW()
    conv = uow.add_conversation(buyer, agent)
    uow.add_messages(make_message(conversation_id=conv.id, sender_id=agent.id))

    await read_state_service.mark_conversation_read(conv.id, buyer_principal, uow)

    [event] = uow.outbox.events("conversation.read")
    assert event["reader_id"] == str(buyer.id)
    assert event["participant_ids"] == [str(buyer.id), str(agent.id)]
    assert event["marked"] == 1


@pytest.mark.asyncio
async def test_mark_read_twice_is_noop(buyer, agent, buyer_principal):
    uow = FakeUoW()
    conv = uow.add_conversation(buyer, agent)
    uow.add_messages(make_message(conversation_id=conv.id, sender_id=agent.id))

    first = await read_state_service.mark_conversation_read(conv.id, buyer_principal, uow)
    read_at = uow.messages._messages[0].read_at
    second = await read_state_service.mark_conversation_read(conv.id, buyer_principal, uow)

    assert (first, second) == (1, 0)
    assert uow.messages._messages[0].read_at == read_at
    assert len(uow.outbox.events("conversation.read")) == 1


@pytest.mark.asyncio
async def test_mark_read_clears_unread_count(buyer, agent, buyer_principal, agent_principal):
    uow = FakeUoW()
    conv = uow.add_conversation(buyer, agent)
    uow.add_messages(
        make_message(conversation_id=conv.id, sender_id=agent.id),
        make_message(conversation_id=conv.id, sender_id=buyer.id),
    )

    await read_state_service.mark_conversation_read(conv.id, buyer_principal, uow)

    assert await conversation_service.unread_total(buyer_principal, uow) == 0
    # the agent's view is untouched
    assert await conversation_service.unread_total(agent_principal, uow) == 1


@pytest.mark.asyncio
async def test_mark_read_forbidden_for_stranger(buyer, agent):
    uow = FakeUoW()
    conv = uow.add_conversation(buyer, agent)
    uow.add_messages(make_message(conversation_id=conv.id, sender_id=agent.id))
    stranger = Principal(user_id=make_user("Eve Stranger").id)

    with pytest.raises(ForbiddenError):
        await read_state_service.mark_conversation_read(conv.id, stranger, uow)
    assert uow.messages._messages[0].is_read is False
