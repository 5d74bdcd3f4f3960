"""Shared test fixtures."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from rems_messaging.application.cursor import decode_cursor
from rems_messaging.application.dto.conversation import ParticipantProfile
from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.repositories.outbox import OutboxRecord
from rems_messaging.domain.entities.conversation import Conversation, LastMessage
from rems_messaging.domain.entities.message import Message
from rems_messaging.domain.entities.participant import Participant
from rems_messaging.domain.entities.user import User

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_user(name: str = "Dana Buyer", *, user_id: UUID | None = None) -> User:
    return User(
        id=user_id or uuid.uuid4(),
        name=name,
        email=f"{name.split()[0].lower()}@example.com",
    )


@pytest.fixture
def buyer() -> User:
    return make_user("Dana Buyer")


@pytest.fixture
def agent() -> User:
    return make_user("Sam Agent")


@pytest.fixture
def buyer_principal(buyer: User) -> Principal:
    return Principal(user_id=buyer.id)


@pytest.fixture
def agent_principal(agent: User) -> Principal:
    return Principal(user_id=agent.id)


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    title: str | None = "12 Harbour View Rd",
    property_id: UUID | None = None,
    updated_at: datetime = T0,
) -> Conversation:
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        title=title,
        property_id=property_id,
        last_message=None,
        created_at=T0,
        updated_at=updated_at,
    )


def make_message(
    *,
    conversation_id: UUID,
    sender_id: UUID,
    content: str = "hello",
    sent_at: datetime | None = None,
    is_read: bool = False,
) -> Message:
    sent_at = sent_at or T0
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        client_msg_id=uuid.uuid4(),
        sent_at=sent_at,
        is_read=is_read,
        read_at=sent_at + timedelta(minutes=1) if is_read else None,
    )


class FakeWebSocket:
    """Stands in for a server-side starlette WebSocket."""

    def __init__(self, *, broken: bool = False) -> None:
        self.accepted = False
        self.broken = broken
        self.sent: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, raw: str) -> None:
        if self.broken:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(raw))


@dataclass
class FakeUserReader:
    _users: dict[UUID, User] = field(default_factory=dict)

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)
    _members: list[Participant] = field(default_factory=list)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def list_by_ids(self, conversation_ids: list[UUID]) -> list[Conversation]:
        found = [self._store[cid] for cid in conversation_ids if cid in self._store]
        return sorted(found, key=lambda c: c.updated_at, reverse=True)

    async def find_between(
        self, user_a: UUID, user_b: UUID, *, property_id: UUID | None = None,
    ) -> Conversation | None:
        for conv in self._store.values():
            members = {p.user_id for p in self._members if p.conversation_id == conv.id}
            if {user_a, user_b} <= members and property_id in (None, conv.property_id):
                return conv
        return None


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader

    async def create(self, conversation: Conversation) -> Conversation:
        self._reader._store[conversation.id] = conversation
        return conversation

    async def record_last_message(self, conversation_id: UUID, last_message: LastMessage) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = replace(
            conv, last_message=last_message, updated_at=last_message.sent_at,
        )


@dataclass
class FakeParticipantReader:
    _participants: list[Participant] = field(default_factory=list)
    _users: dict[UUID, User] = field(default_factory=dict)

    async def get(self, conversation_id: UUID, user_id: UUID) -> Participant | None:
        for p in self._participants:
            if p.conversation_id == conversation_id and p.user_id == user_id:
                return p
        return None

    async def list_participants(self, conversation_id: UUID) -> list[Participant]:
        rows = [p for p in self._participants if p.conversation_id == conversation_id]
        return sorted(rows, key=lambda p: p.position)

    async def list_memberships(self, user_id: UUID) -> list[Participant]:
        return [p for p in self._participants if p.user_id == user_id]

    async def list_profiles(self, conversation_ids: list[UUID]) -> dict[UUID, list[ParticipantProfile]]:
        result: dict[UUID, list[ParticipantProfile]] = {}
        for cid in conversation_ids:
            for p in await self.list_participants(cid):
                user = self._users[p.user_id]
                result.setdefault(cid, []).append(
                    ParticipantProfile(
                        id=user.id, name=user.name, email=user.email, avatar_url=user.avatar_url,
                    )
                )
        return result


@dataclass
class FakeParticipantWriter:
    _reader: FakeParticipantReader

    async def add(self, participant: Participant) -> None:
        self._reader._participants.append(participant)

    async def set_archived(self, conversation_id: UUID, user_ids: list[UUID], archived: bool) -> None:
        self._update(
            lambda p: p.conversation_id == conversation_id and p.user_id in user_ids,
            is_archived=archived,
        )

    async def touch_last_read(self, conversation_id: UUID, user_id: UUID, ts: datetime) -> None:
        self._update(
            lambda p: p.conversation_id == conversation_id and p.user_id == user_id,
            last_read_at=ts,
        )

    def _update(self, match: Any, **changes: Any) -> None:
        rows = self._reader._participants
        for i, p in enumerate(rows):
            if match(p):
                rows[i] = replace(p, **changes)


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_messages(
        self, conversation_id: UUID, *, cursor: str | None = None, limit: int = 50,
    ) -> list[Message]:
        rows = [m for m in self._messages if m.conversation_id == conversation_id]
        rows.sort(key=lambda m: (m.sent_at, str(m.id)), reverse=True)
        if cursor:
            ts, uid = decode_cursor(cursor)
            rows = [m for m in rows if (m.sent_at, str(m.id)) < (ts, str(uid))]
        return rows[:limit]

    async def count_unread(self, viewer_id: UUID, conversation_ids: list[UUID]) -> dict[UUID, int]:
        counts: dict[UUID, int] = {}
        for m in self._messages:
            if m.conversation_id in conversation_ids and m.is_unread_for(viewer_id):
                counts[m.conversation_id] = counts.get(m.conversation_id, 0) + 1
        return counts


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        existing = await self.get_by_client_msg_id(
            message.conversation_id, message.sender_id, message.client_msg_id,
        )
        if existing is not None:
            return existing, False
        self._reader._messages.append(message)
        return message, True

    async def get_by_client_msg_id(
        self, conversation_id: UUID, sender_id: UUID, client_msg_id: UUID,
    ) -> Message | None:
        for m in self._reader._messages:
            if (
                m.conversation_id == conversation_id
                and m.sender_id == sender_id
                and m.client_msg_id == client_msg_id
            ):
                return m
        return None

    async def mark_read(self, conversation_id: UUID, reader_id: UUID, at: datetime) -> int:
        rows = self._reader._messages
        marked = 0
        for i, m in enumerate(rows):
            if m.conversation_id == conversation_id and m.is_unread_for(reader_id):
                rows[i] = m.mark_read(at)
                marked += 1
        return marked


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    _pending: list[OutboxRecord] = field(default_factory=list)
    _sent: list[int] = field(default_factory=list)
    _failed: list[tuple[int, datetime]] = field(default_factory=list)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({"event_type": str(event_type), "payload": payload})

    async def fetch_pending(self, batch_size: int, max_attempts: int) -> list[OutboxRecord]:
        due = [r for r in self._pending if r.attempts < max_attempts][:batch_size]
        self._pending = [r for r in self._pending if r not in due]
        return due

    async def mark_sent(self, ids: list[int]) -> None:
        self._sent.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        self._failed.append((record_id, next_retry_at))

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [r["payload"] for r in self._records if r["event_type"] == event_type]


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    participants: FakeParticipantReader = field(default_factory=FakeParticipantReader)
    participants_w: FakeParticipantWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    users: FakeUserReader = field(default_factory=FakeUserReader)
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False
    _commits: int = 0

    def __post_init__(self) -> None:
        self.conversations._members = self.participants._participants
        self.participants._users = self.users._users
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.participants_w is None:
            self.participants_w = FakeParticipantWriter(self.participants)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    def add_users(self, *users: User) -> None:
        for user in users:
            self.users._users[user.id] = user

    def add_conversation(self, *members: User, **kwargs: Any) -> Conversation:
        """Store a conversation with the given users as participants, in order."""
        self.add_users(*members)
        conv = make_conversation(**kwargs)
        self.conversations._store[conv.id] = conv
        for position, user in enumerate(members):
            self.participants._participants.append(
                Participant(
                    conversation_id=conv.id,
                    user_id=user.id,
                    position=position,
                    joined_at=conv.created_at,
                )
            )
        return conv

    def add_messages(self, *messages: Message) -> None:
        self.messages._messages.extend(messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self._commits += 1

    async def rollback(self) -> None:
        pass
