"""Seed development data: tables, a buyer and an agent, and one conversation about a listing.

Run with ``python -m rems_messaging.scripts.seed_dev_data``. Users have stable ids,
so a second run reuses them and the conversation instead of duplicating.
"""
from __future__ import annotations

import asyncio
import logging
import uuid

import jwt

from rems_messaging.api.deps import open_uow
from rems_messaging.application.dto.conversation import StartConversationDTO
from rems_messaging.application.dto.principal import Principal
from rems_messaging.config import settings
from rems_messaging.domain.entities.user import User
from rems_messaging.infrastructure.db.base import Base
from rems_messaging.infrastructure.db.mappers.user import entity_to_model
from rems_messaging.infrastructure.db.models.user import UserModel
from rems_messaging.infrastructure.db.session import AsyncSessionLocal, engine
from rems_messaging.services import conversation_service, message_service

logger = logging.getLogger(__name__)

_SEED_NS = uuid.UUID("5b0e6c1e-7d4a-4f53-9a55-2f3c1d0a9e11")

BUYER = User(
    id=uuid.uuid5(_SEED_NS, "buyer@example.com"),
    name="Dana Buyer",
    email="buyer@example.com",
)
AGENT = User(
    id=uuid.uuid5(_SEED_NS, "agent@example.com"),
    name="Sam Agent",
    email="agent@example.com",
    avatar_url="https://example.com/avatars/sam.png",
)
PROPERTY_ID = uuid.uuid5(_SEED_NS, "12 Harbour View Rd")


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_users(*users: User) -> None:
    async with AsyncSessionLocal() as session:
        for user in users:
            if await session.get(UserModel, user.id) is None:
                session.add(entity_to_model(user))
        await session.commit()


async def seed() -> None:
    await create_tables()
    await ensure_users(BUYER, AGENT)

    async with open_uow() as uow:
        buyer = Principal(user_id=BUYER.id)
        agent = Principal(user_id=AGENT.id)
        conv, created = await conversation_service.start_conversation(
            buyer,
            StartConversationDTO(
                recipient_id=AGENT.id,
                initial_message="Hi, is 12 Harbour View Rd still available?",
                property_id=PROPERTY_ID,
                title="12 Harbour View Rd",
            ),
            uow,
        )
        if not created:
            logger.info("Conversation %s already seeded, added one more buyer message", conv.id)
            return

        replies = [
            (agent, "It is! Would you like to book a viewing?"),
            (buyer, "Yes please, Saturday morning if possible."),
            (agent, "Saturday 10am works. See you there."),
        ]
        for sender, text in replies:
            await message_service.send_message(conv.id, sender, text, None, uow)

    logger.info("Seeded conversation %s with %d messages", conv.id, len(replies) + 1)


def log_dev_tokens(*users: User) -> None:
    for user in users:
        token = jwt.encode({"sub": str(user.id)}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        logger.info("Dev token for %s: %s", user.email, token)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
    log_dev_tokens(BUYER, AGENT)


if __name__ == "__main__":
    main()
