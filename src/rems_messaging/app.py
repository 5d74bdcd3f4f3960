from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rems_messaging.api.middleware.correlation_id import CorrelationIdMiddleware
from rems_messaging.api.middleware.timing import RequestTimingMiddleware
from rems_messaging.api.v1.routers import conversations, health, messages, ws
from rems_messaging.application.exceptions import AppError
from rems_messaging.config import settings
from rems_messaging.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber

logger = logging.getLogger(__name__)


async def _on_pubsub_event(event_type: str, data: dict[str, Any]) -> None:
    """Deliver a fanout event to this instance's WS connections.

    Events naming participants go to each participant's connections, so a
    closed conversation still bumps the recipient's badge. Anything else goes
    to the conversation's subscribers.
    """
    manager = ws.get_manager()
    participant_ids = data.get("participant_ids")
    if participant_ids:
        await manager.send_to_principals(participant_ids, event_type, data)
        return

    try:
        conversation_id = UUID(str(data.get("conversation_id")))
    except ValueError:
        logger.debug("Fanout event %s has no conversation id", event_type)
        return
    await manager.broadcast_to_conversation(conversation_id, event_type, data)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        _on_pubsub_event,
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber
    logger.info("Messaging API started")

    try:
        yield
    finally:
        await subscriber.stop()
        await app.state.redis.aclose()
        logger.info("Messaging API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="REMS Messaging Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Unhandled application error: %s", exc.detail)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
