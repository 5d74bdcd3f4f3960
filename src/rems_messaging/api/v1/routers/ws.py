from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from rems_messaging.api.deps import get_verifier, open_uow
from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.exceptions import (
    AppError,
    ForbiddenError,
    UnauthorizedError,
    ValidationError,
)
from rems_messaging.application.policies.permissions import assert_conversation_access
from rems_messaging.config import settings
from rems_messaging.domain.value_objects.enums import WsEventType
from rems_messaging.infrastructure.ws.manager import ConnectionManager
from rems_messaging.infrastructure.ws.protocol import WsInbound, WsOutbound
from rems_messaging.services import message_service, read_state_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED_CLOSE_CODE = 4001

WsHandler = Callable[[WebSocket, Principal, dict[str, Any]], Awaitable[None]]

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return await get_verifier().verify(token)
    except UnauthorizedError as exc:
        logger.debug("WS auth failed: %s", exc.detail)
        return None


async def _send(ws: WebSocket, event_type: str, data: dict[str, Any] | None = None) -> None:
    await ws.send_text(WsOutbound.encode(event_type, data))


async def _send_error(ws: WebSocket, code: str, detail: str = "") -> None:
    await _send(ws, WsEventType.ERROR, {"code": code, "detail": detail})


@router.websocket("/ws/messages")
async def ws_messages(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        # accept first so the client sees the close code instead of a 403 handshake
        await websocket.accept()
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{pkey}",
    )
    try:
        await _read_loop(websocket, principal)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, pkey)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        try:
            await _send(ws, WsEventType.PING)
        except Exception:
            logger.debug("WS heartbeat stopped", exc_info=True)
            return


async def _read_loop(ws: WebSocket, principal: Principal) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            frame = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await _send_error(ws, "invalid_payload")
            continue

        handler = _HANDLERS.get(frame.type)
        if handler is None:
            await _send_error(ws, "unknown_type", frame.type)
            continue
        try:
            await handler(ws, principal, frame.data)
        except AppError as exc:
            await _send_error(ws, type(exc).__name__, exc.detail)


def _conversation_id(data: dict[str, Any]) -> UUID:
    try:
        return UUID(str(data["conversation_id"]))
    except (KeyError, ValueError) as exc:
        raise ValidationError("conversation_id is required") from exc


async def _handle_ping(ws: WebSocket, _principal: Principal, _data: dict[str, Any]) -> None:
    await _send(ws, WsEventType.PONG)


async def _handle_pong(_ws: WebSocket, _principal: Principal, _data: dict[str, Any]) -> None:
    return None


async def _handle_subscribe(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    conversation_id = _conversation_id(data)
    async with open_uow() as uow:
        conversation = await uow.conversations.get_by_id(conversation_id)
        await assert_conversation_access(principal, conversation, uow.participants)
    manager.subscribe(principal.principal_key, conversation_id)


async def _handle_unsubscribe(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    manager.unsubscribe(principal.principal_key, _conversation_id(data))


async def _handle_send(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    conversation_id = _conversation_id(data)
    client_msg_id: UUID | None = None
    if data.get("client_msg_id"):
        try:
            client_msg_id = UUID(str(data["client_msg_id"]))
        except ValueError:
            await _send_error(ws, "ValidationError", "client_msg_id must be a UUID")
            return

    async with open_uow() as uow:
        msg, created = await message_service.send_message(
            conversation_id, principal, data.get("content"), client_msg_id, uow,
        )
    # message.created itself arrives through the fanout
    await _send(
        ws,
        WsEventType.MESSAGE_SENT,
        {
            "conversation_id": str(msg.conversation_id),
            "message_id": str(msg.id),
            "client_msg_id": str(msg.client_msg_id),
            "sent_at": msg.sent_at.isoformat(),
            "created": created,
        },
    )


async def _handle_mark_read(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    conversation_id = _conversation_id(data)
    async with open_uow() as uow:
        await read_state_service.mark_conversation_read(conversation_id, principal, uow)


def _typing_relay(event_type: WsEventType) -> WsHandler:
    async def relay(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        conversation_id = _conversation_id(data)
        if principal.principal_key not in manager.subscribers(conversation_id):
            raise ForbiddenError("Subscribe to the conversation first")
        await manager.broadcast_to_conversation(
            conversation_id,
            event_type,
            {"conversation_id": str(conversation_id), "user_id": principal.principal_key},
            exclude=principal.principal_key,
        )

    return relay


_HANDLERS: dict[str, WsHandler] = {
    WsEventType.PING: _handle_ping,
    WsEventType.PONG: _handle_pong,
    WsEventType.SUBSCRIBE: _handle_subscribe,
    WsEventType.UNSUBSCRIBE: _handle_unsubscribe,
    WsEventType.MESSAGE_SEND: _handle_send,
    WsEventType.MARK_READ: _handle_mark_read,
    WsEventType.TYPING_START: _typing_relay(WsEventType.TYPING_START),
    WsEventType.TYPING_STOP: _typing_relay(WsEventType.TYPING_STOP),
}
