"""Real-time push for the unread indicator over the messaging WebSocket."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, Callable, Protocol
from urllib.parse import urlencode

from pydantic import ValidationError as PydanticValidationError
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus

from rems_messaging.client.config import ClientSettings
from rems_messaging.domain.value_objects.enums import EventType, WsEventType
from rems_messaging.infrastructure.ws.protocol import WsInbound, WsOutbound

logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4001

MessageCallback = Callable[[str, str], None]
Connector = Callable[..., AsyncContextManager[Any]]


class RealtimeTransport(Protocol):
    def set_token(self, token: str) -> None: ...

    async def connect(self, viewer_id: Any) -> Any: ...

    def on_message(self, handle: Any, callback: MessageCallback) -> None: ...

    async def disconnect(self, handle: Any) -> None: ...


@dataclass(eq=False)
class ConnectionHandle:
    viewer_id: Any
    token: str
    callbacks: list[MessageCallback] = field(default_factory=list)
    joined: set[str] = field(default_factory=set)
    ws: Any = None
    task: asyncio.Task[None] | None = None
    closed: bool = False

    @property
    def connected(self) -> bool:
        return self.ws is not None


class WebSocketTransport:
    """Keeps one socket per handle open and reports ``message.created`` frames.

    Reconnects after a fixed delay, up to ``reconnect_attempts`` times in a
    row. A 4001 close (or a 401/403 handshake) means the token was rejected
    and ends the handle for good.
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 2.0,
        heartbeat_seconds: float = 25.0,
        connector: Connector = ws_connect,
    ) -> None:
        self._url = url
        self._token = token
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._heartbeat_seconds = heartbeat_seconds
        self._connector = connector

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> WebSocketTransport:
        if not settings.TOKEN:
            raise ValueError("REMS_TOKEN is required for the realtime transport")
        return cls(
            settings.WS_URL,
            settings.TOKEN,
            reconnect_attempts=settings.RECONNECT_ATTEMPTS,
            reconnect_delay=settings.RECONNECT_DELAY,
            heartbeat_seconds=settings.HEARTBEAT_SECONDS,
        )

    def set_token(self, token: str) -> None:
        """Credential for connections opened from now on. Open handles keep theirs."""
        self._token = token

    def uri_for(self, token: str) -> str:
        sep = "&" if "?" in self._url else "?"
        return f"{self._url}{sep}{urlencode({'token': token})}"

    async def connect(self, viewer_id: Any) -> ConnectionHandle:
        handle = ConnectionHandle(viewer_id=viewer_id, token=self._token)
        handle.task = asyncio.create_task(self._run(handle), name=f"ws-transport-{viewer_id}")
        return handle

    def on_message(self, handle: ConnectionHandle, callback: MessageCallback) -> None:
        handle.callbacks.append(callback)

    async def disconnect(self, handle: ConnectionHandle) -> None:
        handle.closed = True
        task, handle.task = handle.task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def join(self, handle: ConnectionHandle, conversation_id: Any) -> None:
        """Subscribe to a conversation's typing relays. Survives reconnects."""
        key = str(conversation_id)
        handle.joined.add(key)
        await self._send(handle, WsEventType.SUBSCRIBE, {"conversation_id": key})

    async def leave(self, handle: ConnectionHandle, conversation_id: Any) -> None:
        key = str(conversation_id)
        handle.joined.discard(key)
        await self._send(handle, WsEventType.UNSUBSCRIBE, {"conversation_id": key})

    async def send_typing(self, handle: ConnectionHandle, conversation_id: Any, active: bool) -> None:
        event = WsEventType.TYPING_START if active else WsEventType.TYPING_STOP
        await self._send(handle, event, {"conversation_id": str(conversation_id)})

    async def _send(self, handle: ConnectionHandle, event_type: str, data: dict[str, Any]) -> None:
        ws = handle.ws
        if ws is None:
            return
        try:
            await ws.send(WsInbound.encode(event_type, data))
        except ConnectionClosed:
            logger.debug("Dropped %s, socket is closed", event_type)

    async def _run(self, handle: ConnectionHandle) -> None:
        failures = 0
        while not handle.closed:
            try:
                async with self._connector(self.uri_for(handle.token)) as ws:
                    handle.ws = ws
                    failures = 0
                    logger.info("Realtime transport connected for %s", handle.viewer_id)
                    for key in sorted(handle.joined):
                        await ws.send(WsInbound.encode(WsEventType.SUBSCRIBE, {"conversation_id": key}))
                    await self._pump(handle, ws)
            except ConnectionClosed as exc:
                if exc.rcvd is not None and exc.rcvd.code == AUTH_FAILED_CLOSE_CODE:
                    logger.warning("Realtime transport rejected the token, not reconnecting")
                    return
                logger.info("Realtime connection closed: %s", exc)
            except InvalidStatus as exc:
                if exc.response.status_code in (401, 403):
                    logger.warning("Realtime handshake refused (%d)", exc.response.status_code)
                    return
                logger.warning("Realtime handshake failed: %s", exc)
            except (OSError, InvalidHandshake, TimeoutError) as exc:
                logger.warning("Realtime connect failed: %s", exc)
            finally:
                handle.ws = None

            if handle.closed:
                return
            failures += 1
            if failures > self._reconnect_attempts:
                logger.error(
                    "Realtime transport gave up after %d reconnect attempts", self._reconnect_attempts,
                )
                return
            await asyncio.sleep(self._reconnect_delay)

    async def _pump(self, handle: ConnectionHandle, ws: Any) -> None:
        heartbeat = asyncio.create_task(self._heartbeat(ws), name="ws-transport-heartbeat")
        try:
            async for raw in ws:
                await self._on_frame(handle, ws, raw)
        finally:
            heartbeat.cancel()

    async def _heartbeat(self, ws: Any) -> None:
        ping = WsInbound.encode(WsEventType.PING)
        while True:
            await asyncio.sleep(self._heartbeat_seconds)
            try:
                await ws.send(ping)
            except ConnectionClosed:
                return

    async def _on_frame(self, handle: ConnectionHandle, ws: Any, raw: str | bytes) -> None:
        try:
            frame = WsOutbound.model_validate_json(raw)
        except PydanticValidationError:
            logger.debug("Ignoring malformed frame: %r", raw)
            return

        if frame.type == WsEventType.PING:
            await ws.send(WsInbound.encode(WsEventType.PONG))
            return
        if frame.type != EventType.MESSAGE_CREATED:
            return

        conversation_id = frame.conversation_id()
        sender_id = frame.sender_id()
        if not conversation_id or not sender_id:
            logger.debug("message.created without ids: %r", frame.data)
            return
        for callback in list(handle.callbacks):
            try:
                callback(conversation_id, sender_id)
            except Exception:
                logger.exception("Realtime callback failed")
