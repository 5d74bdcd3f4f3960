"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from fastapi import WebSocket

from rems_messaging.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks WebSocket connections per user and conversation subscriptions."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._subscriptions: dict[UUID, set[str]] = {}

    async def connect(self, ws: WebSocket, principal_key: str) -> None:
        await ws.accept()
        self._connections.setdefault(principal_key, set()).add(ws)
        logger.debug("WS connected: %s (total=%d)", principal_key, len(self._connections))

    def disconnect(self, ws: WebSocket, principal_key: str) -> None:
        conns = self._connections.get(principal_key)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[principal_key]
        if principal_key not in self._connections:
            for subs in self._subscriptions.values():
                subs.discard(principal_key)
        logger.debug("WS disconnected: %s", principal_key)

    def subscribe(self, principal_key: str, conversation_id: UUID) -> None:
        self._subscriptions.setdefault(conversation_id, set()).add(principal_key)

    def unsubscribe(self, principal_key: str, conversation_id: UUID) -> None:
        subs = self._subscriptions.get(conversation_id)
        if subs:
            subs.discard(principal_key)
            if not subs:
                del self._subscriptions[conversation_id]

    def subscribers(self, conversation_id: UUID) -> set[str]:
        return set(self._subscriptions.get(conversation_id, ()))

    async def broadcast_to_conversation(
        self,
        conversation_id: UUID,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> None:
        """Send a WS message to every user subscribed to a conversation."""
        keys = self.subscribers(conversation_id)
        keys.discard(exclude)
        await self.send_to_principals(keys, event_type, data)

    async def send_to_principals(
        self,
        principal_keys: Iterable[str],
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        """Send a WS message to every open connection of the given users."""
        raw = WsOutbound.encode(event_type, data)
        dead: list[tuple[str, WebSocket]] = []
        for pkey in set(principal_keys):
            for ws in list(self._connections.get(pkey, ())):
                try:
                    await ws.send_text(raw)
                except Exception:
                    logger.debug("WS send failed for %s", pkey, exc_info=True)
                    dead.append((pkey, ws))
        for pkey, ws in dead:
            self.disconnect(ws, pkey)
