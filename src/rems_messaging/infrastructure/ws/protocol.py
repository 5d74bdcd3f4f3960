"""Frames exchanged on /ws/messages: JSON text of the form ``{"type": ..., "data": {...}}``."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class WsFrame(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def encode(cls, type_: str, data: dict[str, Any] | None = None) -> str:
        return cls(type=type_, data=data or {}).model_dump_json()

    def conversation_id(self) -> str | None:
        value = self.data.get("conversation_id")
        return str(value) if value else None


class WsInbound(WsFrame):
    """Client to server: ping, pong, subscribe, unsubscribe, message.send, mark_read, typing.*"""


class WsOutbound(WsFrame):
    """Server to client: ping, pong, error, message.sent, message.created, conversation.read, typing.*"""

    def sender_id(self) -> str | None:
        """Author of a message.created frame."""
        message = self.data.get("message")
        if isinstance(message, dict) and message.get("sender_id"):
            return str(message["sender_id"])
        return None
