from __future__ import annotations

from enum import StrEnum


class EventType(StrEnum):
    MESSAGE_CREATED = "message.created"
    CONVERSATION_CREATED = "conversation.created"
    CONVERSATION_READ = "conversation.read"


class WsEventType(StrEnum):
    """Frames exchanged over the messaging WebSocket."""

    PING = "ping"
    PONG = "pong"
    ERROR = "error"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    MESSAGE_SEND = "message.send"
    MESSAGE_SENT = "message.sent"
    MARK_READ = "mark_read"
    TYPING_START = "typing.start"
    TYPING_STOP = "typing.stop"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
