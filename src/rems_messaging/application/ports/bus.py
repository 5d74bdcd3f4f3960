from __future__ import annotations

from typing import Any, Protocol


class EventPublisher(Protocol):
    """Fanout side of the outbox: hands one committed event to every API instance."""

    async def publish(self, channel: str, event_type: str, data: dict[str, Any]) -> int:
        """Return how many listeners received the event."""
        ...
