from __future__ import annotations

from dataclasses import dataclass

from rems_messaging.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class MessagePage:
    items: list[Message]
    next_cursor: str | None = None
