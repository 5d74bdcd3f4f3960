from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """The viewer a bearer token was issued to."""

    user_id: UUID

    @property
    def principal_key(self) -> str:
        """The viewer id in its wire form; keys the WS connection registry."""
        return str(self.user_id)
