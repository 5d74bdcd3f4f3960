from __future__ import annotations

from typing import Protocol

from rems_messaging.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Resolve a bearer token to the viewer. Raises UnauthorizedError when it is not valid."""
        ...
