"""Access log: one line per HTTP request with method, path, status and elapsed time."""
from __future__ import annotations

import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestTimingMiddleware:
    """Pure ASGI; WebSocket scopes and probe paths pass straight through.

    Requests slower than ``slow_ms`` are logged at WARNING.
    """

    def __init__(self, app: ASGIApp, *, slow_ms: float = 1000.0) -> None:
        self.app = app
        self.slow_ms = slow_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in _QUIET_PATHS:
            await self.app(scope, receive, send)
            return

        status = 500
        start = time.perf_counter()

        async def send_with_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_with_status)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            level = logging.WARNING if elapsed_ms >= self.slow_ms else logging.INFO
            logger.log(level, "%s %s %s %.1fms", scope["method"], scope["path"], status, elapsed_ms)
