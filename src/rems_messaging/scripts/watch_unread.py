"""Follow the unread badge of one viewer against a running API.

    REMS_TOKEN=<jwt> python -m rems_messaging.scripts.watch_unread

The viewer is the token's subject. Push updates are used when REMS_WS_URL
is reachable; polling carries on regardless.
"""
from __future__ import annotations

import asyncio
import logging

import jwt

from rems_messaging.client.config import ClientSettings
from rems_messaging.client.conversation_client import ConversationClient
from rems_messaging.client.indicator import UnreadIndicator
from rems_messaging.client.transport import WebSocketTransport

logger = logging.getLogger(__name__)


def viewer_from_token(token: str) -> str:
    # signature is checked by the server; here we only need the subject
    claims = jwt.decode(token, options={"verify_signature": False})
    subject = claims.get("sub") or claims.get("id")
    if not subject:
        raise SystemExit("Token has no subject")
    return str(subject)


def _log_badge(label: str | None) -> None:
    logger.info("Unread badge: %s", label if label is not None else "(hidden)")


async def watch(settings: ClientSettings) -> None:
    if not settings.TOKEN:
        raise SystemExit("Set REMS_TOKEN to a bearer token")

    async with ConversationClient.from_settings(settings) as client:
        indicator = UnreadIndicator(
            client,
            viewer_from_token(settings.TOKEN),
            on_change=_log_badge,
            transport=WebSocketTransport.from_settings(settings),
        )
        async with indicator:
            logger.info("Watching unread messages at %s", settings.API_URL)
            await asyncio.Event().wait()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(watch(ClientSettings()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
