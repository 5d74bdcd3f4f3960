"""HTTP access to the messaging API on behalf of one viewer."""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Self

import httpx
from pydantic import ValidationError as PydanticValidationError

from rems_messaging.client.config import ClientSettings
from rems_messaging.client.exceptions import AuthError, NetworkError, ServerError
from rems_messaging.client.models import ConversationList, ConversationSummary

logger = logging.getLogger(__name__)

CONVERSATIONS_PATH = "/api/v1/messages/conversations"
UNREAD_PATH = "/api/v1/messages/unread"


class ConversationClient:
    """Reads the viewer's conversations. Never writes.

    Results come back in server order (most recently updated first) and are
    not re-sorted.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> ConversationClient:
        return cls(settings.API_URL, settings.TOKEN, timeout=settings.REQUEST_TIMEOUT)

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    async def list_conversations(self) -> list[ConversationSummary]:
        body = await self._get_json(CONVERSATIONS_PATH)
        try:
            return ConversationList.validate_python(body)
        except PydanticValidationError as exc:
            raise ServerError("Malformed conversation list", status_code=200) from exc

    async def unread_count(self) -> int:
        """Server-side total over non-archived conversations."""
        body = await self._get_json(UNREAD_PATH)
        count = body.get("unread_count") if isinstance(body, dict) else None
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ServerError("Malformed unread count", status_code=200)
        return count

    async def _get_json(self, path: str) -> Any:
        if not self._token:
            raise AuthError("No credential")
        try:
            response = await self._http.get(
                path, headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"GET {path} failed: {exc!r}") from exc

        logger.debug("GET %s -> %d", path, response.status_code)
        if response.status_code in (401, 403):
            raise AuthError(_detail(response), status_code=response.status_code)
        if not response.is_success:
            raise ServerError(_detail(response), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError("Response body is not JSON", status_code=response.status_code) from exc

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and isinstance(body.get("detail"), str):
        return body["detail"]
    return f"HTTP {response.status_code}"
