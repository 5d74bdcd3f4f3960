from __future__ import annotations


class ClientError(Exception):
    """Base error for the messaging client."""

    def __init__(self, detail: str = "", *, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class AuthError(ClientError):
    """Missing, rejected or expired credential."""


class NetworkError(ClientError):
    """The server could not be reached or the transfer broke off."""


class ServerError(ClientError):
    """Non-success status or a body that is not what the endpoint promises."""
