"""Bearer-token verification shared by the REST API and the WebSocket gateway.

Tokens are issued by the platform's auth service. The viewer id is read from
``sub``, falling back to ``id`` for tokens minted by the legacy login flow.
"""
from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID

import jwt
from jwt import PyJWKClient

from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.exceptions import UnauthorizedError
from rems_messaging.application.ports.auth import TokenVerifier
from rems_messaging.config import Settings

ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    raw_id = payload.get("sub") or payload.get("id")
    if not raw_id:
        raise UnauthorizedError("Token has no subject")
    try:
        return Principal(user_id=UUID(str(raw_id)))
    except ValueError as exc:
        raise UnauthorizedError("Token subject is not a user id") from exc


class _JWTVerifier:
    def __init__(self, *, audience: str | None, leeway: float) -> None:
        self._audience = audience
        self._leeway = leeway

    def _decode(self, token: str, key: Any, algorithms: list[str]) -> Principal:
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=algorithms,
                audience=self._audience,
                leeway=self._leeway,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.PyJWTError as exc:
            raise UnauthorizedError(str(exc)) from exc
        return principal_from_claims(payload)


class HS256Verifier(_JWTVerifier):
    """Shared-secret tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        *,
        audience: str | None = None,
        leeway: float = 0.0,
    ) -> None:
        super().__init__(audience=audience, leeway=leeway)
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        return self._decode(token, self._secret, [self._algorithm])


class JWKSVerifier(_JWTVerifier):
    """Asymmetric tokens whose keys are published at a JWKS endpoint."""

    def __init__(self, jwks_url: str, *, audience: str | None = None, leeway: float = 0.0) -> None:
        super().__init__(audience=audience, leeway=leeway)
        self._jwk_client = PyJWKClient(jwks_url)

    async def verify(self, token: str) -> Principal:
        try:
            # key lookup may hit the network
            signing_key = await asyncio.to_thread(self._jwk_client.get_signing_key_from_jwt, token)
        except jwt.PyJWTError as exc:
            raise UnauthorizedError(str(exc)) from exc
        return self._decode(token, signing_key.key, ASYMMETRIC_ALGORITHMS)


def build_verifier(settings: Settings) -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        if not settings.JWKS_URL:
            raise RuntimeError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return JWKSVerifier(
            settings.JWKS_URL, audience=settings.JWT_AUDIENCE, leeway=settings.JWT_LEEWAY_SECONDS,
        )
    return HS256Verifier(
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        audience=settings.JWT_AUDIENCE,
        leeway=settings.JWT_LEEWAY_SECONDS,
    )
