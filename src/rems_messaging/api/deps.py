"""FastAPI dependency injection helpers."""
from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated, AsyncIterator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from rems_messaging.application.dto.principal import Principal
from rems_messaging.application.ports.auth import TokenVerifier
from rems_messaging.config import settings
from rems_messaging.infrastructure.auth.verifiers import build_verifier
from rems_messaging.infrastructure.db.session import AsyncSessionLocal
from rems_messaging.infrastructure.db.uow import SqlAlchemyUoW

_bearer_scheme = HTTPBearer()


@asynccontextmanager
async def open_uow() -> AsyncIterator[SqlAlchemyUoW]:
    """Unit of work outside the request cycle (WebSocket handlers, worker, scripts)."""
    async with SqlAlchemyUoW(AsyncSessionLocal) as uow:
        yield uow


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with open_uow() as uow:
        yield uow


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


@lru_cache(maxsize=1)
def get_verifier() -> TokenVerifier:
    return build_verifier(settings)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    # UnauthorizedError surfaces as 401 through the AppError handler
    return await get_verifier().verify(credentials.credentials)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
