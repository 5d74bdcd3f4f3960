from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from rems_messaging.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


async def _check_postgres() -> str | None:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        return str(exc)
    return None


async def _check_redis(request: Request) -> str | None:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return "not configured"
    try:
        await redis.ping()
    except Exception as exc:  # noqa: BLE001
        return str(exc)
    return None


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready once Postgres answers and Redis (fanout) is reachable."""
    checks = {
        "postgres": await _check_postgres(),
        "redis": await _check_redis(request),
    }
    failed = {name: err for name, err in checks.items() if err is not None}
    if failed:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": failed},
        )
    return JSONResponse(content={"status": "ready", "checks": list(checks)})
