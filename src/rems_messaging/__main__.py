"""Run the messaging API: python -m rems_messaging"""
from __future__ import annotations

import logging

import uvicorn

from rems_messaging.api.middleware.correlation_id import CorrelationIdFilter
from rems_messaging.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


def _configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), handlers=[handler])


def main() -> None:
    _configure_logging()
    uvicorn.run(
        "rems_messaging.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
