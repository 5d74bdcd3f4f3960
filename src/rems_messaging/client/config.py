from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for the client side. Read from REMS_* variables, no database needed."""

    API_URL: str = "http://localhost:8000"
    WS_URL: str = "ws://localhost:8000/ws/messages"
    TOKEN: str | None = None

    REQUEST_TIMEOUT: float = 10.0

    RECONNECT_ATTEMPTS: int = 5
    RECONNECT_DELAY: float = 2.0
    HEARTBEAT_SECONDS: float = 25.0

    model_config = SettingsConfigDict(
        env_prefix="REMS_",
        env_file=".env",
        extra="ignore",
    )
