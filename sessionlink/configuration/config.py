"""Configuration management for SessionLink."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sessionlink.domain.model.realtime.connection import (
    CONNECT_TIMEOUT,
    INITIAL_RECONNECT_DELAY,
    MAX_RECONNECT_DELAY,
    OUTBOUND_QUEUE_SIZE,
    PING_INTERVAL,
    PONG_TIMEOUT,
    RECONNECT_JITTER,
    RECONNECT_MULTIPLIER,
)

DEFAULT_URL = "ws://localhost:8000/ws"


class Settings(BaseSettings):
    """Client settings."""

    # Connection Settings
    url: str = Field(default=DEFAULT_URL, alias="SESSIONLINK_URL")
    reconnect: bool = Field(default=True, alias="SESSIONLINK_RECONNECT")
    auto_connect: bool = Field(default=True, alias="SESSIONLINK_AUTO_CONNECT")
    debug: bool = Field(default=False, alias="SESSIONLINK_DEBUG")
    connect_timeout: float = Field(default=CONNECT_TIMEOUT, alias="SESSIONLINK_CONNECT_TIMEOUT")
    outbound_queue_size: int = Field(
        default=OUTBOUND_QUEUE_SIZE, alias="SESSIONLINK_OUTBOUND_QUEUE_SIZE"
    )

    # Reconnect Backoff Settings
    reconnect_initial_delay: float = Field(
        default=INITIAL_RECONNECT_DELAY, alias="SESSIONLINK_RECONNECT_INITIAL_DELAY"
    )
    reconnect_multiplier: float = Field(
        default=RECONNECT_MULTIPLIER, alias="SESSIONLINK_RECONNECT_MULTIPLIER"
    )
    reconnect_max_delay: float = Field(
        default=MAX_RECONNECT_DELAY, alias="SESSIONLINK_RECONNECT_MAX_DELAY"
    )
    reconnect_jitter: float = Field(default=RECONNECT_JITTER, alias="SESSIONLINK_RECONNECT_JITTER")
    reconnect_max_attempts: int | None = Field(
        default=None,
        alias="SESSIONLINK_RECONNECT_MAX_ATTEMPTS",
        description="Give up after this many consecutive failures. Unset retries forever.",
    )

    # Keepalive Settings (0 disables pings)
    ping_interval: float = Field(default=PING_INTERVAL, alias="SESSIONLINK_PING_INTERVAL")
    pong_timeout: float = Field(default=PONG_TIMEOUT, alias="SESSIONLINK_PONG_TIMEOUT")

    # Notifications
    read_receipts: bool = Field(default=False, alias="SESSIONLINK_READ_RECEIPTS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("reconnect_max_attempts", mode="before")
    @classmethod
    def empty_max_attempts_is_unlimited(cls, value: object) -> object:
        """Treat an empty or zero value from the environment as unlimited."""
        if value in ("", "0", 0, None):
            return None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        if not value:
            return "INFO"
        return str(value).strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
