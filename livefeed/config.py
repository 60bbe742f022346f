"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Realtime core configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    realtime_url: str | None = Field(
        default=None,
        description="Websocket URL of the backend that streams data-change events",
    )
    realtime_api_key: str | None = Field(
        default=None,
        description="Anonymous API key appended to the realtime URL as ``apikey``",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        description="Seconds to wait for the realtime handshake before giving up",
        gt=0,
    )
    notification_buffer_capacity: int = Field(
        default=50,
        description="Maximum number of notification records kept per live feed",
        gt=0,
    )
    notification_sound_url: str = Field(
        default="/sounds/notification.mp3",
        description="Audio asset played by clients for new-notification cues",
        min_length=1,
    )
    notification_sound_volume: float = Field(
        default=0.3,
        description="Playback volume for the notification cue",
        ge=0,
        le=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used when stamping received change events",
    )

    @model_validator(mode="after")
    def _validate_realtime_url(self) -> "Settings":
        if self.realtime_url and not self.realtime_url.startswith(("ws://", "wss://")):
            raise ValueError("REALTIME_URL must use the ws:// or wss:// scheme")
        if self.realtime_api_key and not self.realtime_url:
            raise ValueError("REALTIME_API_KEY requires REALTIME_URL to be configured")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
