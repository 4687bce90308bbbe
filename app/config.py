"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_HYDRATION_BATCH_SIZE = 50


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="TubeFeed", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    youtube_api_url: HttpUrl = Field(
        default="https://www.googleapis.com/youtube/v3", alias="YOUTUBE_API_URL"
    )
    youtube_access_token: str | None = Field(
        default=None, alias="YOUTUBE_ACCESS_TOKEN"
    )
    request_timeout_seconds: float = Field(
        default=20.0, alias="REQUEST_TIMEOUT", gt=0, le=300
    )

    recent_per_channel: int = Field(
        default=25, alias="FEED_RECENT_PER_CHANNEL", ge=1, le=500
    )
    recent_per_playlist: int = Field(
        default=50, alias="FEED_RECENT_PER_PLAYLIST", ge=1, le=500
    )
    recent_liked_limit: int = Field(
        default=50, alias="FEED_RECENT_LIKED", ge=1, le=500
    )
    hydration_batch_size: int = Field(
        default=MAX_HYDRATION_BATCH_SIZE,
        alias="HYDRATION_BATCH_SIZE",
        ge=1,
        le=MAX_HYDRATION_BATCH_SIZE,
    )
    exclude_shorts: bool = Field(default=True, alias="EXCLUDE_SHORTS")
    shorts_max_seconds: int = Field(
        default=60, alias="SHORTS_MAX_SECONDS", ge=0, le=3_600
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubefeed.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("youtube_access_token", mode="before")
    @classmethod
    def _strip_blank_token(cls, value: object) -> object:
        """Treat blank tokens from the environment as unset."""

        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
