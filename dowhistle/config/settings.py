from __future__ import annotations

from typing import Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env once at module import so every BaseSettings group sees it
load_dotenv()


class ToolServerSettings(BaseSettings):
    """Tool-execution server connection settings. Env vars prefixed with TOOL_SERVER_."""

    model_config = SettingsConfigDict(env_prefix="TOOL_SERVER_")

    base_url: str = "http://localhost:3001"
    request_timeout_s: float = Field(10.0, gt=0)
    connect_timeout_s: float = Field(10.0, gt=0)

    # Reconnection: delay = min(retry_max_delay_s, retry_base_delay_s * attempt)
    max_connect_attempts: int = Field(5, gt=0)
    retry_base_delay_s: float = Field(2.0, gt=0)
    retry_max_delay_s: float = Field(30.0, gt=0)

    health_interval_s: float = Field(30.0, gt=0)
    health_timeout_s: float = Field(5.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"TOOL_SERVER_BASE_URL must be an http(s) URL (got '{v}')"
            )
        return v

    @model_validator(mode="after")
    def _validate_delays(self) -> Self:
        if self.retry_max_delay_s < self.retry_base_delay_s:
            raise ValueError(
                f"retry_max_delay_s ({self.retry_max_delay_s}) must be >= "
                f"retry_base_delay_s ({self.retry_base_delay_s})"
            )
        return self


class OpenAISettings(BaseSettings):
    """OpenAI API settings. Env vars prefixed with OPENAI_."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = ""  # empty = offline canned replies
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    temperature: float = 0.7
    max_output_tokens: int = Field(300, gt=0)
    timeout_s: float = Field(20.0, gt=0)

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v: float) -> float:
        if not (0.0 <= v <= 2.0):
            raise ValueError(f"OPENAI_TEMPERATURE must be in [0.0, 2.0], got {v}")
        return v


class SearchSettings(BaseSettings):
    """Direct coordinate search defaults. Env vars prefixed with SEARCH_."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    radius_km: float = Field(10.0, gt=0)
    result_limit: int = Field(10, gt=0)
    display_limit: int = Field(3, gt=0)  # entries shown before "...and more"


class LogSettings(BaseSettings):
    """Logging settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    json_output: bool = False
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed} (got '{v}')")
        return v


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    tool_server: ToolServerSettings = Field(default_factory=ToolServerSettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    log: LogSettings = Field(default_factory=LogSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
