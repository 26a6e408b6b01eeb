"""Configuration settings for editforge."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or overrides."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, populate_by_name=True
    )

    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL"
    )
    openai_model: str = Field(default="gpt-4.1-mini", validation_alias="OPENAI_MODEL")
    openai_timeout_seconds: int = Field(
        default=120, validation_alias="OPENAI_TIMEOUT_SECONDS"
    )
    openai_extra_headers: str | None = Field(
        default=None, validation_alias="OPENAI_EXTRA_HEADERS"
    )
    fix_temperature: float = Field(default=0.2, validation_alias="FIX_TEMPERATURE")

    max_attempts: int = Field(default=5, validation_alias="MAX_ATTEMPTS")
    fix_settle_seconds: float = Field(default=2.0, validation_alias="FIX_SETTLE_SECONDS")
    fix_timeout_seconds: float = Field(default=120.0, validation_alias="FIX_TIMEOUT_SECONDS")
    fix_history_limit: int = Field(default=5, validation_alias="FIX_HISTORY_LIMIT")
    fix_history_response_chars: int = Field(
        default=2000, validation_alias="FIX_HISTORY_RESPONSE_CHARS"
    )
    related_file_chars: int = Field(default=1500, validation_alias="RELATED_FILE_CHARS")

    response_max_chars: int = Field(default=100_000, validation_alias="RESPONSE_MAX_CHARS")
    repair_max_chars: int = Field(default=500_000, validation_alias="REPAIR_MAX_CHARS")
    salvage_scan_max_chars: int = Field(
        default=500_000, validation_alias="SALVAGE_SCAN_MAX_CHARS"
    )
    salvage_value_max_chars: int = Field(
        default=100_000, validation_alias="SALVAGE_VALUE_MAX_CHARS"
    )
    min_content_chars: int = Field(default=2, validation_alias="MIN_CONTENT_CHARS")


DEFAULT_SETTINGS = Settings()
