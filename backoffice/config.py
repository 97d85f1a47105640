"""Application configuration and environment validation."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


REQUIRED_ENV_VARS = [
    "DATA_DIR",
    "LOG_LEVEL",
]


class ConfigError(RuntimeError):
    """Raised when the environment configuration is invalid."""


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    data_dir: str = Field(..., alias="DATA_DIR")
    log_level: str = Field(..., alias="LOG_LEVEL")
    initial_system_credits: int = Field(100_000, alias="INITIAL_SYSTEM_CREDITS")
    strict_persistence: bool = Field(False, alias="STRICT_PERSISTENCE")
    seed_defaults: bool = Field(True, alias="SEED_DEFAULTS")

    @field_validator("data_dir", "log_level")
    @classmethod
    def non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def known_level(cls, value: str) -> str:
        if value.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown LOG_LEVEL {value!r}")
        return value.upper()

    @field_validator("initial_system_credits")
    @classmethod
    def validate_initial_credits(cls, value: int) -> int:
        if value < 0:
            raise ValueError("INITIAL_SYSTEM_CREDITS must not be negative")
        return value

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser().resolve()


def _missing_required_env() -> list[str]:
    return [key for key in REQUIRED_ENV_VARS if key not in os.environ or os.environ[key] == ""]


def load_settings() -> Settings:
    missing = _missing_required_env()
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(sorted(missing))}")
    try:
        env_values = {
            field.alias: os.environ.get(field.alias)
            for field in Settings.model_fields.values()
            if os.environ.get(field.alias) is not None
        }
        settings = Settings(**env_values)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def reset_settings_cache() -> None:
    get_settings.cache_clear()  # type: ignore[attr-defined]


def is_environment_valid() -> tuple[bool, Optional[str]]:
    try:
        reset_settings_cache()
        get_settings()
    except ConfigError as exc:
        return False, str(exc)
    return True, None
