"""
Environment-aware configuration settings for the states language toolkit.

Supports dev, test, and prod environments with appropriate defaults.
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    DEV = "dev"
    TEST = "test"
    PROD = "prod"


class CodecSettings(BaseSettings):
    """JSON output settings."""

    model_config = SettingsConfigDict(env_prefix="STATES_CODEC_")

    indent: Optional[int] = Field(default=None, description="Indentation width (None = compact output)")
    ensure_ascii: bool = Field(default=False, description="Escape non-ASCII characters in output")

    @field_validator("indent")
    @classmethod
    def validate_indent(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("indent must be non-negative")
        return v


class ValidationSettings(BaseSettings):
    """Graph validation policy applied when machines and branches are built."""

    model_config = SettingsConfigDict(env_prefix="STATES_VALIDATION_")

    require_choice_default: bool = Field(
        default=False,
        description="Reject Choice states without a Default state",
    )
    warn_unreachable_states: bool = Field(
        default=True,
        description="Log a warning for states not reachable from StartAt",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="STATES_",
        case_sensitive=False,  # STATES_LOG_LEVEL and states_log_level both work
        extra="ignore",        # Ignore unknown environment variables
    )

    environment: Environment = Field(default=Environment.DEV)
    log_level: str = Field(default="INFO")

    # Sub-settings
    codec: CodecSettings = Field(default_factory=CodecSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str | Environment) -> Environment:
        """Validate and convert environment string to enum."""
        if isinstance(v, Environment):
            return v
        return Environment(v.lower())

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TEST

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PROD


def default_codec_settings() -> CodecSettings:
    """Built-in codec defaults; the environment is not consulted."""
    return CodecSettings.model_construct()


def default_validation_settings() -> ValidationSettings:
    """Built-in validation defaults; the environment is not consulted."""
    return ValidationSettings.model_construct()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging for applications embedding the toolkit."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
