"""Configuration management."""

from states_language.config.settings import (
    CodecSettings,
    Environment,
    Settings,
    ValidationSettings,
    configure_logging,
    default_codec_settings,
    default_validation_settings,
    get_settings,
)

__all__ = [
    "CodecSettings",
    "Environment",
    "Settings",
    "ValidationSettings",
    "configure_logging",
    "default_codec_settings",
    "default_validation_settings",
    "get_settings",
]
