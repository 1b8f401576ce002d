"""Settings management using Pydantic for type validation and configuration."""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.logging import get_log_level

logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    """Logging configuration for the recurrence engine."""

    level: str = Field(
        default="WARNING",
        description="Log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Format string for the console handler",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        try:
            get_log_level(v)
        except AttributeError as e:
            raise ValueError(f"Unknown log level: {v}") from e
        return v.upper()


class RecurrenceSettings(BaseSettings):
    """Tunables for recurrence expansion.

    Values come from keyword arguments, then ``CALRECUR_*`` environment
    variables (nested fields use ``__``, e.g. ``CALRECUR_LOGGING__LEVEL``),
    then defaults. :meth:`from_yaml` layers a YAML file under the
    environment.
    """

    max_unproductive_years: int = Field(
        default=100,
        ge=1,
        description="Years without an instance before an iterator gives up",
    )
    max_occurrences: int = Field(
        default=1000,
        ge=1,
        description="Upper bound on occurrences returned by window queries",
    )
    default_timezone: str = Field(
        default="UTC",
        description="Zone assumed for naive datetimes passed to the datetime adapter",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="CALRECUR_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides: Any) -> "RecurrenceSettings":
        """Load settings from a YAML file.

        The file holds the same keys as the model, optionally under a
        top-level ``recurrence`` section. Keys in the file take precedence
        over environment variables, and ``overrides`` over both. Unknown
        keys are ignored.

        Raises:
            FileNotFoundError: If ``path`` does not exist
            yaml.YAMLError: If the file is not valid YAML
            ValueError: If the file does not hold a mapping
        """
        config_file = Path(path)
        with config_file.open(encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Expected a mapping in {config_file}, got {type(config_data).__name__}")
        section = config_data.get("recurrence", config_data) or {}

        settings_data = {key: value for key, value in section.items() if key in cls.model_fields}
        settings_data.update(overrides)
        logger.debug("Loaded recurrence settings %s from %s", sorted(settings_data), config_file)
        return cls(**settings_data)


# Global settings management
_settings_instance: Optional[RecurrenceSettings] = None


def get_settings() -> RecurrenceSettings:
    """Get the global settings instance, creating it lazily if needed."""
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = RecurrenceSettings()
    return globals()["_settings_instance"]


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
