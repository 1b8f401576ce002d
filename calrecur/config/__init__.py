"""Configuration management for recurrence expansion."""

from .settings import LoggingSettings, RecurrenceSettings, get_settings, reset_settings

__all__ = [
    "LoggingSettings",
    "RecurrenceSettings",
    "get_settings",
    "reset_settings",
]
