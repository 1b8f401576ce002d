"""Unit tests for the settings configuration module."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from calrecur.config.settings import LoggingSettings, RecurrenceSettings, get_settings, reset_settings

pytestmark = pytest.mark.unit


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a YAML config file and return its path."""

    def _write(content: str) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


class TestLoggingSettings:
    """Test LoggingSettings validation."""

    def test_defaults(self) -> None:
        """Test default logging settings."""
        settings = LoggingSettings()

        assert settings.level == "WARNING"
        assert "%(message)s" in settings.format

    @pytest.mark.parametrize("level,expected", [("debug", "DEBUG"), ("Verbose", "VERBOSE"), ("ERROR", "ERROR")])
    def test_level_normalized(self, level: str, expected: str) -> None:
        """Test level names are upper-cased."""
        assert LoggingSettings(level=level).level == expected

    def test_invalid_level(self) -> None:
        """Test unknown level names are rejected."""
        with pytest.raises(ValidationError, match="Unknown log level"):
            LoggingSettings(level="LOUD")


class TestRecurrenceSettings:
    """Test RecurrenceSettings values and environment handling."""

    def test_defaults(self, test_settings: RecurrenceSettings) -> None:
        """Test default settings values."""
        assert test_settings.max_unproductive_years == 100
        assert test_settings.max_occurrences == 1000
        assert test_settings.default_timezone == "UTC"
        assert test_settings.logging.level == "WARNING"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test CALRECUR_ environment variables."""
        monkeypatch.setenv("CALRECUR_MAX_OCCURRENCES", "50")
        monkeypatch.setenv("CALRECUR_DEFAULT_TIMEZONE", "Europe/London")

        settings = RecurrenceSettings(_env_file=None)

        assert settings.max_occurrences == 50
        assert settings.default_timezone == "Europe/London"

    def test_nested_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested fields use a double underscore."""
        monkeypatch.setenv("CALRECUR_LOGGING__LEVEL", "debug")

        settings = RecurrenceSettings(_env_file=None)

        assert settings.logging.level == "DEBUG"

    @pytest.mark.parametrize("field", ["max_unproductive_years", "max_occurrences"])
    def test_limits_must_be_positive(self, field: str) -> None:
        """Test the expansion limits reject zero."""
        with pytest.raises(ValidationError):
            RecurrenceSettings(_env_file=None, **{field: 0})


class TestFromYaml:
    """Test loading settings from YAML files."""

    def test_recurrence_section(self, write_config) -> None:
        """Test values under a recurrence section."""
        path = write_config(
            """
recurrence:
  max_occurrences: 25
  unknown_key: true
  logging:
    level: info
other_tool:
  max_occurrences: 5
"""
        )

        settings = RecurrenceSettings.from_yaml(path)

        assert settings.max_occurrences == 25
        assert settings.logging.level == "INFO"

    def test_top_level_keys(self, write_config) -> None:
        """Test a file without a recurrence section."""
        path = write_config("max_unproductive_years: 10\n")

        assert RecurrenceSettings.from_yaml(path).max_unproductive_years == 10

    def test_empty_file(self, write_config) -> None:
        """Test an empty file gives defaults."""
        path = write_config("")

        assert RecurrenceSettings.from_yaml(path).max_occurrences == 1000

    def test_file_beats_environment(self, write_config, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test file values take precedence over environment variables."""
        monkeypatch.setenv("CALRECUR_MAX_OCCURRENCES", "50")
        path = write_config("max_occurrences: 25\n")

        assert RecurrenceSettings.from_yaml(path).max_occurrences == 25

    def test_overrides(self, write_config) -> None:
        """Test keyword overrides take precedence over the file."""
        path = write_config("max_occurrences: 25\n")

        settings = RecurrenceSettings.from_yaml(path, max_occurrences=7, default_timezone="Asia/Tokyo")

        assert settings.max_occurrences == 7
        assert settings.default_timezone == "Asia/Tokyo"

    def test_not_a_mapping(self, write_config) -> None:
        """Test a YAML list is rejected."""
        path = write_config("- 1\n- 2\n")

        with pytest.raises(ValueError, match="Expected a mapping"):
            RecurrenceSettings.from_yaml(path)

    def test_invalid_yaml(self, write_config) -> None:
        """Test YAML syntax errors propagate."""
        path = write_config("recurrence: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            RecurrenceSettings.from_yaml(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            RecurrenceSettings.from_yaml(tmp_path / "missing.yaml")


class TestGlobalSettings:
    """Test the global settings instance."""

    def test_get_settings_is_cached(self) -> None:
        """Test get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_reset_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test reset_settings picks up new environment values."""
        first = get_settings()
        monkeypatch.setenv("CALRECUR_MAX_OCCURRENCES", "12")

        reset_settings()
        second = get_settings()

        assert second is not first
        assert second.max_occurrences == 12
