"""Shared fixtures for the calrecur test suite."""

from typing import Any, Callable, Optional

import pytest

from calrecur.config.settings import RecurrenceSettings, reset_settings
from calrecur.rrule.iterator import create_recurrence_iterator
from calrecur.rrule.parser import parse_date_value


def pytest_configure(config: Any) -> None:
    """Configure pytest with project markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


@pytest.fixture(autouse=True)
def clean_settings():
    """Reset global settings state before and after every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def test_settings() -> RecurrenceSettings:
    """Settings with defaults only, independent of the environment."""
    return RecurrenceSettings(_env_file=None)


@pytest.fixture
def expand(test_settings) -> Callable[..., list[str]]:
    """Expand rule text from a basic-format start into value strings.

    Values are rendered the way ``str()`` renders engine values, e.g.
    ``"19970902T090000"`` or ``"19970902"``.
    """

    def _expand(rule: str, start: str, limit: int = 50, tz: Optional[Any] = None) -> list[str]:
        iterator = create_recurrence_iterator(rule, parse_date_value(start), tz=tz, settings=test_settings)
        values = []
        while len(values) < limit and iterator.has_next():
            values.append(str(iterator.next()))
        return values

    return _expand
