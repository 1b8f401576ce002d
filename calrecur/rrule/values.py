"""Immutable calendar values used throughout the recurrence engine."""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from enum import IntEnum
from functools import total_ordering
from typing import Optional, Union


class Weekday(IntEnum):
    """Day of the week, numbered from Sunday as RFC 5545 week arithmetic expects."""

    SU = 0
    MO = 1
    TU = 2
    WE = 3
    TH = 4
    FR = 5
    SA = 6

    @property
    def code(self) -> str:
        """Two-letter RRULE code (e.g. ``"MO"``)."""
        return self.name

    @classmethod
    def from_code(cls, code: str) -> "Weekday":
        """Look up a weekday by its two-letter RRULE code.

        Raises:
            ValueError: If the code is not a known weekday
        """
        try:
            return cls[code.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown weekday code: {code!r}") from None

    @classmethod
    def from_python(cls, weekday: int) -> "Weekday":
        """Convert ``date.weekday()`` numbering (Monday=0) to a Weekday."""
        return cls((weekday + 1) % 7)

    def to_python(self) -> int:
        """Convert to ``date.weekday()`` numbering (Monday=0)."""
        return (self.value + 6) % 7


@total_ordering
@dataclass(frozen=True)
class CalendarDate:
    """A date with no time of day (an RFC 5545 DATE value)."""

    year: int
    month: int
    day: int

    @property
    def has_time(self) -> bool:
        return False

    def sort_key(self) -> tuple[int, int, int, int, int, int]:
        """Total-order key; a date sorts before any date-time on the same day."""
        return (self.year, self.month, self.day, -1, 0, 0)

    def date_key(self) -> tuple[int, int, int]:
        return (self.year, self.month, self.day)

    def as_date(self) -> "CalendarDate":
        return CalendarDate(self.year, self.month, self.day)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CalendarDate):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def to_python(self) -> date:
        """Convert to a ``datetime.date``."""
        return date(self.year, self.month, self.day)

    @classmethod
    def from_python(cls, value: date) -> "CalendarDate":
        return cls(value.year, value.month, value.day)

    def __str__(self) -> str:
        return f"{self.year:04d}{self.month:02d}{self.day:02d}"


@dataclass(frozen=True)
class CalendarDateTime(CalendarDate):
    """A date with a time of day (an RFC 5545 DATE-TIME value).

    Instances carry no zone; the iterator emits them in UTC.
    """

    hour: int = 0
    minute: int = 0
    second: int = 0

    @property
    def has_time(self) -> bool:
        return True

    def sort_key(self) -> tuple[int, int, int, int, int, int]:
        return (self.year, self.month, self.day, self.hour, self.minute, self.second)

    def time_key(self) -> tuple[int, int, int]:
        return (self.hour, self.minute, self.second)

    def to_python(self, tz: Optional[tzinfo] = None) -> datetime:  # type: ignore[override]
        """Convert to a ``datetime.datetime``, optionally attaching ``tz``."""
        return datetime(
            self.year, self.month, self.day, self.hour, self.minute, self.second, tzinfo=tz
        )

    @classmethod
    def from_python(cls, value: datetime) -> "CalendarDateTime":  # type: ignore[override]
        """Take the wall-clock fields of ``value``; any tzinfo is ignored."""
        return cls(value.year, value.month, value.day, value.hour, value.minute, value.second)

    def __str__(self) -> str:
        return f"{super().__str__()}T{self.hour:02d}{self.minute:02d}{self.second:02d}"


DateValue = Union[CalendarDate, CalendarDateTime]
