"""Recurrence rule descriptor models."""

import logging
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, ValidationError, field_validator, model_validator

from .exceptions import RRuleValidationError
from .values import CalendarDate, CalendarDateTime, DateValue, Weekday

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    """RRULE FREQ values."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @property
    def rank(self) -> int:
        """Granularity rank; SECONDLY is finest (0), YEARLY coarsest (6)."""
        return _FREQUENCY_RANKS[self]

    def is_finer_than(self, other: "Frequency") -> bool:
        return self.rank < other.rank


_FREQUENCY_RANKS = {freq: rank for rank, freq in enumerate(Frequency)}


class WeekdayNum(BaseModel):
    """A BYDAY entry such as ``MO``, ``1MO`` or ``-1FR``."""

    ordinal: Optional[int] = Field(
        default=None, description="Occurrence within the period, negative counts from the end"
    )
    weekday: Weekday = Field(..., description="Day of the week")

    model_config = ConfigDict(frozen=True)

    @field_validator("ordinal")
    @classmethod
    def validate_ordinal(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and (v == 0 or not -53 <= v <= 53):
            raise ValueError(f"BYDAY ordinal must be within ±1..53, got {v}")
        return v

    @classmethod
    def of(cls, weekday: Union[Weekday, str], ordinal: Optional[int] = None) -> "WeekdayNum":
        """Build an entry from a weekday or its two-letter code.

        Raises:
            RRuleValidationError: If the ordinal is out of range
        """
        if isinstance(weekday, str):
            weekday = Weekday.from_code(weekday)
        try:
            return cls(ordinal=ordinal, weekday=weekday)
        except ValidationError as e:
            logger.warning("Rejected BYDAY entry %s%s: %s", ordinal or "", weekday.code, e)
            raise RRuleValidationError(_describe(e)) from e

    def __str__(self) -> str:
        if self.ordinal is None:
            return self.weekday.code
        return f"{self.ordinal}{self.weekday.code}"


def _describe(error: ValidationError) -> str:
    """Messages of the failed checks without pydantic's framing."""
    return "; ".join(detail["msg"].removeprefix("Value error, ") for detail in error.errors())


def _check_values(name: str, values: tuple[int, ...], low: int, high: int, signed: bool) -> tuple[int, ...]:
    for value in values:
        magnitude = abs(value) if signed else value
        if magnitude < low or magnitude > high or (signed and value == 0):
            bounds = f"±{low}..{high}" if signed else f"{low}..{high}"
            raise ValueError(f"{name} values must be within {bounds}, got {value}")
    return values


class RecurrenceRule(BaseModel):
    """An immutable, structurally valid RRULE.

    Construct through :meth:`builder` or :func:`calrecur.rrule.parser.parse_rrule`;
    both report problems as :class:`RRuleValidationError`.
    """

    freq: Frequency = Field(..., description="Recurrence frequency")
    interval: int = Field(default=1, description="Periods between recurrences")
    count: Optional[int] = Field(default=None, description="Total number of occurrences")
    until: Optional[InstanceOf[CalendarDate]] = Field(
        default=None, description="Inclusive end; date-times are interpreted as UTC"
    )

    by_second: tuple[int, ...] = ()
    by_minute: tuple[int, ...] = ()
    by_hour: tuple[int, ...] = ()
    by_day: tuple[WeekdayNum, ...] = ()
    by_month_day: tuple[int, ...] = ()
    by_year_day: tuple[int, ...] = ()
    by_week_no: tuple[int, ...] = ()
    by_month: tuple[int, ...] = ()
    by_set_pos: tuple[int, ...] = ()
    week_start: Weekday = Weekday.MO

    model_config = ConfigDict(frozen=True)

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"INTERVAL must be a positive integer, got {v}")
        return v

    @field_validator("count")
    @classmethod
    def validate_count(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"COUNT must be a positive integer, got {v}")
        return v

    @field_validator("by_second")
    @classmethod
    def validate_by_second(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYSECOND", v, 0, 59, signed=False)

    @field_validator("by_minute")
    @classmethod
    def validate_by_minute(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYMINUTE", v, 0, 59, signed=False)

    @field_validator("by_hour")
    @classmethod
    def validate_by_hour(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYHOUR", v, 0, 23, signed=False)

    @field_validator("by_month_day")
    @classmethod
    def validate_by_month_day(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYMONTHDAY", v, 1, 31, signed=True)

    @field_validator("by_year_day")
    @classmethod
    def validate_by_year_day(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYYEARDAY", v, 1, 366, signed=True)

    @field_validator("by_week_no")
    @classmethod
    def validate_by_week_no(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYWEEKNO", v, 1, 53, signed=True)

    @field_validator("by_month")
    @classmethod
    def validate_by_month(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYMONTH", v, 1, 12, signed=False)

    @field_validator("by_set_pos")
    @classmethod
    def validate_by_set_pos(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return _check_values("BYSETPOS", v, 1, 366, signed=True)

    @model_validator(mode="after")
    def validate_termination(self) -> "RecurrenceRule":
        """COUNT and UNTIL are mutually exclusive."""
        if self.count is not None and self.until is not None:
            raise ValueError("COUNT and UNTIL cannot both be set")
        return self

    @classmethod
    def builder(cls, freq: Union[Frequency, str]) -> "RecurrenceRuleBuilder":
        return RecurrenceRuleBuilder(freq)

    @classmethod
    def from_ical(cls, text: str) -> "RecurrenceRule":
        """Parse RRULE value text such as ``FREQ=WEEKLY;BYDAY=MO``."""
        from .parser import parse_rrule

        return parse_rrule(text)

    @property
    def has_ordinal_by_day(self) -> bool:
        return any(entry.ordinal is not None for entry in self.by_day)

    def to_ical(self) -> str:
        """Render the rule as RRULE value text with parts in RFC 5545 order."""
        parts = [f"FREQ={self.freq.value}"]
        if self.until is not None:
            until = str(self.until)
            parts.append(f"UNTIL={until}Z" if isinstance(self.until, CalendarDateTime) else f"UNTIL={until}")
        if self.count is not None:
            parts.append(f"COUNT={self.count}")
        if self.interval != 1:
            parts.append(f"INTERVAL={self.interval}")
        for name, values in (
            ("BYSECOND", self.by_second),
            ("BYMINUTE", self.by_minute),
            ("BYHOUR", self.by_hour),
            ("BYDAY", self.by_day),
            ("BYMONTHDAY", self.by_month_day),
            ("BYYEARDAY", self.by_year_day),
            ("BYWEEKNO", self.by_week_no),
            ("BYMONTH", self.by_month),
            ("BYSETPOS", self.by_set_pos),
        ):
            if values:
                parts.append(f"{name}={','.join(str(value) for value in values)}")
        if self.week_start != Weekday.MO:
            parts.append(f"WKST={self.week_start.code}")
        return ";".join(parts)

    def __str__(self) -> str:
        return self.to_ical()


class RecurrenceRuleBuilder:
    """Collects rule parts and builds a validated :class:`RecurrenceRule`.

    Example:
        >>> rule = (
        ...     RecurrenceRule.builder(Frequency.MONTHLY)
        ...     .count(3)
        ...     .by_day(Weekday.TU, Weekday.WE, Weekday.TH)
        ...     .by_set_pos(3)
        ...     .build()
        ... )
        >>> rule.to_ical()
        'FREQ=MONTHLY;COUNT=3;BYDAY=TU,WE,TH;BYSETPOS=3'
    """

    def __init__(self, freq: Union[Frequency, str]):
        self._fields: dict[str, Any] = {"freq": freq}

    def interval(self, interval: int) -> "RecurrenceRuleBuilder":
        self._fields["interval"] = interval
        return self

    def count(self, count: int) -> "RecurrenceRuleBuilder":
        self._fields["count"] = count
        return self

    def until(self, until: DateValue) -> "RecurrenceRuleBuilder":
        self._fields["until"] = until
        return self

    def by_second(self, *seconds: int) -> "RecurrenceRuleBuilder":
        self._fields["by_second"] = seconds
        return self

    def by_minute(self, *minutes: int) -> "RecurrenceRuleBuilder":
        self._fields["by_minute"] = minutes
        return self

    def by_hour(self, *hours: int) -> "RecurrenceRuleBuilder":
        self._fields["by_hour"] = hours
        return self

    def by_day(self, *days: Union[Weekday, WeekdayNum]) -> "RecurrenceRuleBuilder":
        self._fields["by_day"] = tuple(
            day if isinstance(day, WeekdayNum) else WeekdayNum(weekday=day) for day in days
        )
        return self

    def by_month_day(self, *days: int) -> "RecurrenceRuleBuilder":
        self._fields["by_month_day"] = days
        return self

    def by_year_day(self, *days: int) -> "RecurrenceRuleBuilder":
        self._fields["by_year_day"] = days
        return self

    def by_week_no(self, *weeks: int) -> "RecurrenceRuleBuilder":
        self._fields["by_week_no"] = weeks
        return self

    def by_month(self, *months: int) -> "RecurrenceRuleBuilder":
        self._fields["by_month"] = months
        return self

    def by_set_pos(self, *positions: int) -> "RecurrenceRuleBuilder":
        self._fields["by_set_pos"] = positions
        return self

    def week_start(self, weekday: Weekday) -> "RecurrenceRuleBuilder":
        self._fields["week_start"] = weekday
        return self

    def build(self) -> RecurrenceRule:
        """Build the rule.

        Raises:
            RRuleValidationError: If any part is out of range or COUNT and
                UNTIL are both set
        """
        try:
            return RecurrenceRule(**self._fields)
        except ValidationError as e:
            logger.warning("Rejected recurrence rule parts %s: %s", self._fields, e)
            raise RRuleValidationError(f"Invalid recurrence rule: {_describe(e)}") from e
