"""RRULE parsing and recurrence expansion."""

from .adapter import DateTimeIterator, iterate_datetimes, occurrences_between, resolve_timezone
from .compound import CompoundIterator, RecurrenceSet
from .exceptions import (
    IteratorExhaustedError,
    RecurrenceError,
    RRuleParseError,
    RRuleValidationError,
    UnsupportedOperationError,
)
from .iterator import RecurrenceIterator, RRuleIterator, create_recurrence_iterator
from .models import Frequency, RecurrenceRule, RecurrenceRuleBuilder, WeekdayNum
from .parser import parse_date_value, parse_rrule
from .rdate import RDateIterator
from .values import CalendarDate, CalendarDateTime, Weekday

__all__ = [
    "CalendarDate",
    "CalendarDateTime",
    "CompoundIterator",
    "DateTimeIterator",
    "Frequency",
    "IteratorExhaustedError",
    "RDateIterator",
    "RRuleIterator",
    "RRuleParseError",
    "RRuleValidationError",
    "RecurrenceError",
    "RecurrenceIterator",
    "RecurrenceRule",
    "RecurrenceRuleBuilder",
    "RecurrenceSet",
    "UnsupportedOperationError",
    "Weekday",
    "WeekdayNum",
    "create_recurrence_iterator",
    "iterate_datetimes",
    "occurrences_between",
    "parse_date_value",
    "parse_rrule",
    "resolve_timezone",
]
