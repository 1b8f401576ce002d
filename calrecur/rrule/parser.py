"""Parsing of RRULE value text into :class:`RecurrenceRule` descriptors."""

import logging
import re
from typing import Any, Callable

from .exceptions import RRuleParseError, RRuleValidationError
from .models import Frequency, RecurrenceRule, RecurrenceRuleBuilder, WeekdayNum
from .values import CalendarDate, CalendarDateTime, DateValue, Weekday

logger = logging.getLogger(__name__)

_BYDAY_PATTERN = re.compile(r"^([+-]?\d{1,2})?(SU|MO|TU|WE|TH|FR|SA)$")
_DATE_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DATETIME_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z?)$")


def _parse_int(name: str, text: str) -> int:
    try:
        return int(text)
    except ValueError as e:
        raise RRuleParseError(f"{name} expects an integer, got {text!r}") from e


def _parse_int_list(name: str, text: str) -> tuple[int, ...]:
    return tuple(_parse_int(name, item) for item in text.split(","))


def parse_weekday_num(text: str) -> WeekdayNum:
    """Parse a single BYDAY entry such as ``-1FR``.

    Raises:
        RRuleParseError: If the entry is malformed
        RRuleValidationError: If the ordinal is out of range
    """
    match = _BYDAY_PATTERN.match(text.strip().upper())
    if not match:
        raise RRuleParseError(f"Invalid BYDAY entry: {text!r}")
    ordinal = int(match.group(1)) if match.group(1) else None
    return WeekdayNum.of(Weekday[match.group(2)], ordinal)


def parse_date_value(text: str) -> DateValue:
    """Parse a basic-format DATE (``19970902``) or DATE-TIME (``19970902T090000Z``).

    Raises:
        RRuleParseError: If the value is not in either format
    """
    text = text.strip().upper()
    match = _DATETIME_PATTERN.match(text)
    if match:
        year, month, day, hour, minute, second = (int(group) for group in match.groups()[:6])
        value: DateValue = CalendarDateTime(year, month, day, hour, minute, second)
    else:
        match = _DATE_PATTERN.match(text)
        if not match:
            raise RRuleParseError(f"Invalid date value: {text!r}")
        year, month, day = (int(group) for group in match.groups())
        value = CalendarDate(year, month, day)
    try:
        # delegate range checking of the fields to datetime
        value.to_python()
    except ValueError as e:
        raise RRuleParseError(f"Invalid date value: {text!r}") from e
    return value


def _builder_for(value: str) -> RecurrenceRuleBuilder:
    try:
        return RecurrenceRuleBuilder(Frequency(value.upper()))
    except ValueError as e:
        raise RRuleParseError(f"Unknown FREQ: {value!r}") from e


_LIST_PARTS: dict[str, Callable[..., Any]] = {
    "BYSECOND": RecurrenceRuleBuilder.by_second,
    "BYMINUTE": RecurrenceRuleBuilder.by_minute,
    "BYHOUR": RecurrenceRuleBuilder.by_hour,
    "BYMONTHDAY": RecurrenceRuleBuilder.by_month_day,
    "BYYEARDAY": RecurrenceRuleBuilder.by_year_day,
    "BYWEEKNO": RecurrenceRuleBuilder.by_week_no,
    "BYMONTH": RecurrenceRuleBuilder.by_month,
    "BYSETPOS": RecurrenceRuleBuilder.by_set_pos,
}


def _split_parts(text: str) -> list[tuple[str, str]]:
    text = text.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]
    parts = []
    seen = set()
    for raw_part in text.split(";"):
        if not raw_part.strip():
            continue
        name, sep, value = raw_part.partition("=")
        name = name.strip().upper()
        value = value.strip()
        if not sep or not name or not value:
            raise RRuleParseError(f"Malformed rule part: {raw_part!r}", rule_text=text)
        if name in seen:
            raise RRuleParseError(f"Duplicate rule part: {name}", rule_text=text)
        seen.add(name)
        parts.append((name, value))
    return parts


def parse_rrule(text: str) -> RecurrenceRule:
    """Parse RFC 5545 RRULE value text.

    Parts may appear in any order and an optional ``RRULE:`` prefix is
    accepted. Extension parts (``X-...``) are ignored.

    Args:
        text: Rule text, e.g. ``"FREQ=MONTHLY;BYDAY=-1FR;COUNT=5"``

    Returns:
        The validated rule

    Raises:
        RRuleParseError: If the text is malformed or FREQ is missing
        RRuleValidationError: If a value is out of range or COUNT and UNTIL
            are both present
    """
    if not text or not text.strip():
        raise RRuleParseError("Empty RRULE")

    parts = _split_parts(text)
    freq = next((value for name, value in parts if name == "FREQ"), None)
    if freq is None:
        raise RRuleParseError("RRULE is missing FREQ", rule_text=text)
    builder = _builder_for(freq)

    try:
        for name, value in parts:
            if name == "FREQ":
                continue
            if name == "INTERVAL":
                builder.interval(_parse_int(name, value))
            elif name == "COUNT":
                builder.count(_parse_int(name, value))
            elif name == "UNTIL":
                builder.until(parse_date_value(value))
            elif name == "BYDAY":
                builder.by_day(*(parse_weekday_num(item) for item in value.split(",")))
            elif name == "WKST":
                try:
                    builder.week_start(Weekday.from_code(value))
                except ValueError as e:
                    raise RRuleParseError(f"Invalid WKST: {value!r}", rule_text=text) from e
            elif name in _LIST_PARTS:
                _LIST_PARTS[name](builder, *_parse_int_list(name, value))
            elif name.startswith("X-"):
                logger.debug("Ignoring extension rule part %s", name)
            else:
                raise RRuleParseError(f"Unknown rule part: {name}", rule_text=text)

        rule = builder.build()
    except RRuleValidationError as e:
        raise RRuleValidationError(e.message, rule_text=text) from e

    logger.debug("Parsed RRULE %r as %s", text, rule)
    return rule
