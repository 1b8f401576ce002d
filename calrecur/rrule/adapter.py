"""Expansion of recurrence rules over Python ``date`` and ``datetime`` values."""

import logging
from datetime import date, datetime, time, timezone, tzinfo
from typing import Iterator, Optional, Union

from dateutil import tz as dateutil_tz

from ..config.settings import RecurrenceSettings, get_settings
from .exceptions import RRuleValidationError
from .iterator import RRuleIterator, create_recurrence_iterator
from .models import RecurrenceRule
from .timeutils import add_days
from .values import CalendarDate, CalendarDateTime, DateValue

UTC = timezone.utc

logger = logging.getLogger(__name__)

PythonDate = Union[date, datetime]
ZoneLike = Union[str, tzinfo, None]


def resolve_timezone(zone: ZoneLike, settings: Optional[RecurrenceSettings] = None) -> tzinfo:
    """Resolve a zone name (e.g. ``"America/New_York"``) or pass a tzinfo through.

    ``None`` falls back to ``settings.default_timezone``.

    Raises:
        RRuleValidationError: If the zone name is unknown
    """
    if isinstance(zone, tzinfo):
        return zone
    if zone is None:
        zone = (settings or get_settings()).default_timezone
    if zone.upper() in ("UTC", "Z"):
        return UTC
    resolved = dateutil_tz.gettz(zone)
    if resolved is None:
        logger.warning("Unknown time zone %r", zone)
        raise RRuleValidationError(f"Unknown time zone: {zone}")
    return resolved


def to_calendar_value(value: PythonDate) -> DateValue:
    """Engine value holding the wall-clock fields of ``value``."""
    if isinstance(value, datetime):
        return CalendarDateTime.from_python(value)
    return CalendarDate.from_python(value)


def to_utc_value(value: PythonDate, zone: tzinfo) -> DateValue:
    """Engine value in UTC; naive date-times are taken to be in ``zone``."""
    if not isinstance(value, datetime):
        return CalendarDate.from_python(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return CalendarDateTime.from_python(value.astimezone(UTC))


def to_python_value(value: DateValue) -> PythonDate:
    """Python ``date`` for dates, aware UTC ``datetime`` for date-times."""
    if isinstance(value, CalendarDateTime):
        return value.to_python(UTC)
    return value.to_python()


def _date_bound(value: PythonDate) -> CalendarDate:
    """First whole date at or after ``value``, for windows over date-only series."""
    bound = CalendarDate.from_python(value)
    if isinstance(value, datetime) and value.time() != time(0):
        return add_days(bound, 1)
    return bound


class DateTimeIterator:
    """Iterates a rule's occurrences as Python ``date``/``datetime`` values.

    An aware ``dtstart`` is expanded in its own zone, unless ``tz`` is given,
    in which case it is first converted to ``tz``. A naive one is taken to be
    in ``tz`` or, failing that, ``settings.default_timezone``. Date-time
    occurrences are returned as aware UTC datetimes.

    Args:
        rule: the rule or its RRULE value text
        dtstart: first instant of the series
        tz: zone name or tzinfo
        settings: expansion settings, the global settings by default
    """

    def __init__(
        self,
        rule: Union[RecurrenceRule, str],
        dtstart: PythonDate,
        tz: ZoneLike = None,
        settings: Optional[RecurrenceSettings] = None,
    ):
        self.settings = settings or get_settings()
        if isinstance(dtstart, datetime) and dtstart.tzinfo is not None:
            if tz is None:
                zone = dtstart.tzinfo
            else:
                zone = resolve_timezone(tz, self.settings)
                dtstart = dtstart.astimezone(zone)
        else:
            zone = resolve_timezone(tz, self.settings)
        self.zone = zone
        self._iterator: RRuleIterator = create_recurrence_iterator(
            rule, to_calendar_value(dtstart), zone, self.settings
        )

    @property
    def rule(self) -> RecurrenceRule:
        return self._iterator.rule

    @property
    def engine(self) -> RRuleIterator:
        """The underlying iterator, producing engine values in UTC."""
        return self._iterator

    def advance_to(self, when: PythonDate) -> None:
        """Skip occurrences before ``when``; naive values are in the iterator's zone."""
        self._iterator.advance_to(to_utc_value(when, self.zone))

    def __iter__(self) -> "DateTimeIterator":
        return self

    def __next__(self) -> PythonDate:
        return to_python_value(next(self._iterator))

    def __repr__(self) -> str:
        return f"DateTimeIterator({self.rule}, zone={self.zone})"


def iterate_datetimes(
    rule: Union[RecurrenceRule, str],
    dtstart: PythonDate,
    tz: ZoneLike = None,
    settings: Optional[RecurrenceSettings] = None,
) -> Iterator[PythonDate]:
    """Generator over the occurrences of ``rule`` as Python values.

    Example:
        >>> from datetime import datetime, timezone
        >>> list(iterate_datetimes("FREQ=DAILY;COUNT=2", datetime(2014, 11, 22, 10, tzinfo=timezone.utc)))
        [datetime.datetime(2014, 11, 22, 10, 0, tzinfo=datetime.timezone.utc), datetime.datetime(2014, 11, 23, 10, 0, tzinfo=datetime.timezone.utc)]
    """
    yield from DateTimeIterator(rule, dtstart, tz, settings)


def occurrences_between(
    rule: Union[RecurrenceRule, str],
    dtstart: PythonDate,
    start: PythonDate,
    end: PythonDate,
    max_occurrences: Optional[int] = None,
    tz: ZoneLike = None,
    settings: Optional[RecurrenceSettings] = None,
) -> list[PythonDate]:
    """Occurrences within ``[start, end)``.

    At most ``max_occurrences`` are returned, and never more than
    ``settings.max_occurrences``.

    Raises:
        ValueError: If ``end`` is before ``start``
    """
    settings = settings or get_settings()
    limit = settings.max_occurrences if max_occurrences is None else min(max_occurrences, settings.max_occurrences)
    iterator = DateTimeIterator(rule, dtstart, tz, settings)
    if isinstance(dtstart, datetime):
        window_start = to_utc_value(start, iterator.zone)
        window_end = to_utc_value(end, iterator.zone)
    else:
        window_start = _date_bound(start)
        window_end = _date_bound(end)
    if window_end < window_start:
        raise ValueError(f"Window end {end} is before its start {start}")

    iterator.engine.advance_to(window_start)
    occurrences: list[PythonDate] = []
    engine_iterator = iterator.engine
    while len(occurrences) < limit and engine_iterator.has_next():
        value = engine_iterator.next()
        if not value < window_end:
            break
        occurrences.append(to_python_value(value))

    if len(occurrences) == limit:
        logger.info("Stopped expanding %s at %d occurrences", iterator.rule, limit)
    logger.debug("Found %d occurrences of %s between %s and %s", len(occurrences), iterator.rule, start, end)
    return occurrences
