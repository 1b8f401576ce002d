"""Calendar arithmetic for recurrence expansion.

Everything here works on proleptic Gregorian field values and is zone
agnostic, except for :func:`to_utc` and :func:`from_utc` which apply a
caller supplied ``tzinfo``.  Day numbers are "fixed" day counts where day 1
is 0001-01-01, so ``fixed % 7`` is the weekday with Sunday as 0.
"""

from datetime import MAXYEAR, MINYEAR, datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, Iterable, Optional

from .values import CalendarDate, CalendarDateTime, DateValue, Weekday

if TYPE_CHECKING:
    from .models import WeekdayNum

MONTH_LENGTHS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

SECONDS_PER_DAY = 86400

# Years datetime can represent with room for a zone offset either side.
_MIN_OFFSET_YEAR = MINYEAR + 1
_MAX_OFFSET_YEAR = MAXYEAR - 1


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def year_length(year: int) -> int:
    return 366 if is_leap_year(year) else 365


def _normalize_month(year: int, month: int) -> tuple[int, int]:
    return year + (month - 1) // 12, (month - 1) % 12 + 1


def month_length(year: int, month: int) -> int:
    """Number of days in a month; out of range months roll into adjacent years."""
    year, month = _normalize_month(year, month)
    if month == 2 and is_leap_year(year):
        return 29
    return MONTH_LENGTHS[month - 1]


def fixed_from_gregorian(year: int, month: int, day: int) -> int:
    """Fixed day number of a date; ``day`` may fall outside the month."""
    year, month = _normalize_month(year, month)
    prior_year = year - 1
    fixed = (
        365 * prior_year
        + prior_year // 4
        - prior_year // 100
        + prior_year // 400
        + (367 * month - 362) // 12
        + day
    )
    if month > 2:
        fixed -= 1 if is_leap_year(year) else 2
    return fixed


def _gregorian_year_from_fixed(fixed: int) -> int:
    d0 = fixed - 1
    n400, d1 = divmod(d0, 146097)
    n100, d2 = divmod(d1, 36524)
    n4, d3 = divmod(d2, 1461)
    n1 = d3 // 365
    year = 400 * n400 + 100 * n100 + 4 * n4 + n1
    if n100 == 4 or n1 == 4:
        return year
    return year + 1


def gregorian_from_fixed(fixed: int) -> tuple[int, int, int]:
    """Inverse of :func:`fixed_from_gregorian`; returns ``(year, month, day)``."""
    year = _gregorian_year_from_fixed(fixed)
    prior_days = fixed - fixed_from_gregorian(year, 1, 1)
    if fixed < fixed_from_gregorian(year, 3, 1):
        correction = 0
    elif is_leap_year(year):
        correction = 1
    else:
        correction = 2
    month = (12 * (prior_days + correction) + 373) // 367
    day = fixed - fixed_from_gregorian(year, month, 1) + 1
    return year, month, day


def fixed_from_value(value: DateValue) -> int:
    return fixed_from_gregorian(value.year, value.month, value.day)


def day_of_week(year: int, month: int, day: int) -> Weekday:
    return Weekday(fixed_from_gregorian(year, month, day) % 7)


def first_day_of_week_in_month(year: int, month: int) -> Weekday:
    return day_of_week(year, month, 1)


def day_of_year(year: int, month: int, day: int) -> int:
    """Zero-based day of the year, so January 1st is 0."""
    return fixed_from_gregorian(year, month, day) - fixed_from_gregorian(year, 1, 1)


def days_between(a: DateValue, b: DateValue) -> int:
    """Whole days from ``b`` to ``a`` ignoring any time of day."""
    return fixed_from_value(a) - fixed_from_value(b)


def add_days(value: DateValue, days: int) -> DateValue:
    """Shift ``value`` by whole days, keeping its type and time of day."""
    year, month, day = gregorian_from_fixed(fixed_from_value(value) + days)
    if isinstance(value, CalendarDateTime):
        return CalendarDateTime(year, month, day, value.hour, value.minute, value.second)
    return CalendarDate(year, month, day)


def add_seconds(value: CalendarDateTime, seconds: int) -> CalendarDateTime:
    return CalendarDateTime(
        *normalize(value.year, value.month, value.day, value.hour, value.minute, value.second + seconds)
    )


def normalize(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
) -> tuple[int, int, int, int, int, int]:
    """Carry overflowing or negative fields into the coarser ones."""
    carry_minutes, second = divmod(second, 60)
    carry_hours, minute = divmod(minute + carry_minutes, 60)
    carry_days, hour = divmod(hour + carry_hours, 24)
    year, month = _normalize_month(year, month)
    fixed = fixed_from_gregorian(year, month, 1) + day - 1 + carry_days
    year, month, day = gregorian_from_fixed(fixed)
    return year, month, day, hour, minute, second


def invert_ordinal(ordinal: int, count: int) -> int:
    """Convert a negative from-the-end position into a one-based position.

    ``-1`` becomes ``count``, ``-2`` becomes ``count - 1`` and so on; positive
    ordinals are returned unchanged. Results outside ``1..count`` mean the
    ordinal does not exist in the period.
    """
    if ordinal < 0:
        return count + ordinal + 1
    return ordinal


def day_num_to_date(
    dow0: int, n_days: int, week_num: int, dow: int, d0: int, n_days_in_month: int
) -> int:
    """Day of the month of the ``week_num``-th ``dow`` in a period.

    Args:
        dow0: weekday of the first day of the period
        n_days: number of days in the period (a month or a year)
        week_num: one-based ordinal, negative to count from the end
        dow: the weekday sought
        d0: zero-based day of the period on which the month starts
        n_days_in_month: length of the month the result must fall in

    Returns:
        The day of the month, or 0 if that weekday does not land in the month
    """
    first_date_of_dow = 1 + (7 + dow - dow0) % 7
    if week_num > 0:
        date = (week_num - 1) * 7 + first_date_of_dow - d0
    else:
        last_date_of_dow = first_date_of_dow + 7 * 54
        last_date_of_dow -= 7 * ((last_date_of_dow - n_days + 6) // 7)
        date = last_date_of_dow + 7 * (week_num + 1) - d0
    if date <= 0 or date > n_days_in_month:
        return 0
    return date


def count_in_period(dow: int, dow0: int, n_days: int) -> int:
    """Number of times ``dow`` occurs in a period starting on ``dow0``."""
    if dow >= dow0:
        return 1 + (n_days - (dow - dow0) - 1) // 7
    return 1 + (n_days - (7 - (dow0 - dow)) - 1) // 7


def invert_weekday_num(weekday_num: "WeekdayNum", dow0: int, n_days: int) -> int:
    """Positive ordinal equivalent to a negative BYDAY ordinal in a period."""
    return count_in_period(weekday_num.weekday, dow0, n_days) + weekday_num.ordinal + 1


def week_start_fixed(fixed: int, week_start: int) -> int:
    """Fixed day number of the start of the week containing ``fixed``."""
    return fixed - (fixed - week_start) % 7


def _week_one_start(year: int, week_start: int) -> int:
    # week 1 is the first week with at least four days in the year
    jan1 = fixed_from_gregorian(year, 1, 1)
    start = week_start_fixed(jan1, week_start)
    if jan1 - start > 3:
        start += 7
    return start


def weeks_in_year(year: int, week_start: int) -> int:
    return (_week_one_start(year + 1, week_start) - _week_one_start(year, week_start)) // 7


def week_number(year: int, month: int, day: int, week_start: int) -> tuple[int, int]:
    """RFC 5545 week number of a date.

    Returns:
        ``(week_year, week_no)``; the week year differs from ``year`` for days
        at either end of the year that belong to a neighbouring year's weeks
    """
    fixed = fixed_from_gregorian(year, month, day)
    start = _week_one_start(year, week_start)
    if fixed < start:
        year -= 1
        start = _week_one_start(year, week_start)
    else:
        next_start = _week_one_start(year + 1, week_start)
        if fixed >= next_start:
            year += 1
            start = next_start
    return year, (fixed - start) // 7 + 1


def uniquify(values: Iterable[int]) -> tuple[int, ...]:
    """Sorted tuple of the distinct values."""
    return tuple(sorted(set(values)))


def _offset_datetime(value: CalendarDateTime) -> datetime:
    # zone rules have to be looked up on a representable datetime
    year = min(max(value.year, _MIN_OFFSET_YEAR), _MAX_OFFSET_YEAR)
    day = value.day if year == value.year else min(value.day, 28)
    return datetime(year, value.month, day, value.hour, value.minute, value.second)


def _offset_seconds(offset: Optional[timedelta]) -> int:
    if offset is None:
        return 0
    return offset.days * SECONDS_PER_DAY + offset.seconds


def to_utc(value: DateValue, tz: Optional[tzinfo]) -> DateValue:
    """Convert local wall-clock fields in ``tz`` to UTC.

    Dates without a time of day are floating and returned unchanged, as are
    values when ``tz`` is ``None`` or UTC. For years outside the range of
    ``datetime`` the offset at the nearest representable year is used.
    """
    if not isinstance(value, CalendarDateTime) or tz is None or tz is timezone.utc:
        return value
    offset = _offset_seconds(tz.utcoffset(_offset_datetime(value)))
    if offset == 0:
        return value
    return add_seconds(value, -offset)


def from_utc(value: DateValue, tz: Optional[tzinfo]) -> DateValue:
    """Convert a UTC value to wall-clock fields in ``tz``."""
    if not isinstance(value, CalendarDateTime) or tz is None or tz is timezone.utc:
        return value
    utc_value = _offset_datetime(value).replace(tzinfo=timezone.utc)
    offset = _offset_seconds(utc_value.astimezone(tz).utcoffset())
    if offset == 0:
        return value
    return add_seconds(value, offset)


class DateTimeBuilder:
    """Mutable field tuple shared by the generators of one iterator.

    Fields are written coarse to fine by the generators; only the generators
    keep them within range, the builder itself does no validation.
    """

    __slots__ = ("year", "month", "day", "hour", "minute", "second")

    def __init__(
        self, year: int, month: int = 1, day: int = 1, hour: int = 0, minute: int = 0, second: int = 0
    ):
        self.year = year
        self.month = month
        self.day = day
        self.hour = hour
        self.minute = minute
        self.second = second

    @classmethod
    def from_value(cls, value: DateValue) -> "DateTimeBuilder":
        if isinstance(value, CalendarDateTime):
            return cls(value.year, value.month, value.day, value.hour, value.minute, value.second)
        return cls(value.year, value.month, value.day)

    def to_date(self) -> CalendarDate:
        return CalendarDate(self.year, self.month, self.day)

    def to_datetime(self) -> CalendarDateTime:
        return CalendarDateTime(self.year, self.month, self.day, self.hour, self.minute, self.second)

    def to_value(self, has_time: bool) -> DateValue:
        return self.to_datetime() if has_time else self.to_date()

    def __repr__(self) -> str:
        return (
            f"DateTimeBuilder({self.year}, {self.month}, {self.day}, "
            f"{self.hour}, {self.minute}, {self.second})"
        )
