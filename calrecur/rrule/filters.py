"""Predicates that reject candidates failing secondary BY-rule parts.

Every factory here precomputes its lookup from the rule once and returns a
plain callable over a candidate value. Filters keep no state between calls.
"""

from typing import Callable, Iterable, Sequence

from . import timeutils
from .models import WeekdayNum
from .values import CalendarDateTime, DateValue

Predicate = Callable[[DateValue], bool]


def always_true(value: DateValue) -> bool:
    return True


def all_of(predicates: Sequence[Predicate]) -> Predicate:
    """AND together ``predicates``; an empty sequence accepts everything."""
    predicates = tuple(predicate for predicate in predicates if predicate is not always_true)
    if not predicates:
        return always_true
    if len(predicates) == 1:
        return predicates[0]

    def predicate(value: DateValue) -> bool:
        return all(check(value) for check in predicates)

    return predicate


def by_day_filter(days: Iterable[WeekdayNum], weeks_in_year: bool) -> Predicate:
    """BYDAY membership.

    Entries without an ordinal match the weekday anywhere. Entries with one
    match only the Nth (or Nth from the end) such weekday of the month, or of
    the year when ``weeks_in_year`` is set.
    """
    plain = 0
    ordinals: list[WeekdayNum] = []
    for entry in days:
        if entry.ordinal is None:
            plain |= 1 << entry.weekday
        else:
            ordinals.append(entry)

    def predicate(value: DateValue) -> bool:
        dow = timeutils.day_of_week(value.year, value.month, value.day)
        if plain & (1 << dow):
            return True
        if not ordinals:
            return False
        if weeks_in_year:
            index = timeutils.day_of_year(value.year, value.month, value.day)
            n_days = timeutils.year_length(value.year)
            dow0 = timeutils.day_of_week(value.year, 1, 1)
        else:
            index = value.day - 1
            n_days = timeutils.month_length(value.year, value.month)
            dow0 = timeutils.first_day_of_week_in_month(value.year, value.month)
        nth = index // 7 + 1
        for entry in ordinals:
            if entry.weekday != dow:
                continue
            ordinal = entry.ordinal if entry.ordinal > 0 else timeutils.invert_weekday_num(entry, dow0, n_days)
            if ordinal == nth:
                return True
        return False

    return predicate


def by_month_day_filter(month_days: Iterable[int]) -> Predicate:
    """BYMONTHDAY membership; negative days are resolved per month."""
    positive = 0
    negative = 0
    for day in month_days:
        if day > 0:
            positive |= 1 << day
        else:
            negative |= 1 << -day

    def predicate(value: DateValue) -> bool:
        n_days = timeutils.month_length(value.year, value.month)
        return bool(positive & (1 << value.day) or negative & (1 << (n_days - value.day + 1)))

    return predicate


def by_year_day_filter(year_days: Iterable[int]) -> Predicate:
    year_days = frozenset(year_days)

    def predicate(value: DateValue) -> bool:
        day = timeutils.day_of_year(value.year, value.month, value.day) + 1
        if day in year_days:
            return True
        return day - timeutils.year_length(value.year) - 1 in year_days

    return predicate


def by_week_no_filter(week_numbers: Iterable[int], week_start: int) -> Predicate:
    week_numbers = frozenset(week_numbers)

    def predicate(value: DateValue) -> bool:
        week_year, week_no = timeutils.week_number(value.year, value.month, value.day, week_start)
        if week_no in week_numbers:
            return True
        return week_no - timeutils.weeks_in_year(week_year, week_start) - 1 in week_numbers

    return predicate


def by_month_filter(months: Iterable[int]) -> Predicate:
    mask = 0
    for month in months:
        mask |= 1 << month

    def predicate(value: DateValue) -> bool:
        return bool(mask & (1 << value.month))

    return predicate


def _time_bitmask_filter(values: Iterable[int], n_bits: int, field: str) -> Predicate:
    mask = 0
    for bit in values:
        mask |= 1 << bit
    if mask == (1 << n_bits) - 1:
        return always_true

    def predicate(value: DateValue) -> bool:
        if not isinstance(value, CalendarDateTime):
            return True
        return bool(mask & (1 << getattr(value, field)))

    return predicate


def by_hour_filter(hours: Iterable[int]) -> Predicate:
    return _time_bitmask_filter(hours, 24, "hour")


def by_minute_filter(minutes: Iterable[int]) -> Predicate:
    return _time_bitmask_filter(minutes, 60, "minute")


def by_second_filter(seconds: Iterable[int]) -> Predicate:
    return _time_bitmask_filter(seconds, 60, "second")


def week_interval_filter(interval: int, week_start: int, dtstart: DateValue) -> Predicate:
    """Accept only weeks that are a multiple of ``interval`` after the start week.

    Weeks begin on ``week_start``, so a WEEKLY rule with ``WKST=SU`` and one
    with ``WKST=MO`` can select different days near the week boundary.
    """
    first_week = timeutils.week_start_fixed(timeutils.fixed_from_value(dtstart), week_start)

    def predicate(value: DateValue) -> bool:
        weeks = (timeutils.fixed_from_value(value) - first_week) // 7
        return weeks % interval == 0

    return predicate
