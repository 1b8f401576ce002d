"""Field generators for recurrence expansion.

Each generator owns one field of the shared :class:`DateTimeBuilder` and
fills it with successive values for the period fixed by the coarser fields.
``generate`` reports a :class:`Step`:

* ``Step.VALUE`` - the field was set to the next value
* ``Step.ROLLOVER`` - no values remain in the current period; the caller
  must advance a coarser generator, after which this one starts over
* ``Step.HALT`` - give up on the whole iteration (throttled)

Generators expose capability flags the iterator inspects:
``single_value`` (exactly one value per period, available as ``value``),
``throttled`` (the generator bounds unproductive cycles and accepts
``work_done()`` notifications) and ``paces_year`` (the generator can name
the first year from a given one that holds one of its slots, see
:meth:`SerialYearGenerator.pace_with`).
"""

import logging
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Union

from . import timeutils
from .models import WeekdayNum
from .timeutils import DateTimeBuilder, fixed_from_gregorian, gregorian_from_fixed, month_length
from .values import CalendarDateTime, DateValue

logger = logging.getLogger(__name__)

DEFAULT_MAX_UNPRODUCTIVE_YEARS = 100


class Step(Enum):
    """Outcome of a single ``generate`` call."""

    VALUE = "value"
    ROLLOVER = "rollover"
    HALT = "halt"


class Generator:
    """Base class for all field generators."""

    single_value = False
    throttled = False
    paces_year = False
    value: Optional[int] = None

    def generate(self, builder: DateTimeBuilder) -> Step:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def pump(generators: Sequence[Generator], builder: DateTimeBuilder, index: Optional[int] = None) -> Step:
    """Drive a coarse-to-fine generator chain until every field is set.

    Starting at ``index`` (the finest generator by default), a rollover moves
    to the next coarser generator and a produced value moves back down to
    the next finer one. The chain is complete once the finest generator has
    produced a value.

    Returns:
        ``Step.VALUE`` when the builder holds a new candidate, ``Step.ROLLOVER``
        when the coarsest generator ran out and ``Step.HALT`` when a throttled
        generator gave up
    """
    last = len(generators) - 1
    i = last if index is None else index
    while i <= last:
        step = generators[i].generate(builder)
        if step is Step.VALUE:
            i += 1
        elif step is Step.HALT:
            return step
        elif i == 0:
            return Step.ROLLOVER
        else:
            i -= 1
    return Step.VALUE


class SerialYearGenerator(Generator):
    """Steps the year by ``interval``, giving up after too many idle years.

    Every call counts against the budget of unproductive years; the iterator
    calls :meth:`work_done` whenever an instance is produced, which refills
    it. Running out yields ``Step.HALT`` so rules such as ``BYMONTH=2;
    BYMONTHDAY=30`` terminate.

    With a pacer set, the year jumps straight to the next one holding a slot
    of the pacer, so a rule whose instances lie centuries apart spends one
    call per instance rather than one per year in between.
    """

    throttled = True

    def __init__(self, interval: int, start: DateValue, max_unproductive_years: int = DEFAULT_MAX_UNPRODUCTIVE_YEARS):
        self.interval = interval
        self.year = start.year - interval
        self.max_unproductive_years = max_unproductive_years
        self.pacer: Optional[Union["_SerialGenerator", "WeekPacer"]] = None
        self._remaining = max_unproductive_years

    def pace_with(self, pacer: Union["_SerialGenerator", "WeekPacer"]) -> None:
        """Skip the years in which ``pacer`` has no slot."""
        if not pacer.paces_year:
            raise ValueError(f"{pacer!r} cannot pace years")
        self.pacer = pacer

    def generate(self, builder: DateTimeBuilder) -> Step:
        self._remaining -= 1
        if self._remaining < 0:
            logger.debug(
                "No instances produced in %d years, stopping at %d",
                self.max_unproductive_years,
                self.year,
            )
            return Step.HALT
        year = self.year + self.interval
        if self.pacer is not None:
            year = max(year, self.pacer.first_year_from(year))
        self.year = year
        builder.year = year
        return Step.VALUE

    def work_done(self) -> None:
        self._remaining = self.max_unproductive_years

    def __repr__(self) -> str:
        return f"SerialYearGenerator(interval={self.interval})"


class _SerialGenerator(Generator):
    """Produces every ``interval``-th unit counted from the start value.

    Units are counted on an absolute scale (months since year 0, fixed days,
    hours since day 0 ...) so the phase carries across periods of different
    lengths. Subclasses map between the builder and that scale.
    """

    paces_year = True
    units_per_day = 1

    def __init__(self, interval: int, start: DateValue):
        self.interval = interval
        start_builder = DateTimeBuilder.from_value(start)
        self._period = self._period_start(start_builder)
        self._last = self._period + self._offset(start_builder) - interval

    def _period_start(self, builder: DateTimeBuilder) -> int:
        """Absolute unit of the first slot in the builder's current period."""
        raise NotImplementedError

    def _offset(self, builder: DateTimeBuilder) -> int:
        """The builder's own field as a zero-based slot within its period."""
        raise NotImplementedError

    def _span(self, builder: DateTimeBuilder) -> int:
        """Number of slots in the builder's current period."""
        raise NotImplementedError

    def _assign(self, builder: DateTimeBuilder, offset: int) -> None:
        raise NotImplementedError

    def generate(self, builder: DateTimeBuilder) -> Step:
        period = self._period_start(builder)
        if period != self._period:
            units_between = period - self._last
            offset = (self.interval - units_between % self.interval) % self.interval
            if offset >= self._span(builder):
                return Step.ROLLOVER
            self._period = period
        else:
            offset = self._last - period + self.interval
            if offset >= self._span(builder):
                return Step.ROLLOVER
        self._last = period + offset
        self._assign(builder, offset)
        return Step.VALUE

    def _year_start(self, year: int) -> int:
        return fixed_from_gregorian(year, 1, 1) * self.units_per_day

    def _year_of(self, unit: int) -> int:
        return gregorian_from_fixed(unit // self.units_per_day)[0]

    def first_year_from(self, year: int) -> int:
        """Year of the first slot on or after January 1st of ``year``."""
        first_unit = self._year_start(year)
        return self._year_of(first_unit + (self._last - first_unit) % self.interval)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(interval={self.interval})"


class SerialMonthGenerator(_SerialGenerator):
    def _year_start(self, year: int) -> int:
        return year * 12

    def _year_of(self, unit: int) -> int:
        return unit // 12

    def _period_start(self, builder: DateTimeBuilder) -> int:
        return builder.year * 12

    def _offset(self, builder: DateTimeBuilder) -> int:
        return builder.month - 1

    def _span(self, builder: DateTimeBuilder) -> int:
        return 12

    def _assign(self, builder: DateTimeBuilder, offset: int) -> None:
        builder.month = offset + 1


class SerialDayGenerator(_SerialGenerator):
    def _period_start(self, builder: DateTimeBuilder) -> int:
        return fixed_from_gregorian(builder.year, builder.month, 1)

    def _offset(self, builder: DateTimeBuilder) -> int:
        return builder.day - 1

    def _span(self, builder: DateTimeBuilder) -> int:
        return month_length(builder.year, builder.month)

    def _assign(self, builder: DateTimeBuilder, offset: int) -> None:
        builder.day = offset + 1


class SerialHourGenerator(_SerialGenerator):
    units_per_day = 24

    def _period_start(self, builder: DateTimeBuilder) -> int:
        return fixed_from_gregorian(builder.year, builder.month, builder.day) * 24

    def _offset(self, builder: DateTimeBuilder) -> int:
        return builder.hour

    def _span(self, builder: DateTimeBuilder) -> int:
        return 24

    def _assign(self, builder: DateTimeBuilder, offset: int) -> None:
        builder.hour = offset


class SerialMinuteGenerator(_SerialGenerator):
    units_per_day = 24 * 60

    def _period_start(self, builder: DateTimeBuilder) -> int:
        day = fixed_from_gregorian(builder.year, builder.month, builder.day)
        return (day * 24 + builder.hour) * 60

    def _offset(self, builder: DateTimeBuilder) -> int:
        return builder.minute

    def _span(self, builder: DateTimeBuilder) -> int:
        return 60

    def _assign(self, builder: DateTimeBuilder, offset: int) -> None:
        builder.minute = offset


class SerialSecondGenerator(_SerialGenerator):
    units_per_day = 24 * 60 * 60

    def _period_start(self, builder: DateTimeBuilder) -> int:
        day = fixed_from_gregorian(builder.year, builder.month, builder.day)
        return ((day * 24 + builder.hour) * 60 + builder.minute) * 60

    def _offset(self, builder: DateTimeBuilder) -> int:
        return builder.second

    def _span(self, builder: DateTimeBuilder) -> int:
        return 60

    def _assign(self, builder: DateTimeBuilder, offset: int) -> None:
        builder.second = offset


class WeekPacer:
    """Year pacing for WEEKLY rules whose days come from a BYDAY list.

    Slots are the weeks a multiple of ``interval`` after the week holding
    ``start``, each beginning on ``week_start``.
    """

    paces_year = True

    def __init__(self, interval: int, week_start: int, start: DateValue):
        self.interval = interval
        self._span = 7 * interval
        self._first_week = timeutils.week_start_fixed(timeutils.fixed_from_value(start), week_start)

    def first_year_from(self, year: int) -> int:
        """First year from ``year`` on that holds a day of a slot week."""
        # a week starting up to six days before January 1st reaches into the year
        earliest = fixed_from_gregorian(year, 1, 1) - 6
        week = earliest + (self._first_week - earliest) % self._span
        return max(year, gregorian_from_fixed(week)[0])

    def __repr__(self) -> str:
        return f"WeekPacer(interval={self.interval})"


class FilteredDayGenerator(Generator):
    """Skips the days of ``generator`` that fail ``predicate``.

    Date-level BY-parts are checked once per day here instead of once for
    every time of day built on that day.
    """

    def __init__(self, generator: Generator, predicate: Callable[[DateValue], bool]):
        self.generator = generator
        self.predicate = predicate

    def generate(self, builder: DateTimeBuilder) -> Step:
        while True:
            step = self.generator.generate(builder)
            if step is not Step.VALUE or self.predicate(builder.to_date()):
                return step

    def __repr__(self) -> str:
        return f"FilteredDayGenerator({self.generator!r})"


class _ListGenerator(Generator):
    """Produces an ascending list of values computed once per period.

    In the period containing ``start`` values below the start's own field
    are skipped, since they can only form candidates before the series
    starts.
    """

    def __init__(self, start: DateValue):
        start_builder = DateTimeBuilder.from_value(start)
        self._start_period = self._period_key(start_builder)
        self._floor = self._field(start_builder)
        self._period: Optional[tuple[int, ...]] = None
        self._values: Sequence[int] = ()
        self._index = 0

    def _period_key(self, builder: DateTimeBuilder) -> tuple[int, ...]:
        raise NotImplementedError

    def _field(self, builder: DateTimeBuilder) -> int:
        raise NotImplementedError

    def _assign(self, builder: DateTimeBuilder, value: int) -> None:
        raise NotImplementedError

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        raise NotImplementedError

    def generate(self, builder: DateTimeBuilder) -> Step:
        period = self._period_key(builder)
        if period != self._period:
            self._period = period
            values = self._values_for(builder)
            if period == self._start_period:
                values = [value for value in values if value >= self._floor]
            self._values = values
            self._index = 0
        if self._index >= len(self._values):
            return Step.ROLLOVER
        self._assign(builder, self._values[self._index])
        self._index += 1
        return Step.VALUE


class ByMonthGenerator(_ListGenerator):
    def __init__(self, months: Iterable[int], start: DateValue):
        self.months = timeutils.uniquify(months)
        super().__init__(start)

    def _period_key(self, builder: DateTimeBuilder) -> tuple[int, ...]:
        return (builder.year,)

    def _field(self, builder: DateTimeBuilder) -> int:
        return builder.month

    def _assign(self, builder: DateTimeBuilder, value: int) -> None:
        builder.month = value

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        return self.months

    def __repr__(self) -> str:
        return f"ByMonthGenerator({list(self.months)})"


class _DayListGenerator(_ListGenerator):
    """Days of the month, recomputed for every month."""

    def _period_key(self, builder: DateTimeBuilder) -> tuple[int, ...]:
        return (builder.year, builder.month)

    def _field(self, builder: DateTimeBuilder) -> int:
        return builder.day

    def _assign(self, builder: DateTimeBuilder, value: int) -> None:
        builder.day = value


class ByMonthDayGenerator(_DayListGenerator):
    """BYMONTHDAY; negative days count back from the end of each month."""

    def __init__(self, month_days: Iterable[int], start: DateValue):
        self.month_days = tuple(month_days)
        super().__init__(start)

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        n_days = month_length(builder.year, builder.month)
        days = (timeutils.invert_ordinal(day, n_days) for day in self.month_days)
        return timeutils.uniquify(day for day in days if 1 <= day <= n_days)

    def __repr__(self) -> str:
        return f"ByMonthDayGenerator({list(self.month_days)})"


class ByYearDayGenerator(_DayListGenerator):
    """BYYEARDAY; negative days count back from the end of each year."""

    def __init__(self, year_days: Iterable[int], start: DateValue):
        self.year_days = tuple(year_days)
        super().__init__(start)

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        n_year_days = timeutils.year_length(builder.year)
        doy_of_month1 = timeutils.day_of_year(builder.year, builder.month, 1)
        n_days = month_length(builder.year, builder.month)
        days = []
        for year_day in self.year_days:
            day = timeutils.invert_ordinal(year_day, n_year_days) - doy_of_month1
            if 1 <= day <= n_days:
                days.append(day)
        return timeutils.uniquify(days)

    def __repr__(self) -> str:
        return f"ByYearDayGenerator({list(self.year_days)})"


class ByWeekNoGenerator(_DayListGenerator):
    """BYWEEKNO; every day of the month whose week number is listed.

    Days near the ends of a year that belong to a week of the neighbouring
    year are matched against that year's week numbering.
    """

    def __init__(self, week_numbers: Iterable[int], week_start: int, start: DateValue):
        self.week_numbers = frozenset(week_numbers)
        self.week_start = week_start
        super().__init__(start)

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        days = []
        weeks_in_year: dict[int, int] = {}
        for day in range(1, month_length(builder.year, builder.month) + 1):
            week_year, week_no = timeutils.week_number(builder.year, builder.month, day, self.week_start)
            if week_no in self.week_numbers:
                days.append(day)
                continue
            if week_year not in weeks_in_year:
                weeks_in_year[week_year] = timeutils.weeks_in_year(week_year, self.week_start)
            if week_no - weeks_in_year[week_year] - 1 in self.week_numbers:
                days.append(day)
        return days

    def __repr__(self) -> str:
        return f"ByWeekNoGenerator({sorted(self.week_numbers)})"


class ByDayGenerator(_DayListGenerator):
    """BYDAY for the days of each month.

    Entries without an ordinal produce every matching weekday of the month.
    Entries with one produce only the Nth (or Nth from the end) matching
    weekday, counted within the month or, with ``weeks_in_year``, within
    the year.
    """

    def __init__(self, days: Iterable[WeekdayNum], weeks_in_year: bool, start: DateValue):
        self.days = tuple(days)
        self.weeks_in_year = weeks_in_year
        super().__init__(start)

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        year, month = builder.year, builder.month
        n_days_in_month = month_length(year, month)
        dow_month1 = timeutils.first_day_of_week_in_month(year, month)
        if self.weeks_in_year:
            dow0 = timeutils.day_of_week(year, 1, 1)
            n_days = timeutils.year_length(year)
            d0 = timeutils.day_of_year(year, month, 1)
        else:
            dow0 = dow_month1
            n_days = n_days_in_month
            d0 = 0

        dates = set()
        for entry in self.days:
            if entry.ordinal is not None:
                date = timeutils.day_num_to_date(dow0, n_days, entry.ordinal, entry.weekday, d0, n_days_in_month)
                if date:
                    dates.add(date)
            else:
                first = 1 + (7 + entry.weekday - dow_month1) % 7
                dates.update(range(first, n_days_in_month + 1, 7))
        return sorted(dates)

    def __repr__(self) -> str:
        return f"ByDayGenerator({[str(day) for day in self.days]}, weeks_in_year={self.weeks_in_year})"


class _TimeListGenerator(_ListGenerator):
    """Literal hour, minute or second lists; the same values in every period."""

    def __init__(self, values: Iterable[int], start: DateValue):
        self.values = timeutils.uniquify(values)
        self.single_value = len(self.values) == 1
        if self.single_value:
            self.value = self.values[0]
        super().__init__(start)

    def _values_for(self, builder: DateTimeBuilder) -> Sequence[int]:
        return self.values

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.values)})"


class ByHourGenerator(_TimeListGenerator):
    def _period_key(self, builder: DateTimeBuilder) -> tuple[int, ...]:
        return (builder.year, builder.month, builder.day)

    def _field(self, builder: DateTimeBuilder) -> int:
        return builder.hour

    def _assign(self, builder: DateTimeBuilder, value: int) -> None:
        builder.hour = value


class ByMinuteGenerator(_TimeListGenerator):
    def _period_key(self, builder: DateTimeBuilder) -> tuple[int, ...]:
        return (builder.year, builder.month, builder.day, builder.hour)

    def _field(self, builder: DateTimeBuilder) -> int:
        return builder.minute

    def _assign(self, builder: DateTimeBuilder, value: int) -> None:
        builder.minute = value


class BySecondGenerator(_TimeListGenerator):
    def _period_key(self, builder: DateTimeBuilder) -> tuple[int, ...]:
        return (builder.year, builder.month, builder.day, builder.hour, builder.minute)

    def _field(self, builder: DateTimeBuilder) -> int:
        return builder.second

    def _assign(self, builder: DateTimeBuilder, value: int) -> None:
        builder.second = value


def time_field(value: DateValue, field: str) -> int:
    """Hour, minute or second of ``value``; 0 for dates without a time."""
    if isinstance(value, CalendarDateTime):
        return int(getattr(value, field))
    return 0
