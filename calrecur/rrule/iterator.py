"""Recurrence iterators and assembly of the generator chain for a rule.

An :class:`RRuleIterator` owns one mutable :class:`DateTimeBuilder` and a
fixed, coarse-to-fine tuple of field generators that write into it. Each
candidate the chain assembles is run through the rule's filters, the
optional BYSETPOS stage and the COUNT/UNTIL condition before it is handed
out in UTC.
"""

import logging
from abc import ABC, abstractmethod
from datetime import tzinfo
from math import gcd
from typing import NamedTuple, Optional, Union

from ..config.settings import RecurrenceSettings, get_settings
from . import filters as rrule_filters
from .conditions import condition_for
from .exceptions import IteratorExhaustedError, RRuleValidationError, UnsupportedOperationError
from .filters import Predicate, all_of
from .generators import (
    ByDayGenerator,
    ByHourGenerator,
    ByMinuteGenerator,
    ByMonthDayGenerator,
    ByMonthGenerator,
    BySecondGenerator,
    ByWeekNoGenerator,
    ByYearDayGenerator,
    FilteredDayGenerator,
    Generator,
    SerialDayGenerator,
    SerialHourGenerator,
    SerialMinuteGenerator,
    SerialMonthGenerator,
    SerialSecondGenerator,
    SerialYearGenerator,
    Step,
    WeekPacer,
    pump,
    time_field,
)
from .instances import SerialInstanceGenerator, SetPosInstanceGenerator, period_key_for, period_start
from .models import Frequency, RecurrenceRule, WeekdayNum
from .parser import parse_rrule
from .timeutils import DateTimeBuilder, add_days, from_utc, to_utc
from .values import CalendarDateTime, DateValue

logger = logging.getLogger(__name__)


class RecurrenceIterator(ABC):
    """Forward-only iterator over ascending recurrence values.

    Besides the Python iterator protocol, recurrence iterators offer an
    explicit ``has_next``/``next`` pair and :meth:`advance_to` for skipping
    ahead without producing the skipped values.
    """

    @abstractmethod
    def has_next(self) -> bool:
        """Whether another value is available."""

    @abstractmethod
    def next(self) -> DateValue:
        """Return the next value.

        Raises:
            IteratorExhaustedError: If no value remains
        """

    @abstractmethod
    def advance_to(self, target: DateValue) -> None:
        """Skip every value strictly before ``target``. Never moves backwards."""

    def remove(self) -> None:
        raise UnsupportedOperationError(f"{type(self).__name__} does not support remove()")

    def __iter__(self) -> "RecurrenceIterator":
        return self

    def __next__(self) -> DateValue:
        if not self.has_next():
            raise StopIteration
        return self.next()


class GeneratorChain(NamedTuple):
    """Field generators for a rule, coarsest first, plus its time filters.

    Date-level BY-parts not produced by a generator are applied by the day
    generator itself. ``reachable`` is false when the rule's interval steps
    never land on its BYHOUR, BYMINUTE and BYSECOND values.
    """

    year: SerialYearGenerator
    month: Generator
    day: Generator
    hour: Generator
    minute: Generator
    second: Generator
    filters: tuple[Predicate, ...]
    reachable: bool = True


def _plain_by_day(rule: RecurrenceRule) -> tuple[WeekdayNum, ...]:
    """BYDAY entries usable for the rule's frequency.

    Ordinals only have a meaning within a month or a year, so they are
    dropped from rules of any other frequency.
    """
    if not rule.has_ordinal_by_day or rule.freq in (Frequency.MONTHLY, Frequency.YEARLY):
        return rule.by_day
    logger.warning("Ignoring BYDAY ordinals in %s rule %s", rule.freq.value, rule)
    return tuple(WeekdayNum(weekday=entry.weekday) for entry in rule.by_day)


def _month_generator(
    rule: RecurrenceRule, dtstart: DateValue, gen_start: DateValue, filters: list[Predicate]
) -> Generator:
    if rule.by_month:
        if rule.freq is Frequency.MONTHLY and rule.interval > 1:
            filters.append(rrule_filters.by_month_filter(rule.by_month))
            return SerialMonthGenerator(rule.interval, gen_start)
        return ByMonthGenerator(rule.by_month, gen_start)
    if rule.freq is Frequency.YEARLY and not (
        rule.by_year_day or rule.by_month_day or rule.by_week_no or rule.by_day
    ):
        return ByMonthGenerator([dtstart.month], gen_start)
    return SerialMonthGenerator(rule.interval if rule.freq is Frequency.MONTHLY else 1, gen_start)


def _day_generator(
    rule: RecurrenceRule,
    by_day: tuple[WeekdayNum, ...],
    dtstart: DateValue,
    gen_start: DateValue,
    filters: list[Predicate],
) -> Generator:
    freq = rule.freq
    weeks_in_year = freq is Frequency.YEARLY and not rule.by_month
    used = set()
    generator: Generator

    if freq is Frequency.WEEKLY:
        if by_day:
            generator = ByDayGenerator(by_day, False, gen_start)
            used.add("by_day")
            if rule.interval > 1:
                filters.append(rrule_filters.week_interval_filter(rule.interval, rule.week_start, dtstart))
        else:
            generator = SerialDayGenerator(7 * rule.interval, dtstart)
    elif freq is Frequency.DAILY and rule.interval > 1:
        generator = SerialDayGenerator(rule.interval, dtstart)
    elif rule.by_year_day:
        generator = ByYearDayGenerator(rule.by_year_day, gen_start)
        used.add("by_year_day")
    elif rule.by_month_day:
        generator = ByMonthDayGenerator(rule.by_month_day, gen_start)
        used.add("by_month_day")
    elif rule.by_week_no:
        generator = ByWeekNoGenerator(rule.by_week_no, rule.week_start, gen_start)
        used.add("by_week_no")
    elif by_day:
        generator = ByDayGenerator(by_day, weeks_in_year, gen_start)
        used.add("by_day")
    elif freq in (Frequency.YEARLY, Frequency.MONTHLY):
        generator = ByMonthDayGenerator([dtstart.day], gen_start)
    else:
        generator = SerialDayGenerator(1, dtstart)

    # day parts the generator does not produce still restrict the result
    if by_day and "by_day" not in used:
        filters.append(rrule_filters.by_day_filter(by_day, weeks_in_year))
    if rule.by_month_day and "by_month_day" not in used:
        filters.append(rrule_filters.by_month_day_filter(rule.by_month_day))
    if rule.by_year_day and "by_year_day" not in used:
        filters.append(rrule_filters.by_year_day_filter(rule.by_year_day))
    if rule.by_week_no and "by_week_no" not in used:
        filters.append(rrule_filters.by_week_no_filter(rule.by_week_no, rule.week_start))
    return generator


_TIME_FIELDS = {
    "hour": (Frequency.HOURLY, ByHourGenerator, SerialHourGenerator, rrule_filters.by_hour_filter),
    "minute": (Frequency.MINUTELY, ByMinuteGenerator, SerialMinuteGenerator, rrule_filters.by_minute_filter),
    "second": (Frequency.SECONDLY, BySecondGenerator, SerialSecondGenerator, rrule_filters.by_second_filter),
}


def _time_generator(
    rule: RecurrenceRule,
    field: str,
    values: tuple[int, ...],
    dtstart: DateValue,
    gen_start: DateValue,
    filters: list[Predicate],
) -> Generator:
    field_freq, list_cls, serial_cls, filter_factory = _TIME_FIELDS[field]
    if rule.freq is field_freq:
        if values and rule.interval == 1:
            return list_cls(values, gen_start)
        if values:
            filters.append(filter_factory(values))
        return serial_cls(rule.interval, dtstart)
    if rule.freq.is_finer_than(field_freq):
        return list_cls(values, gen_start) if values else serial_cls(1, dtstart)
    return list_cls(values or [time_field(dtstart, field)], gen_start)


# units in a day and the weight of hour, minute and second in those units
_DAY_UNITS = {
    Frequency.HOURLY: (24, (1,)),
    Frequency.MINUTELY: (24 * 60, (60, 1)),
    Frequency.SECONDLY: (24 * 60 * 60, (60 * 60, 60, 1)),
}


def _time_values_reachable(rule: RecurrenceRule, dtstart: DateValue) -> bool:
    """Whether the slots of a sub-daily rule can fall on its time BY-values.

    Every slot lies a multiple of INTERVAL units after ``dtstart``, so its
    time of day keeps the start's remainder modulo the greatest common
    divisor of INTERVAL and the number of units in a day.
    """
    if rule.freq not in _DAY_UNITS:
        return True
    units_per_day, weights = _DAY_UNITS[rule.freq]
    step = gcd(rule.interval, units_per_day)
    fields = (("hour", rule.by_hour, 24), ("minute", rule.by_minute, 60), ("second", rule.by_second, 60))
    fields = fields[: len(weights)]
    if step == 1 or not any(values for _, values, _ in fields):
        return True

    start = sum(time_field(dtstart, field) * weight for (field, _, _), weight in zip(fields, weights))
    residues = {0}
    for (_, values, size), weight in zip(fields, weights):
        residues = {(residue + value * weight) % step for residue in residues for value in values or range(size)}
    return start % step in residues


def _year_pacer(
    rule: RecurrenceRule, dtstart: DateValue, fields: dict[Frequency, Generator]
) -> Optional[Union[Generator, WeekPacer]]:
    """The generator whose slots decide which years can hold an instance."""
    if rule.freq is Frequency.YEARLY or rule.interval == 1:
        return None
    if rule.freq is Frequency.WEEKLY and isinstance(fields[Frequency.WEEKLY], ByDayGenerator):
        return WeekPacer(rule.interval, rule.week_start, dtstart)
    generator = fields[rule.freq]
    return generator if generator.paces_year else None


def build_generator_chain(
    rule: RecurrenceRule,
    dtstart: DateValue,
    gen_start: Optional[DateValue] = None,
    max_unproductive_years: int = 100,
) -> GeneratorChain:
    """Pick a generator for every field of ``rule`` and collect its filters.

    Each BY-part is either produced directly by the generator of its field
    or, where another part already drives that field, checked by a filter.
    For rules with an INTERVAL below YEARLY the year generator is paced by
    the generator that steps the rule's own frequency.

    Args:
        rule: the rule to expand
        dtstart: the series start; supplies defaults for unset fields and the
            phase of interval-stepped fields
        gen_start: where list generators start, the beginning of the first
            period when BYSETPOS must see whole periods (``dtstart`` if unset)
        max_unproductive_years: years without an instance before giving up
    """
    if gen_start is None:
        gen_start = dtstart
    date_filters: list[Predicate] = []
    time_filters: list[Predicate] = []
    by_day = _plain_by_day(rule)

    year = SerialYearGenerator(
        rule.interval if rule.freq is Frequency.YEARLY else 1, gen_start, max_unproductive_years
    )
    month = _month_generator(rule, dtstart, gen_start, date_filters)
    day = _day_generator(rule, by_day, dtstart, gen_start, date_filters)
    hour = _time_generator(rule, "hour", rule.by_hour, dtstart, gen_start, time_filters)
    minute = _time_generator(rule, "minute", rule.by_minute, dtstart, gen_start, time_filters)
    second = _time_generator(rule, "second", rule.by_second, dtstart, gen_start, time_filters)

    pacer = _year_pacer(
        rule,
        dtstart,
        {
            Frequency.MONTHLY: month,
            Frequency.WEEKLY: day,
            Frequency.DAILY: day,
            Frequency.HOURLY: hour,
            Frequency.MINUTELY: minute,
            Frequency.SECONDLY: second,
        },
    )
    if pacer is not None:
        year.pace_with(pacer)
    if date_filters:
        day = FilteredDayGenerator(day, all_of(date_filters))
    return GeneratorChain(
        year, month, day, hour, minute, second, tuple(time_filters), _time_values_reachable(rule, dtstart)
    )


class RRuleIterator(RecurrenceIterator):
    """Iterates the instances of one RRULE starting at ``dtstart``.

    Date-time instances are computed as wall-clock times in ``tz`` and
    returned in UTC. A date-only ``dtstart`` gives a date-only series whose
    values are returned as they are; time-of-day parts of the rule are then
    ignored.

    Args:
        rule: the rule to expand
        dtstart: first instant of the series; it is itself only returned if
            it matches the rule
        tz: zone of ``dtstart``; ``None`` means ``dtstart`` is UTC
        settings: expansion settings, the global settings by default

    Raises:
        RRuleValidationError: If ``dtstart`` is a date and the rule repeats
            more often than daily
    """

    def __init__(
        self,
        rule: RecurrenceRule,
        dtstart: DateValue,
        tz: Optional[tzinfo] = None,
        settings: Optional[RecurrenceSettings] = None,
    ):
        settings = settings or get_settings()
        has_time = isinstance(dtstart, CalendarDateTime)
        if not has_time and rule.freq.is_finer_than(Frequency.DAILY):
            logger.warning("Rejected %s rule with date-only start %s", rule.freq.value, dtstart)
            raise RRuleValidationError(
                f"{rule.freq.value} rules need a start with a time of day", rule_text=rule.to_ical()
            )

        self.rule = rule
        self.dtstart = dtstart
        self.tz = tz
        self._has_time = has_time

        gen_start = period_start(rule.freq, dtstart) if rule.by_set_pos else dtstart
        chain = build_generator_chain(rule, dtstart, gen_start, settings.max_unproductive_years)
        builder = DateTimeBuilder.from_value(gen_start)
        if not has_time:
            generators: tuple[Generator, ...] = (chain.year, chain.month, chain.day)
        elif chain.hour.single_value and chain.minute.single_value and chain.second.single_value:
            # one time of day per date; the sub-day fields never change
            builder.hour = chain.hour.value
            builder.minute = chain.minute.value
            builder.second = chain.second.value
            generators = (chain.year, chain.month, chain.day)
        else:
            generators = (chain.year, chain.month, chain.day, chain.hour, chain.minute, chain.second)

        serial = SerialInstanceGenerator(
            generators, all_of(chain.filters), has_time, throttle=None if rule.by_set_pos else chain.year
        )
        if rule.by_set_pos:
            self._instances: Union[SerialInstanceGenerator, SetPosInstanceGenerator] = SetPosInstanceGenerator(
                serial,
                rule.by_set_pos,
                period_key_for(rule.freq, rule.week_start),
                throttle=chain.year,
                uniform_periods=rule.freq is Frequency.DAILY or rule.freq.is_finer_than(Frequency.DAILY),
            )
        else:
            self._instances = serial

        self._year_generator = chain.year
        self._generators = generators
        self._builder = builder
        self._condition = condition_for(rule)
        # skipping whole months is only safe when nothing counts instances
        # and no period has to be seen in full
        self._can_skip_months = rule.count is None and not rule.by_set_pos
        self._last_key: Optional[tuple[int, ...]] = None
        self._pending: Optional[DateValue] = None
        self._done = False

        logger.debug("Created %r with generators %s and %d time filters", self, generators, len(chain.filters))
        if not chain.reachable:
            logger.debug("%r never reaches its time of day values", self)
            self._done = True
        elif pump(generators[:-1], builder, 0) is not Step.VALUE:
            self._done = True
        else:
            self._start(to_utc(dtstart, tz))

    def _start(self, dtstart_utc: DateValue) -> None:
        # candidates before dtstart are generated but never counted
        while True:
            instance = self._generate_instance()
            if instance is None:
                self._done = True
                return
            local, utc = instance
            if not utc < dtstart_utc:
                break
        self._accept(local, utc)

    def _generate_instance(self) -> Optional[tuple[DateValue, DateValue]]:
        """Next candidate as ``(local, utc)``, never at or before the previous one."""
        while True:
            local = self._instances.next_instance(self._builder)
            if local is None:
                return None
            utc = to_utc(local, self.tz)
            key = utc.sort_key()
            if self._last_key is not None and key <= self._last_key:
                continue
            self._last_key = key
            return local, utc

    def _accept(self, local: DateValue, utc: DateValue) -> bool:
        if not self._condition(local, utc):
            logger.debug("%r ended at %s", self, utc)
            self._done = True
            return False
        self._pending = utc
        return True

    def has_next(self) -> bool:
        if self._pending is None and not self._done:
            instance = self._generate_instance()
            if instance is None:
                self._done = True
            else:
                self._accept(*instance)
        return self._pending is not None

    def next(self) -> DateValue:
        if not self.has_next():
            raise IteratorExhaustedError("No more instances", rule_text=self.rule.to_ical())
        value = self._pending
        self._pending = None
        return value

    def advance_to(self, target: DateValue) -> None:
        """Skip instances strictly before ``target``.

        ``target`` is a UTC value. For date-only series a date-time target is
        rounded up to the next whole date. Skipped instances still count
        against COUNT.
        """
        if not self._has_time and isinstance(target, CalendarDateTime):
            if target.time_key() == (0, 0, 0):
                target = target.as_date()
            else:
                target = add_days(target.as_date(), 1)

        if self._pending is not None:
            if not self._pending < target:
                return
            self._pending = None
        if self._done:
            return

        if self._can_skip_months:
            self._skip_months(from_utc(target, self.tz))
            if self._done:
                return

        while True:
            instance = self._generate_instance()
            if instance is None:
                self._done = True
                return
            local, utc = instance
            if not self._accept(local, utc) or not utc < target:
                return
            self._pending = None

    def _skip_months(self, target: DateValue) -> None:
        """Move the generators straight to the month holding local ``target``."""
        builder = self._builder
        if (builder.year, builder.month) >= (target.year, target.month):
            return
        generators = self._generators
        step = Step.VALUE
        if builder.year < target.year:
            while builder.year < target.year and step is Step.VALUE:
                # the years skipped are not unproductive
                self._year_generator.work_done()
                step = self._year_generator.generate(builder)
            if step is Step.VALUE:
                step = pump(generators[:2], builder, 1)
        while step is Step.VALUE and (builder.year, builder.month) < (target.year, target.month):
            step = pump(generators[:2], builder, 1)
        if step is Step.VALUE:
            step = pump(generators[:-1], builder, 2)
        if step is not Step.VALUE:
            self._done = True
        logger.debug("Skipped ahead to %r", builder)

    def __repr__(self) -> str:
        return f"RRuleIterator({self.rule}, dtstart={self.dtstart})"


def create_recurrence_iterator(
    rule: Union[RecurrenceRule, str],
    dtstart: DateValue,
    tz: Optional[tzinfo] = None,
    settings: Optional[RecurrenceSettings] = None,
) -> RRuleIterator:
    """Create an iterator over the instances of ``rule``.

    Args:
        rule: a rule or its RRULE value text
        dtstart: series start, a date or wall-clock date-time in ``tz``
        tz: zone of ``dtstart``; ``None`` for UTC
        settings: expansion settings, the global settings by default

    Raises:
        RRuleParseError: If rule text is malformed
        RRuleValidationError: If the rule is invalid or cannot start at
            ``dtstart``

    Example:
        >>> it = create_recurrence_iterator("FREQ=DAILY;COUNT=2", CalendarDate(2014, 11, 22))
        >>> [str(value) for value in it]
        ['20141122', '20141123']
    """
    if isinstance(rule, str):
        rule = parse_rrule(rule)
    return RRuleIterator(rule, dtstart, tz=tz, settings=settings)
