"""Instance stage: turns generator output into filtered candidate instances."""

import logging
from collections import deque
from typing import Callable, Hashable, Optional, Sequence

from . import timeutils
from .filters import Predicate
from .generators import Generator, SerialYearGenerator, Step, pump
from .models import Frequency
from .timeutils import DateTimeBuilder
from .values import CalendarDate, CalendarDateTime, DateValue

logger = logging.getLogger(__name__)

PeriodKey = Callable[[DateValue], Hashable]


class SerialInstanceGenerator:
    """Pumps the generator chain until a candidate passes every filter.

    Args:
        generators: coarse-to-fine generator chain sharing ``builder``
        predicate: combined filter
        has_time: whether instances carry a time of day
        throttle: generator to notify when an instance is produced, if any
    """

    def __init__(
        self,
        generators: Sequence[Generator],
        predicate: Predicate,
        has_time: bool,
        throttle: Optional[SerialYearGenerator] = None,
    ):
        self.generators = tuple(generators)
        self.predicate = predicate
        self.has_time = has_time
        self.throttle = throttle

    def next_instance(self, builder: DateTimeBuilder) -> Optional[DateValue]:
        """Next candidate in local time, or ``None`` once generation stops."""
        while True:
            step = pump(self.generators, builder)
            if step is not Step.VALUE:
                logger.debug("Generator chain finished with %s at %r", step.value, builder)
                return None
            value = builder.to_value(self.has_time)
            if self.predicate(value):
                if self.throttle is not None:
                    self.throttle.work_done()
                return value


class SetPosInstanceGenerator:
    """Applies BYSETPOS to the candidates of each period.

    Candidates are gathered a whole period at a time, the first candidate of
    the following period being held back for the next round. When every
    position is positive, candidates beyond the largest position are
    consumed without being kept.
    """

    def __init__(
        self,
        serial: SerialInstanceGenerator,
        positions: Sequence[int],
        period_key: PeriodKey,
        throttle: Optional[SerialYearGenerator] = None,
        uniform_periods: bool = False,
    ):
        self.serial = serial
        self.positions = tuple(positions)
        self.period_key = period_key
        self.throttle = throttle
        self.uniform_periods = uniform_periods
        self._max_position = max(self.positions) if all(p > 0 for p in self.positions) else None
        self._pushback: Optional[DateValue] = None
        self._pending: deque[DateValue] = deque()
        self._done = False

    def next_instance(self, builder: DateTimeBuilder) -> Optional[DateValue]:
        while not self._pending:
            if self._done:
                return None
            candidates = self._collect_period(builder)
            if not candidates:
                self._done = True
                return None
            selected = self._select(candidates)
            if selected:
                self._pending.extend(selected)
                if self.throttle is not None:
                    self.throttle.work_done()
            elif self.uniform_periods:
                logger.debug(
                    "BYSETPOS %s selects nothing from %d candidates per period", list(self.positions), len(candidates)
                )
                self._done = True
                return None
        return self._pending.popleft()

    def _collect_period(self, builder: DateTimeBuilder) -> list[DateValue]:
        first = self._pushback if self._pushback is not None else self.serial.next_instance(builder)
        self._pushback = None
        if first is None:
            return []
        key = self.period_key(first)
        candidates = [first]
        while True:
            value = self.serial.next_instance(builder)
            if value is None:
                self._done = True
                break
            if self.period_key(value) != key:
                self._pushback = value
                break
            if self._max_position is None or len(candidates) < self._max_position:
                candidates.append(value)
        return candidates

    def _select(self, candidates: list[DateValue]) -> list[DateValue]:
        count = len(candidates)
        indexes = timeutils.uniquify(timeutils.invert_ordinal(position, count) for position in self.positions)
        return [candidates[index - 1] for index in indexes if 1 <= index <= count]


def period_key_for(freq: Frequency, week_start: int) -> PeriodKey:
    """Key identifying the FREQ period a candidate belongs to."""
    if freq is Frequency.YEARLY:
        return lambda value: value.year
    if freq is Frequency.MONTHLY:
        return lambda value: (value.year, value.month)
    if freq is Frequency.WEEKLY:
        return lambda value: timeutils.week_start_fixed(timeutils.fixed_from_value(value), week_start)
    if freq is Frequency.DAILY:
        return lambda value: value.date_key()

    n_time_fields = {Frequency.HOURLY: 1, Frequency.MINUTELY: 2, Frequency.SECONDLY: 3}[freq]

    def key(value: DateValue) -> Hashable:
        if isinstance(value, CalendarDateTime):
            return value.date_key() + value.time_key()[:n_time_fields]
        return value.date_key()

    return key


def period_start(freq: Frequency, value: DateValue) -> DateValue:
    """Start of the FREQ period containing ``value``, keeping its type.

    The first week of a WEEKLY series is only counted from the date of
    ``value``, so days of that week before it never form part of a set.
    """
    if freq is Frequency.YEARLY:
        year, month, day = value.year, 1, 1
    elif freq is Frequency.MONTHLY:
        year, month, day = value.year, value.month, 1
    else:
        year, month, day = value.year, value.month, value.day
    if not isinstance(value, CalendarDateTime):
        return CalendarDate(year, month, day)
    hour = value.hour if freq.is_finer_than(Frequency.DAILY) else 0
    minute = value.minute if freq.is_finer_than(Frequency.HOURLY) else 0
    second = value.second if freq is Frequency.SECONDLY else 0
    return CalendarDateTime(year, month, day, hour, minute, second)
