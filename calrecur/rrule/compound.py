"""Recurrence sets: the union of RRULE/RDATE series minus EXRULE/EXDATE series."""

import heapq
import logging
from datetime import tzinfo
from typing import Iterable, Optional, Union

from ..config.settings import RecurrenceSettings
from .exceptions import IteratorExhaustedError, RRuleParseError
from .iterator import RecurrenceIterator, RRuleIterator
from .models import RecurrenceRule
from .parser import parse_date_value, parse_rrule
from .rdate import RDateIterator
from .timeutils import from_utc
from .values import DateValue

logger = logging.getLogger(__name__)


def _parse_listed_date(text: str, tz: Optional[tzinfo]) -> DateValue:
    value = parse_date_value(text)
    if text.strip().upper().endswith("Z"):
        # UTC values are turned into wall-clock time so all dates share a zone
        value = from_utc(value, tz)
    return value


class CompoundIterator(RecurrenceIterator):
    """Merges several recurrence iterators into one ascending series.

    Values produced by any of ``inclusions`` are returned once each, in
    order, unless one of ``exclusions`` produces the same value.
    """

    def __init__(
        self,
        inclusions: Iterable[RecurrenceIterator],
        exclusions: Iterable[RecurrenceIterator] = (),
    ):
        self._inclusions = list(inclusions)
        self._exclusions = list(exclusions)
        self._queue: list[tuple[tuple[int, ...], int, DateValue]] = []
        for index in range(len(self._inclusions)):
            self._refill(index)
        self._exclusion_heads = [self._head(iterator) for iterator in self._exclusions]
        self._last_key: Optional[tuple[int, ...]] = None
        self._pending: Optional[DateValue] = None

    @staticmethod
    def _head(iterator: RecurrenceIterator) -> Optional[DateValue]:
        return iterator.next() if iterator.has_next() else None

    def _refill(self, index: int) -> None:
        value = self._head(self._inclusions[index])
        if value is not None:
            heapq.heappush(self._queue, (value.sort_key(), index, value))

    def _is_excluded(self, value: DateValue) -> bool:
        excluded = False
        for index, iterator in enumerate(self._exclusions):
            head = self._exclusion_heads[index]
            if head is not None and head < value:
                iterator.advance_to(value)
                head = self._head(iterator)
                self._exclusion_heads[index] = head
            if head == value:
                excluded = True
        return excluded

    def has_next(self) -> bool:
        while self._pending is None and self._queue:
            key, index, value = heapq.heappop(self._queue)
            self._refill(index)
            if self._last_key is not None and key <= self._last_key:
                continue
            self._last_key = key
            if self._is_excluded(value):
                logger.debug("Excluded %s", value)
                continue
            self._pending = value
        return self._pending is not None

    def next(self) -> DateValue:
        if not self.has_next():
            raise IteratorExhaustedError("No more instances")
        value = self._pending
        self._pending = None
        return value

    def advance_to(self, target: DateValue) -> None:
        if self._pending is not None:
            if not self._pending < target:
                return
            self._pending = None
        target_key = target.sort_key()
        stale = []
        while self._queue and self._queue[0][0] < target_key:
            stale.append(heapq.heappop(self._queue)[1])
        for index in stale:
            self._inclusions[index].advance_to(target)
            self._refill(index)

    def __repr__(self) -> str:
        return f"CompoundIterator({len(self._inclusions)} inclusions, {len(self._exclusions)} exclusions)"


class RecurrenceSet:
    """Collects the RRULE, RDATE, EXRULE and EXDATE parts of a recurring event.

    Example:
        >>> rset = (
        ...     RecurrenceSet(CalendarDateTime(2024, 1, 1, 9))
        ...     .rrule("FREQ=WEEKLY;BYDAY=MO;COUNT=4")
        ...     .exdate(CalendarDateTime(2024, 1, 15, 9))
        ... )
        >>> [str(value) for value in rset]
        ['20240101T090000', '20240108T090000', '20240122T090000']
    """

    def __init__(
        self,
        dtstart: DateValue,
        tz: Optional[tzinfo] = None,
        settings: Optional[RecurrenceSettings] = None,
    ):
        self.dtstart = dtstart
        self.tz = tz
        self.settings = settings
        self.rrules: list[RecurrenceRule] = []
        self.exrules: list[RecurrenceRule] = []
        self.rdates: list[DateValue] = []
        self.exdates: list[DateValue] = []

    @staticmethod
    def _rule(rule: Union[RecurrenceRule, str]) -> RecurrenceRule:
        return parse_rrule(rule) if isinstance(rule, str) else rule

    def rrule(self, rule: Union[RecurrenceRule, str]) -> "RecurrenceSet":
        self.rrules.append(self._rule(rule))
        return self

    def exrule(self, rule: Union[RecurrenceRule, str]) -> "RecurrenceSet":
        self.exrules.append(self._rule(rule))
        return self

    def rdate(self, *dates: DateValue) -> "RecurrenceSet":
        self.rdates.extend(dates)
        return self

    def exdate(self, *dates: DateValue) -> "RecurrenceSet":
        self.exdates.extend(dates)
        return self

    def iterator(self) -> CompoundIterator:
        """A fresh iterator over the set; date-times are returned in UTC."""
        inclusions: list[RecurrenceIterator] = [
            RRuleIterator(rule, self.dtstart, self.tz, self.settings) for rule in self.rrules
        ]
        exclusions: list[RecurrenceIterator] = [
            RRuleIterator(rule, self.dtstart, self.tz, self.settings) for rule in self.exrules
        ]
        if self.rdates:
            inclusions.append(RDateIterator(self.rdates, self.tz))
        if self.exdates:
            exclusions.append(RDateIterator(self.exdates, self.tz))
        return CompoundIterator(inclusions, exclusions)

    def __iter__(self) -> CompoundIterator:
        return self.iterator()

    @classmethod
    def from_lines(
        cls,
        text: str,
        dtstart: DateValue,
        tz: Optional[tzinfo] = None,
        settings: Optional[RecurrenceSettings] = None,
    ) -> "RecurrenceSet":
        """Build a set from RRULE, EXRULE, RDATE and EXDATE content lines.

        Property parameters such as ``VALUE=DATE`` are ignored. Date-times
        without a ``Z`` suffix are interpreted in ``tz``. Blank lines are
        skipped.

        Raises:
            RRuleParseError: If a line is not one of the four properties or a
                value is malformed
        """
        rset = cls(dtstart, tz, settings)
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            head, sep, value = line.partition(":")
            name = head.split(";", 1)[0].strip().upper()
            if not sep:
                raise RRuleParseError(f"Malformed content line: {line!r}")
            if name == "RRULE":
                rset.rrule(value)
            elif name == "EXRULE":
                rset.exrule(value)
            elif name in ("RDATE", "EXDATE"):
                dates = [_parse_listed_date(item, tz) for item in value.split(",") if item.strip()]
                if name == "RDATE":
                    rset.rdate(*dates)
                else:
                    rset.exdate(*dates)
            else:
                raise RRuleParseError(f"Unsupported recurrence property: {name}")
        logger.debug(
            "Parsed recurrence set with %d rules, %d dates, %d exclusion rules and %d exclusion dates",
            len(rset.rrules),
            len(rset.rdates),
            len(rset.exrules),
            len(rset.exdates),
        )
        return rset
