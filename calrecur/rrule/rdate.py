"""Iteration over explicit RDATE/EXDATE value lists."""

import logging
from bisect import bisect_left
from datetime import tzinfo
from typing import Iterable, Optional

from .exceptions import IteratorExhaustedError
from .iterator import RecurrenceIterator
from .timeutils import to_utc
from .values import DateValue

logger = logging.getLogger(__name__)


class RDateIterator(RecurrenceIterator):
    """Iterates a fixed set of values in ascending order without duplicates.

    Args:
        dates: dates or wall-clock date-times, in any order
        tz: zone of the date-times; ``None`` means they are already UTC
    """

    def __init__(self, dates: Iterable[DateValue], tz: Optional[tzinfo] = None):
        self._values = sorted({to_utc(value, tz) for value in dates})
        self._index = 0
        logger.debug("Created RDateIterator over %d values", len(self._values))

    def has_next(self) -> bool:
        return self._index < len(self._values)

    def next(self) -> DateValue:
        if not self.has_next():
            raise IteratorExhaustedError("No more dates")
        value = self._values[self._index]
        self._index += 1
        return value

    def advance_to(self, target: DateValue) -> None:
        self._index = max(self._index, bisect_left(self._values, target))

    def __repr__(self) -> str:
        return f"RDateIterator({[str(value) for value in self._values]})"
