"""Termination conditions applied to instances before they are emitted.

A condition is called with the instance in local wall-clock time and in UTC
and returns ``False`` once the series must end. Conditions are only ever
called with strictly increasing instances.
"""

import logging
from typing import Callable, Optional

from .models import RecurrenceRule
from .values import CalendarDateTime, DateValue

logger = logging.getLogger(__name__)

Condition = Callable[[DateValue, DateValue], bool]


def always(local: DateValue, utc: DateValue) -> bool:
    return True


class CountCondition:
    """Passes the first ``count`` instances."""

    def __init__(self, count: int):
        self.count = count
        self.remaining = count

    def __call__(self, local: DateValue, utc: DateValue) -> bool:
        self.remaining -= 1
        return self.remaining >= 0

    def __repr__(self) -> str:
        return f"CountCondition(remaining={self.remaining})"


class UntilCondition:
    """Passes instances up to and including ``until``.

    The comparison happens at the granularity of ``until``. A DATE bound is
    compared with the local date of the instance. A DATE-TIME bound is UTC
    and is compared with the UTC instance, or only by date when the series
    itself has no time of day.
    """

    def __init__(self, until: DateValue):
        self.until = until
        self._has_time = isinstance(until, CalendarDateTime)

    def __call__(self, local: DateValue, utc: DateValue) -> bool:
        if not self._has_time:
            return local.date_key() <= self.until.date_key()
        if isinstance(utc, CalendarDateTime):
            return utc.sort_key() <= self.until.sort_key()
        return utc.date_key() <= self.until.date_key()

    def __repr__(self) -> str:
        return f"UntilCondition(until={self.until})"


def condition_for(rule: RecurrenceRule) -> Condition:
    """The COUNT or UNTIL condition of ``rule``, or one that always passes."""
    condition: Optional[Condition] = None
    if rule.count is not None:
        condition = CountCondition(rule.count)
    elif rule.until is not None:
        condition = UntilCondition(rule.until)
    logger.debug("Termination condition for %s: %r", rule, condition)
    return condition or always
