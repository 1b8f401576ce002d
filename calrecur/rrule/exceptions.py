"""Recurrence-specific exceptions for error handling."""

from typing import Optional


class RecurrenceError(Exception):
    """Base exception for recurrence rule errors."""

    def __init__(self, message: str, rule_text: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.rule_text = rule_text


class RRuleParseError(RecurrenceError):
    """Exception raised when RRULE text cannot be parsed."""


class RRuleValidationError(RecurrenceError):
    """Exception raised when a rule is structurally invalid."""


class IteratorExhaustedError(RecurrenceError):
    """Exception raised when next() is called on an exhausted iterator."""


class UnsupportedOperationError(RecurrenceError):
    """Exception raised for operations recurrence iterators do not support."""
