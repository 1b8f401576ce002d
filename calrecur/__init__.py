"""calrecur - RFC 5545 recurrence rule expansion."""

__version__ = "1.0.0"
__author__ = "CalendarBot Team"
__email__ = "support@calendarbot.local"
__description__ = "RFC 5545 RRULE expansion with skip-ahead and guaranteed termination"

# Package metadata
__all__ = [
    "__author__",
    "__description__",
    "__email__",
    "__version__",
]
