"""Logging configuration and setup utilities."""

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from ..config.settings import RecurrenceSettings

# Custom log level between INFO(20) and DEBUG(10)
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def verbose(self: logging.Logger, message: Any, *args: Any, **kwargs: Any) -> None:
    """Add verbose() method to Logger class for detailed diagnostic logging.

    Args:
        self (logging.Logger): Logger instance (automatically provided)
        message (Any): Log message or format string
        *args (Any): Arguments for string formatting
        **kwargs (Any): Additional keyword arguments for logging

    Example:
        >>> logger = logging.getLogger(__name__)
        >>> logger.verbose("Expanded %d occurrences", count)
    """
    if self.isEnabledFor(VERBOSE):
        self._log(VERBOSE, message, args, **kwargs)


# Add verbose method to all Logger instances
logging.Logger.verbose = verbose  # type: ignore[attr-defined]


def get_log_level(level_name: str) -> int:
    """Get numeric log level from string name, including custom VERBOSE level.

    Args:
        level_name (str): Log level name (DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        int: Numeric log level value

    Raises:
        AttributeError: If level name is not recognized

    Example:
        >>> get_log_level("verbose")
        15
    """
    level_name = level_name.upper()
    if level_name == "VERBOSE":
        return VERBOSE
    level = getattr(logging, level_name)
    if not isinstance(level, int):
        raise AttributeError(f"{level_name} is not a log level")
    return level


def setup_logging(
    log_level: str = "WARNING",
    log_file: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Set up package logging with console and optional file output.

    Args:
        log_level: Logging level (DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name
        log_dir: Optional log directory path
        log_format: Format string for the console handler

    Returns:
        The configured ``calrecur`` logger
    """
    numeric_level = get_log_level(log_level)

    logger = logging.getLogger("calrecur")
    logger.setLevel(numeric_level)

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(log_format, datefmt="%H:%M:%S"))
    logger.addHandler(console_handler)

    if log_file:
        if log_dir:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file
        else:
            log_path = Path(log_file)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"  # 10MB
        )
        file_handler.setLevel(logging.DEBUG)  # File logs everything
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

        logger.info("Logging to file: %s", log_path)

    logger.info("Logging initialized at %s level", log_level.upper())
    return logger


def setup_logging_from_settings(settings: "RecurrenceSettings") -> logging.Logger:
    """Configure package logging from the ``logging`` section of ``settings``."""
    return setup_logging(settings.logging.level, log_format=settings.logging.format)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``calrecur`` namespace.

    Module names that already start with ``calrecur`` are used as-is.
    """
    if name == "calrecur" or name.startswith("calrecur."):
        return logging.getLogger(name)
    return logging.getLogger(f"calrecur.{name}")
