"""
Logging utilities for the report filler.

This module sets up structured logging with appropriate levels and formats,
and keeps credentials out of the log output.
"""

import logging
import re
import sys
from typing import Optional, Set


LOGGER_NAME = 'meckano_bot'

REDACTED = '[REDACTED]'

# Registered secrets shorter than this are not masked verbatim
MIN_SECRET_LENGTH = 4

# key=value / key: value pairs whose value must never reach the log
SENSITIVE_PAIR_PATTERN = re.compile(
    r'(?i)\b(password|passwd|secret|token|api[_-]?key|auth)(\s*[=:]\s*)(\S+)'
)


class ColoredFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to log levels for terminal output.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with colors."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            )

        formatted = super().format(record)

        # Reset levelname to avoid side effects on other handlers
        record.levelname = levelname

        return formatted


class RedactingFilter(logging.Filter):
    """
    Filter that masks secrets in log messages.

    Registered secrets of at least MIN_SECRET_LENGTH characters are replaced
    verbatim wherever they appear, and any ``password=...``-style pair has
    its value masked.
    """

    def __init__(self):
        super().__init__()
        self.secrets: Set[str] = set()

    def add_secret(self, secret: Optional[str]):
        if secret and len(secret) >= MIN_SECRET_LENGTH:
            self.secrets.add(secret)

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        return SENSITIVE_PAIR_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)

    def filter(self, record):
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


_redacting_filter = RedactingFilter()


def setup_logging(verbose: bool = False, use_colors: bool = True) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: If True, set level to DEBUG; otherwise INFO
        use_colors: If True, use colored output for terminal

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if use_colors and sys.stdout.isatty():
        formatter = ColoredFormatter(
            fmt='%(levelname)-8s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        # Plain formatter for redirected output
        formatter = logging.Formatter(
            fmt='%(levelname)-8s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    handler.addFilter(_redacting_filter)
    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """
    Get the application logger.

    Returns:
        Logger instance
    """
    return logging.getLogger(LOGGER_NAME)


def register_secret(secret: Optional[str]):
    """
    Mask a secret (e.g. the account password) in all further log output.

    Args:
        secret: Literal value to mask
    """
    _redacting_filter.add_secret(secret)


def get_redacting_filter() -> RedactingFilter:
    """Get the filter attached to the console handler."""
    return _redacting_filter


def log_section(title: str, logger: Optional[logging.Logger] = None):
    """
    Log a section header for better readability.

    Args:
        title: Section title
        logger: Logger instance (uses default if None)
    """
    if logger is None:
        logger = get_logger()

    logger.info("")
    logger.info("=" * 60)
    logger.info(f"  {title}")
    logger.info("=" * 60)


def log_step(step: str, logger: Optional[logging.Logger] = None):
    """
    Log a processing step.

    Args:
        step: Step description
        logger: Logger instance (uses default if None)
    """
    if logger is None:
        logger = get_logger()

    logger.info(f"→ {step}")


def log_error(error: str, logger: Optional[logging.Logger] = None):
    """
    Log an error message with consistent formatting.

    Args:
        error: Error message
        logger: Logger instance (uses default if None)
    """
    if logger is None:
        logger = get_logger()

    logger.error(f"✗ {error}")


def log_success(message: str, logger: Optional[logging.Logger] = None):
    """
    Log a success message.

    Args:
        message: Success message
        logger: Logger instance (uses default if None)
    """
    if logger is None:
        logger = get_logger()

    logger.info(f"✓ {message}")


def log_warning(warning: str, logger: Optional[logging.Logger] = None):
    """
    Log a warning message.

    Args:
        warning: Warning message
        logger: Logger instance (uses default if None)
    """
    if logger is None:
        logger = get_logger()

    logger.warning(f"⚠ {warning}")


def log_skip(message: str, logger: Optional[logging.Logger] = None):
    """Log a row or cell that was intentionally left alone."""
    if logger is None:
        logger = get_logger()

    logger.info(f"↷ {message}")
