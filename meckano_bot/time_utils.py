"""
Time helpers for generating and validating report entries.

Times are plain ``HH:MM`` strings, the format the report cells accept.
"""

import random
import re

from .config import TimeWindow
from .models import TimeEntry


MINUTES_PER_DAY = 24 * 60

TIME_FORMAT_PATTERN = re.compile(r'([01][0-9]|2[0-3]):[0-5][0-9]')


def is_valid_time_format(value: str) -> bool:
    """
    Check that a value is a strict 24-hour ``HH:MM`` time.

    Examples:
        >>> is_valid_time_format("09:15")
        True
        >>> is_valid_time_format("9:15")
        False
    """
    return bool(value) and TIME_FORMAT_PATTERN.fullmatch(value) is not None


def format_minutes(total_minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``, wrapping past midnight."""
    total_minutes %= MINUTES_PER_DAY
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def parse_minutes(value: str) -> int:
    """
    Parse an ``HH:MM`` time into minutes since midnight.

    Raises:
        ValueError: If the value is not a valid time
    """
    if not is_valid_time_format(value):
        raise ValueError(f"Invalid time format (expected HH:MM): {value!r}")
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def random_entrance_time(window: TimeWindow, rng=random) -> str:
    """
    Pick a random entrance time in ``[min entrance, max entrance)``.

    Args:
        window: Configured time window
        rng: Source of randomness (``random`` module or a ``random.Random``)

    Returns:
        Entrance time as ``HH:MM``
    """
    start = window.entrance_start_minutes
    end = window.entrance_end_minutes
    return format_minutes(start + rng.randrange(end - start))


def exit_time(entrance: str, window: TimeWindow, rng=random) -> str:
    """
    Compute an exit time a random number of whole minutes after entrance.

    The duration is drawn from ``[min_work_hours * 60, max_work_hours * 60]``
    inclusive on both ends.

    Args:
        entrance: Entrance time as ``HH:MM``
        window: Configured time window
        rng: Source of randomness

    Returns:
        Exit time as ``HH:MM``
    """
    duration = rng.randint(window.min_work_hours * 60, window.max_work_hours * 60)
    return format_minutes(parse_minutes(entrance) + duration)


def generate_time_entry(window: TimeWindow, rng=random) -> TimeEntry:
    """Generate a complete entrance/exit pair."""
    entrance = random_entrance_time(window, rng)
    return TimeEntry(entrance=entrance, exit=exit_time(entrance, window, rng))
