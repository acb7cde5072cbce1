"""
Configuration for the Meckano report filler.

This module centralizes configuration values including the portal URL,
credentials, timeouts, the random time window and UI pacing delays.
Everything is read from the process environment (optionally seeded from a
.env file) once at startup and passed explicitly to the client.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv


DEFAULT_BASE_URL = "https://app.meckano.co.il"


class ConfigError(ValueError):
    """Raised when required configuration is missing or malformed."""
    pass


@dataclass
class TimeWindow:
    """
    Window used to generate random entrance/exit pairs.

    Attributes:
        min_entrance_hour: Earliest entrance hour
        min_entrance_minute: Earliest entrance minute
        max_entrance_hour: Latest entrance hour (exclusive bound with minute)
        max_entrance_minute: Latest entrance minute
        min_work_hours: Shortest work day in hours
        max_work_hours: Longest work day in hours
    """
    min_entrance_hour: int = 7
    min_entrance_minute: int = 45
    max_entrance_hour: int = 9
    max_entrance_minute: int = 30
    min_work_hours: int = 9
    max_work_hours: int = 10

    @property
    def entrance_start_minutes(self) -> int:
        return self.min_entrance_hour * 60 + self.min_entrance_minute

    @property
    def entrance_end_minutes(self) -> int:
        return self.max_entrance_hour * 60 + self.max_entrance_minute

    def validate(self):
        """
        Validate the window.

        Raises:
            ConfigError: If any bound is out of range or the window is empty
        """
        for name in ('min_entrance_hour', 'max_entrance_hour'):
            value = getattr(self, name)
            if not (0 <= value <= 23):
                raise ConfigError(f"{name.upper()} must be between 0 and 23, got: {value}")

        for name in ('min_entrance_minute', 'max_entrance_minute'):
            value = getattr(self, name)
            if not (0 <= value <= 59):
                raise ConfigError(f"{name.upper()} must be between 0 and 59, got: {value}")

        if self.entrance_start_minutes >= self.entrance_end_minutes:
            raise ConfigError(
                "Entrance window is empty: "
                f"{self.min_entrance_hour:02d}:{self.min_entrance_minute:02d} is not before "
                f"{self.max_entrance_hour:02d}:{self.max_entrance_minute:02d}"
            )

        if not (0 < self.min_work_hours <= self.max_work_hours <= 24):
            raise ConfigError(
                "Work hours must satisfy 0 < MIN_WORK_HOURS <= MAX_WORK_HOURS <= 24, "
                f"got: {self.min_work_hours}-{self.max_work_hours}"
            )


@dataclass
class FillTiming:
    """
    Pacing of the UI interactions (all values in milliseconds).

    The portal drops synthetic input that arrives too fast and re-renders
    the table after each commit, so every step has an explicit wait.
    """
    focus_delay: int = 300
    type_delay: int = 100
    commit_settle: int = 500
    verify_timeout: int = 5000
    empty_display_wait: int = 1000
    retry_backoff: int = 500
    row_settle: int = 1000
    next_row_timeout: int = 5000
    next_row_settle: int = 300
    dialog_timeout: int = 2000
    poll_interval: int = 1000


@dataclass
class Config:
    """
    Application configuration.

    Attributes:
        email: Meckano account identifier
        password: Meckano account secret
        base_url: Portal URL (login surface)
        login_timeout: Timeout for the authenticated state (milliseconds),
            long enough to type a confirmation code by hand
        navigation_timeout: Timeout for navigation (milliseconds)
        element_timeout: Timeout for element operations (milliseconds)
        time: Window for generated entrance/exit times
        timing: UI pacing delays
        headless: Whether to run browser in headless mode
        dry_run: Whether to run in dry-run mode (no browser)
        verbose: Whether to enable verbose logging
        check_connectivity: Whether to request the portal once before login
    """
    email: str = ""
    password: str = field(default="", repr=False)
    base_url: str = DEFAULT_BASE_URL
    login_timeout: int = 120000     # 2 minutes
    navigation_timeout: int = 20000  # 20 seconds
    element_timeout: int = 15000    # 15 seconds

    time: TimeWindow = field(default_factory=TimeWindow)
    timing: FillTiming = field(default_factory=FillTiming)

    # CLI options
    headless: bool = False
    dry_run: bool = False
    verbose: bool = False
    check_connectivity: bool = True

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[str] = None,
        **overrides
    ) -> 'Config':
        """
        Build the configuration from environment variables.

        When ``environ`` is None the process environment is used, after
        loading ``env_file`` (or a ``.env`` in the working directory) into it
        without overriding variables that are already set.

        Args:
            environ: Mapping to read variables from
            env_file: Optional path to a .env file
            **overrides: Extra field values (e.g. CLI flags)

        Returns:
            Validated Config

        Raises:
            ConfigError: If credentials are missing or a value is malformed
        """
        if environ is None:
            load_dotenv(env_file or find_dotenv(usecwd=True), override=False)
            environ = os.environ

        config = cls(
            email=_require(environ, 'MECKANO_EMAIL'),
            password=_require(environ, 'MECKANO_PASSWORD'),
            base_url=environ.get('MECKANO_BASE_URL', '').strip() or DEFAULT_BASE_URL,
            login_timeout=_get_int(environ, 'LOGIN_TIMEOUT', 120000),
            navigation_timeout=_get_int(environ, 'NAVIGATION_TIMEOUT', 20000),
            element_timeout=_get_int(environ, 'ELEMENT_TIMEOUT', 15000),
            time=TimeWindow(
                min_entrance_hour=_get_int(environ, 'MIN_ENTRANCE_HOUR', 7),
                min_entrance_minute=_get_int(environ, 'MIN_ENTRANCE_MINUTE', 45),
                max_entrance_hour=_get_int(environ, 'MAX_ENTRANCE_HOUR', 9),
                max_entrance_minute=_get_int(environ, 'MAX_ENTRANCE_MINUTE', 30),
                min_work_hours=_get_int(environ, 'MIN_WORK_HOURS', 9),
                max_work_hours=_get_int(environ, 'MAX_WORK_HOURS', 10),
            ),
            **overrides
        )
        config.validate()
        return config

    def validate(self):
        """
        Validate configuration.

        Raises:
            ConfigError: If configuration is invalid
        """
        if not self.email or not self.password:
            raise ConfigError("MECKANO_EMAIL and MECKANO_PASSWORD are required")

        if not self.base_url.startswith(('http://', 'https://')):
            raise ConfigError(f"MECKANO_BASE_URL must be an http(s) URL, got: {self.base_url}")

        for name in ('login_timeout', 'navigation_timeout', 'element_timeout'):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"{name.upper()} must be positive, got: {value}")

        self.time.validate()


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if not value or not value.strip():
        raise ConfigError(f"Environment variable {name} is required but not set")
    return value.strip()


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be a valid number, got: {value}")
