"""
Telemetry setup.

Log levels are configured through the ``[telemetry]`` section of the
configuration file or the ``PERSONAL_LEDGER_TELEMETRY__TELEMETRY_LEVEL``
environment variable. ``PERSONAL_LEDGER_LOG`` overrides both at runtime.
"""

import logging
import os
from enum import Enum
from typing import Any, Optional, Union

import structlog

from ledger.core.errors import TelemetryError

RUNTIME_LEVEL_ENV = "PERSONAL_LEDGER_LOG"


class TelemetryLevel(str, Enum):
    """Verbosity levels accepted in configuration."""

    OFF = "off"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, "TelemetryLevel"]) -> "TelemetryLevel":
        """Parse a level name case-insensitively. ``warning`` is accepted for ``warn``."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise TelemetryError(f"Invalid telemetry level: {value!r}")
        name = value.strip().strip("\"'").lower()
        if name == "warning":
            name = "warn"
        try:
            return cls(name)
        except ValueError:
            allowed = ", ".join(level.value for level in cls)
            raise TelemetryError(f"Invalid telemetry level {value!r}, expected one of: {allowed}") from None

    @property
    def logging_level(self) -> int:
        """Closest standard library level. ``trace`` has no counterpart and maps to DEBUG."""
        return _LOGGING_LEVELS[self]


_LOGGING_LEVELS = {
    TelemetryLevel.OFF: logging.CRITICAL,
    TelemetryLevel.ERROR: logging.ERROR,
    TelemetryLevel.WARN: logging.WARNING,
    TelemetryLevel.INFO: logging.INFO,
    TelemetryLevel.DEBUG: logging.DEBUG,
    TelemetryLevel.TRACE: logging.DEBUG,
}

DEFAULT_TELEMETRY_LEVEL = TelemetryLevel.INFO


def _drop_event(logger: Any, method_name: str, event_dict: dict) -> dict:
    raise structlog.DropEvent


def runtime_override() -> Optional[TelemetryLevel]:
    """Level from PERSONAL_LEDGER_LOG, or None when it is unset or not a valid level."""
    raw = os.environ.get(RUNTIME_LEVEL_ENV)
    if not raw:
        return None
    try:
        return TelemetryLevel.parse(raw)
    except TelemetryError:
        return None


def resolve_level(level: Optional[Union[str, TelemetryLevel]] = None) -> TelemetryLevel:
    """
    Pick the effective level: runtime override, then the configured level, then the default.

    An invalid runtime override is ignored.
    """
    override = runtime_override()
    if override is not None:
        return override
    if level is None:
        return DEFAULT_TELEMETRY_LEVEL
    return TelemetryLevel.parse(level)


def init_telemetry(level: Optional[Union[str, TelemetryLevel]] = None) -> TelemetryLevel:
    """
    Configure structlog for the whole process.

    Returns the level actually applied.
    """
    effective = resolve_level(level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=False),
    ]
    if effective is TelemetryLevel.OFF:
        processors.insert(0, _drop_event)

    try:
        structlog.configure(
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(effective.logging_level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=False,
        )
    except (TypeError, ValueError) as error:
        raise TelemetryError(f"Failed to configure logging: {error}") from error

    logger = structlog.get_logger(__name__)
    raw_override = os.environ.get(RUNTIME_LEVEL_ENV)
    if raw_override and runtime_override() is None:
        logger.warning("invalid_runtime_telemetry_level", variable=RUNTIME_LEVEL_ENV, value=raw_override)
    logger.debug("telemetry_initialised", telemetry_level=effective.value)
    return effective
