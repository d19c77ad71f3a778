from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Literal


class _LogLevel(IntEnum):
    """Numeric severity scale, aligned with the stdlib ``logging`` values."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50
    FATAL = 60


class LogLevel(StrEnum):
    """Log severity levels, from the most verbose to the most severe."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    FATAL = "fatal"


_LOG_LEVEL_MAP: dict[LogLevel, _LogLevel] = {
    LogLevel.DEBUG: _LogLevel.DEBUG,
    LogLevel.INFO: _LogLevel.INFO,
    LogLevel.WARNING: _LogLevel.WARNING,
    LogLevel.ERROR: _LogLevel.ERROR,
    LogLevel.CRITICAL: _LogLevel.CRITICAL,
    LogLevel.FATAL: _LogLevel.FATAL,
}

_ALIASES: dict[str, LogLevel] = {"warn": LogLevel.WARNING}
_LEVEL_NAMES: frozenset[str] = frozenset(m.value for m in LogLevel)


type LogLevelLike = (
    LogLevel | Literal["debug", "info", "warning", "error", "critical", "fatal"]
)


def parse_log_level(level_str: str) -> LogLevel:
    """Convert a string to a ``LogLevel``, case-insensitively."""
    if isinstance(level_str, LogLevel):
        return level_str
    if not isinstance(level_str, str):
        raise ValueError(f"Invalid log level: {level_str!r}.")
    normalized = level_str.strip().lower()
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    try:
        return LogLevel(normalized)
    except ValueError:
        raise ValueError(
            f"Invalid log level: {level_str!r}. "
            f"Expected one of: {', '.join(m.value for m in LogLevel)}"
        ) from None


def is_log_level(value: object) -> bool:
    """Return ``True`` if *value* is one of the six canonical level names."""
    return isinstance(value, str) and value in _LEVEL_NAMES


def severity(level: LogLevelLike) -> int:
    """Return the numeric severity for a ``LogLevel`` or raw string."""
    return _LOG_LEVEL_MAP[parse_log_level(level)]


def compare_log_levels(a: LogLevelLike, b: LogLevelLike) -> int:
    """Negative if *a* is less severe than *b*, zero if equal, positive otherwise."""
    return severity(a) - severity(b)
