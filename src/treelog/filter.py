from __future__ import annotations

from collections.abc import Callable

from .level import LogLevelLike, parse_log_level, severity
from .record import LogRecord


type Filter = Callable[[LogRecord], bool]
type FilterLike = Filter | LogLevelLike | None


def _reject_all(record: LogRecord) -> bool:
    return False


def _accept_all(record: LogRecord) -> bool:
    return True


def get_level_filter(level: LogLevelLike | None) -> Filter:
    """Return a filter accepting records at *level* or more severe.

    ``None`` yields a filter that rejects every record.
    """
    if level is None:
        return _reject_all
    threshold = severity(parse_log_level(level))
    if threshold == severity("debug"):
        return _accept_all

    def level_filter(record: LogRecord) -> bool:
        return severity(record.level) >= threshold

    level_filter.__qualname__ = f"level_filter[{parse_log_level(level).value}]"
    return level_filter


def to_filter(filter_like: FilterLike) -> Filter:
    """Convert a filter-like value (callable, level name or ``None``) to a filter."""
    if callable(filter_like):
        return filter_like
    return get_level_filter(filter_like)
