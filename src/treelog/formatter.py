from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from rich.color import ColorSystem
from rich.pretty import pretty_repr
from rich.style import Style

from .category import CategoryList
from .level import LogLevel
from .record import LogRecord
from .styles import LEVEL_COLORS, StyleLike, to_style


type TextFormatter = Callable[[LogRecord], str]

type TimestampFormat = Literal[
    "date-time-timezone",
    "date-time-tz",
    "date-time",
    "time-timezone",
    "time-tz",
    "time",
    "date",
    "rfc3339",
]
type LevelFormat = Literal["ABBR", "FULL", "L", "abbr", "full", "l"]


LEVEL_ABBREVIATIONS: dict[LogLevel, str] = {
    LogLevel.DEBUG: "DBG",
    LogLevel.INFO: "INF",
    LogLevel.WARNING: "WRN",
    LogLevel.ERROR: "ERR",
    LogLevel.CRITICAL: "CRT",
    LogLevel.FATAL: "FTL",
}


@dataclass(frozen=True, slots=True)
class FormattedValues:
    """The rendered pieces of a record, handed to a custom ``format`` callable."""

    timestamp: str
    level: str
    category: str
    message: str
    record: LogRecord


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=UTC)


def _date_time(ts: float) -> str:
    dt = _utc(ts)
    return f"{dt:%Y-%m-%d %H:%M:%S}.{dt.microsecond // 1000:03d}"


def _time(ts: float) -> str:
    dt = _utc(ts)
    return f"{dt:%H:%M:%S}.{dt.microsecond // 1000:03d}"


TIMESTAMP_RENDERERS: dict[str, Callable[[float], str]] = {
    "date-time-timezone": lambda ts: f"{_date_time(ts)} +00:00",
    "date-time-tz": lambda ts: f"{_date_time(ts)} +00",
    "date-time": _date_time,
    "time-timezone": lambda ts: f"{_time(ts)} +00:00",
    "time-tz": lambda ts: f"{_time(ts)} +00",
    "time": _time,
    "date": lambda ts: f"{_utc(ts):%Y-%m-%d}",
    "rfc3339": lambda ts: f"{_utc(ts):%Y-%m-%dT%H:%M:%S}.{_utc(ts).microsecond // 1000:03d}Z",
}

LEVEL_RENDERERS: dict[str, Callable[[LogLevel], str]] = {
    "ABBR": lambda level: LEVEL_ABBREVIATIONS[level],
    "abbr": lambda level: LEVEL_ABBREVIATIONS[level].lower(),
    "FULL": lambda level: level.value.upper(),
    "full": lambda level: level.value,
    "L": lambda level: level.value[0].upper(),
    "l": lambda level: level.value[0],
}


def _pick(
    option: str | Callable[..., str], renderers: dict[str, Callable[..., str]], kind: str
) -> Callable[..., str]:
    if callable(option):
        return option
    try:
        return renderers[option]
    except KeyError:
        raise ValueError(
            f"Invalid {kind} format: {option!r}. Expected one of: {', '.join(renderers)}"
        ) from None


def render_message_text(message: tuple[object, ...], value: Callable[[object], str]) -> str:
    """Join a message tuple, rendering substituted values with *value*."""
    return "".join(
        part if index % 2 == 0 else value(part)  # type: ignore[misc]
        for index, part in enumerate(message)
    )


def should_print_properties(record: LogRecord) -> bool:
    """Properties are shown when the message substitutes none of them."""
    return len(record.message) == 1 and bool(record.properties)


def get_text_formatter(
    *,
    timestamp: TimestampFormat | Callable[[float], str] = "date-time-timezone",
    level: LevelFormat | Callable[[LogLevel], str] = "ABBR",
    category: str | Callable[[CategoryList], str] = "·",
    value: Callable[[object], str] = pretty_repr,
    format: Callable[[FormattedValues], str] | None = None,
) -> TextFormatter:
    """Build a plain-text formatter.

    By default a record renders as::

        2023-11-14 22:13:20.000 +00:00 [INF] my-app·db: Connected to 'primary'

    :param timestamp: A named timestamp style or a callable taking POSIX seconds.
        Timestamps are always rendered in UTC.
    :param level: A named level style or a callable taking a ``LogLevel``.
    :param category: Separator placed between category segments, or a callable
        rendering the whole category.
    :param value: Renders each substituted value. Defaults to
        ``rich.pretty.pretty_repr``.
    :param format: Assembles the final line from :class:`FormattedValues`; it
        must not add the trailing newline.
    """
    render_timestamp = _pick(timestamp, TIMESTAMP_RENDERERS, "timestamp")
    render_level = _pick(level, LEVEL_RENDERERS, "level")
    if callable(category):
        render_category = category
    else:
        separator = category

        def render_category(segments: CategoryList) -> str:
            return separator.join(segments)

    def default_format(values: FormattedValues) -> str:
        line = f"{values.timestamp} [{values.level}] {values.category}: {values.message}"
        if should_print_properties(values.record):
            line += f" {value(dict(values.record.properties))}"
        return line

    assemble = format or default_format

    def text_formatter(record: LogRecord) -> str:
        values = FormattedValues(
            timestamp=render_timestamp(record.timestamp),
            level=render_level(record.level),
            category=render_category(record.category),
            message=render_message_text(record.message, value),
            record=record,
        )
        return f"{assemble(values)}\n"

    return text_formatter


default_text_formatter: TextFormatter = get_text_formatter()


def get_ansi_color_formatter(
    *,
    timestamp: TimestampFormat | Callable[[float], str] = "date-time-tz",
    level: LevelFormat | Callable[[LogLevel], str] = "ABBR",
    category: str | Callable[[CategoryList], str] = "·",
    value: Callable[[object], str] = pretty_repr,
    format: Callable[[FormattedValues], str] | None = None,
    timestamp_style: StyleLike | None = "dim",
    level_style: StyleLike | None = "bold",
    level_colors: dict[LogLevel, str | None] | None = None,
    category_style: StyleLike | None = "dim",
    color_system: ColorSystem = ColorSystem.TRUECOLOR,
) -> TextFormatter:
    """Build a formatter emitting ANSI escape sequences, for terminals without rich.

    The escapes come from ``rich.style.Style.render``; each piece is reset
    after itself so the message keeps the terminal's default style.
    """
    colors = {**LEVEL_COLORS, **(level_colors or {})}
    ts_style = to_style(timestamp_style)
    cat_style = to_style(category_style)
    level_styles = {
        lvl: to_style(level_style) + to_style(color) for lvl, color in colors.items()
    }

    def paint(style: Style, text: str) -> str:
        return style.render(text, color_system=color_system)

    def ansi_format(values: FormattedValues) -> str:
        painted = FormattedValues(
            timestamp=paint(ts_style, values.timestamp),
            level=paint(level_styles[values.record.level], values.level),
            category=paint(cat_style, values.category),
            message=values.message,
            record=values.record,
        )
        if format is not None:
            return format(painted)
        line = (
            f"{painted.timestamp} {painted.level} "
            f"{paint(cat_style, values.category + ':')} {values.message}"
        )
        if should_print_properties(values.record):
            line += f" {value(dict(values.record.properties))}"
        return line

    return get_text_formatter(
        timestamp=timestamp, level=level, category=category, value=value, format=ansi_format
    )


ansi_color_formatter: TextFormatter = get_ansi_color_formatter()
