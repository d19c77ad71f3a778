from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from rich.highlighter import Highlighter, RegexHighlighter
from rich.style import Style
from rich.theme import Theme

from .level import LogLevel


type StyleLike = Style | str


# ---------- highlighters ----------


class LogRegexHighlighter(RegexHighlighter):
    base_style = "log."
    highlights: ClassVar[list[str]] = [
        r"(?P<number>\b\d+(\.\d+)?\b)",
        r"(?P<hex>0x[0-9a-fA-F]+)",
        r"(?P<uuid>\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b)",
        r"(?P<path>(?:/[\w\-.]+)+)",
        r"(?P<url>https?://\S+)",
    ]


# ---------- per-level profiles ----------


# Rich color names; ``None`` leaves the level uncolored.
LEVEL_COLORS: dict[LogLevel, str | None] = {
    LogLevel.DEBUG: "blue",
    LogLevel.INFO: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
    LogLevel.CRITICAL: "dark_orange",
    LogLevel.FATAL: "magenta",
}


@dataclass(frozen=True)
class LevelStyleProfile:
    label: StyleLike  # the "[LVL]" badge
    message: StyleLike | None = None
    highlighter: Highlighter | None = None


_highlighter = LogRegexHighlighter()

LEVEL_PROFILES: dict[LogLevel, LevelStyleProfile] = {
    LogLevel.DEBUG: LevelStyleProfile(label="bold blue", message="dim", highlighter=_highlighter),
    LogLevel.INFO: LevelStyleProfile(label="bold green", highlighter=_highlighter),
    LogLevel.WARNING: LevelStyleProfile(label="bold yellow", highlighter=_highlighter),
    LogLevel.ERROR: LevelStyleProfile(label="bold red", message="red", highlighter=_highlighter),
    LogLevel.CRITICAL: LevelStyleProfile(
        label="bold dark_orange", message="bold", highlighter=_highlighter
    ),
    LogLevel.FATAL: LevelStyleProfile(label="bold reverse magenta", message="bold magenta"),
}


def to_style(style: StyleLike | None) -> Style:
    """Coerce a style name or definition to a ``Style`` (``None`` gives a null style)."""
    if style is None:
        return Style.null()
    if isinstance(style, Style):
        return style
    return Style.parse(style)


# ---------------- themes ----------------


LOG_THEME = Theme(
    {
        "log.number": "bold cyan",
        "log.hex": "magenta",
        "log.uuid": "dim green",
        "log.path": "yellow",
        "log.url": "underline blue",
        "treelog.timestamp": "dim",
        "treelog.category": "dim magenta",
        "treelog.value": "cyan",
        "treelog.properties": "dim cyan",
    }
)
