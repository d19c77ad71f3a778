from __future__ import annotations

import atexit
import io
import threading
from collections.abc import Callable
from typing import IO, Any, ClassVar, Literal, TypedDict, Unpack

from rich.console import Console
from rich.pretty import pretty_repr
from rich.text import Text

from .filter import FilterLike, to_filter
from .formatter import (
    LEVEL_ABBREVIATIONS,
    TIMESTAMP_RENDERERS,
    TextFormatter,
    default_text_formatter,
    should_print_properties,
)
from .record import LogRecord
from .styles import LEVEL_PROFILES, LOG_THEME


type Sink = Callable[[LogRecord], None]
type ConsoleFormatter = Callable[[LogRecord], Text | str]


class ConsoleConfig(TypedDict, total=False):
    """Configuration options for ``rich.console.Console`` initialization."""

    color_system: Literal["auto", "standard", "256", "truecolor", "windows"] | None
    force_terminal: bool | None
    soft_wrap: bool
    theme: Any
    stderr: bool
    file: Any
    quiet: bool
    width: int | None
    no_color: bool | None
    highlight: bool
    legacy_windows: bool | None


class _ConsoleManager:
    """Lazy, atexit-safe manager for the default Rich console.

    The console is built on first use, so importing the package never
    touches the terminal. Changing the configuration rebuilds it.
    """

    _instance: ClassVar[_ConsoleManager | None] = None

    def __init__(self, **config: Unpack[ConsoleConfig]) -> None:
        self._config: ConsoleConfig = {"stderr": True, "theme": LOG_THEME, **config}
        self._console: Console | None = None
        atexit.register(self.close)

    @classmethod
    def get_or_create(cls, **config: Unpack[ConsoleConfig]) -> _ConsoleManager:
        if cls._instance is None:
            cls._instance = cls(**config)
        else:
            cls._instance.reset_config(**config)
        return cls._instance

    @property
    def console(self) -> Console:
        if self._console is None:
            self._console = Console(**self._config)
        return self._console

    def reset_config(self, **config: Unpack[ConsoleConfig]) -> None:
        if not config:
            return
        needs_rebuild = any(self._config.get(k) != v for k, v in config.items())
        self._config.update(config)
        if needs_rebuild:
            self._console = None

    def close(self) -> None:
        self._console = None


def get_default_console(**config: Unpack[ConsoleConfig]) -> Console:
    """Return the shared stderr console (recreated on config updates)."""
    return _ConsoleManager.get_or_create(**config).console


def format_console_record(record: LogRecord) -> Text:
    """Render a record as styled rich ``Text`` for the console sink."""
    profile = LEVEL_PROFILES[record.level]
    text = Text.assemble(
        (TIMESTAMP_RENDERERS["time"](record.timestamp), "treelog.timestamp"),
        " ",
        (f"[{LEVEL_ABBREVIATIONS[record.level]}]", profile.label),
        " ",
        ("·".join(record.category) + ":", "treelog.category"),
        " ",
    )
    message = Text(style=profile.message or "")
    for index, part in enumerate(record.message):
        if index % 2 == 0:
            message.append(str(part))
        else:
            message.append(pretty_repr(part), style="treelog.value")
    if profile.highlighter is not None:
        profile.highlighter.highlight(message)
    text.append_text(message)
    if should_print_properties(record):
        text.append(f" {pretty_repr(dict(record.properties))}", style="treelog.properties")
    return text


def get_console_sink(
    console: Console | None = None,
    formatter: ConsoleFormatter | None = None,
    **console_config: Unpack[ConsoleConfig],
) -> Sink:
    """Return a sink printing records through a Rich console.

    Without *console* the shared stderr console is used, built lazily with
    the package theme and *console_config*. *formatter* may return rich
    ``Text`` or a plain string such as a :data:`TextFormatter` produces;
    strings are written verbatim, without markup or highlighting.

    Example::

        configure({
            "sinks": {"console": get_console_sink()},
            "loggers": [{"category": "my-app", "sinks": ["console"]}],
        })
    """
    manager = _ConsoleManager.get_or_create(**console_config) if console is None else None
    render = formatter or format_console_record

    def console_sink(record: LogRecord) -> None:
        target = console if manager is None else manager.console
        rendered = render(record)
        if isinstance(rendered, str):
            target.out(rendered, end="", highlight=False)
        else:
            target.print(rendered, soft_wrap=True, highlight=False, markup=False)

    return console_sink


def get_stream_sink(
    stream: IO[str] | IO[bytes], formatter: TextFormatter = default_text_formatter
) -> Sink:
    """Return a sink writing formatted records to *stream*.

    Binary streams receive UTF-8 bytes. The stream is flushed after each
    record and is never closed by the sink.
    """
    binary = isinstance(stream, (io.RawIOBase, io.BufferedIOBase))
    lock = threading.Lock()

    def stream_sink(record: LogRecord) -> None:
        chunk = formatter(record)
        with lock:
            stream.write(chunk.encode("utf-8") if binary else chunk)  # type: ignore[arg-type]
            stream.flush()

    return stream_sink


def with_filter(sink: Sink, filter_like: FilterLike) -> Sink:
    """Wrap *sink* so it only receives records accepted by *filter_like*.

    Disposal hooks (``close`` / ``aclose``) of the wrapped sink stay reachable.
    """
    accept = to_filter(filter_like)

    def filtered_sink(record: LogRecord) -> None:
        if accept(record):
            sink(record)

    for hook in ("close", "aclose"):
        if hasattr(sink, hook):
            setattr(filtered_sink, hook, getattr(sink, hook))
    return filtered_sink
