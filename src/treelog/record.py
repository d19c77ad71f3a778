from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, ClassVar

from .category import CategoryList
from .level import LogLevel, LogLevelLike, parse_log_level


type Properties = Mapping[str, Any]
type RawMessage = str | tuple[str, ...]
type Message = tuple[object, ...]

_UNSET: Any = object()


class MissingTemplateError(TypeError):
    """Raised when a lazy log callback never calls its template function."""


class Lazy[T]:
    """A compute-or-return-cached cell.

    The wrapped function runs at most once, on the first :meth:`get`. A
    computation that raises is not cached, so the next read retries it and
    surfaces the same error to that reader.
    """

    __slots__ = ("_compute", "_value")

    def __init__(self, compute: Callable[[], T]) -> None:
        self._compute: Callable[[], T] | None = compute
        self._value: Any = _UNSET

    @classmethod
    def of(cls, value: T) -> Lazy[T]:
        """Return an already-realized cell holding *value*."""
        cell: Lazy[T] = cls.__new__(cls)
        cell._compute = None
        cell._value = value
        return cell

    @property
    def realized(self) -> bool:
        return self._value is not _UNSET

    def get(self) -> T:
        compute = self._compute
        if compute is not None:
            self._value = compute()
            self._compute = None
        return self._value

    def __repr__(self) -> str:
        if self.realized:
            return f"Lazy({self._value!r})"
        return "Lazy(<pending>)"


def _as_cell[T](value: T | Lazy[T]) -> Lazy[T]:
    return value if isinstance(value, Lazy) else Lazy.of(value)


class LogRecord:
    """A single log event as seen by filters and sinks.

    ``raw_message``, ``message`` and ``properties`` may be backed by
    :class:`Lazy` cells; reading them realizes the value once and every
    later reader (another filter, another sink) sees the same object.

    :param category: Category of the logger that produced the record.
    :param level: Severity of the record.
    :param timestamp: Creation time as POSIX seconds.
    :param raw_message: The original string, or the literal segments of a
        template.
    :param message: Literal segments interleaved with substituted values;
        always odd-length, starting and ending with a string.
    :param properties: Structured key/value data attached to the record.
    """

    __slots__ = ("category", "level", "timestamp", "_raw_message", "_message", "_properties")

    _FIELDS: ClassVar[tuple[str, ...]] = (
        "category",
        "level",
        "timestamp",
        "raw_message",
        "message",
        "properties",
    )

    def __init__(
        self,
        category: CategoryList,
        level: LogLevelLike,
        timestamp: float,
        raw_message: RawMessage | Lazy[RawMessage],
        message: Message | Lazy[Message],
        properties: Properties | Lazy[Properties] | None = None,
    ) -> None:
        self.category: CategoryList = tuple(category)
        self.level: LogLevel = parse_log_level(level)
        self.timestamp = timestamp
        self._raw_message: Lazy[RawMessage] = _as_cell(raw_message)
        self._message: Lazy[Message] = (
            message if isinstance(message, Lazy) else Lazy.of(tuple(message))
        )
        self._properties: Lazy[Properties] = _as_cell(
            properties if properties is not None else {}
        )

    @property
    def raw_message(self) -> RawMessage:
        return self._raw_message.get()

    @property
    def message(self) -> Message:
        return self._message.get()

    @property
    def properties(self) -> Properties:
        return self._properties.get()

    def replace(self, **changes: Any) -> LogRecord:
        """Return a copy with *changes* applied; untouched lazy fields stay lazy."""
        unknown = set(changes) - set(self._FIELDS)
        if unknown:
            raise TypeError(f"Unknown LogRecord fields: {', '.join(sorted(unknown))}")
        return LogRecord(
            category=changes.get("category", self.category),
            level=changes.get("level", self.level),
            timestamp=changes.get("timestamp", self.timestamp),
            raw_message=changes.get("raw_message", self._raw_message),
            message=changes.get("message", self._message),
            properties=changes.get("properties", self._properties),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogRecord):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in self._FIELDS)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        def show(cell: Lazy[Any]) -> str:
            return repr(cell.get()) if cell.realized else "<pending>"

        return (
            f"LogRecord(category={self.category!r}, level={self.level.value!r}, "
            f"timestamp={self.timestamp!r}, raw_message={show(self._raw_message)}, "
            f"message={show(self._message)}, properties={show(self._properties)})"
        )


class RawLogRecord:
    """The record shape handed to property transformers.

    It carries everything but the rendered message, so transformers never
    force a lazy message to be realized.
    """

    __slots__ = ("category", "level", "timestamp", "_raw_message", "properties")

    def __init__(
        self,
        category: CategoryList,
        level: LogLevel,
        timestamp: float,
        raw_message: RawMessage | Lazy[RawMessage],
        properties: Properties,
    ) -> None:
        self.category = category
        self.level = level
        self.timestamp = timestamp
        self._raw_message: Lazy[RawMessage] = _as_cell(raw_message)
        self.properties = properties

    @property
    def raw_message(self) -> RawMessage:
        return self._raw_message.get()

    def with_properties(self, properties: Properties) -> RawLogRecord:
        return RawLogRecord(
            self.category, self.level, self.timestamp, self._raw_message, properties
        )

    @classmethod
    def from_record(cls, record: LogRecord) -> RawLogRecord:
        return cls(
            record.category,
            record.level,
            record.timestamp,
            record._raw_message,
            record.properties,
        )


type PropertiesTransformer = Callable[[RawLogRecord], Properties]


def render_message(template: Sequence[str], values: Sequence[object]) -> Message:
    """Interleave literal *template* segments with substituted *values*.

    ``render_message(("Hello, ", "!"), [123])`` yields ``("Hello, ", 123, "!")``.
    """
    if not template:
        return ("",)
    parts: list[object] = []
    for index, literal in enumerate(template):
        parts.append(literal)
        if index < len(values):
            parts.append(values[index])
    return tuple(parts)


_PLACEHOLDER = re.compile(r"\{\{|\}\}|\{([^{}]*)\}")


def _lookup(properties: Properties, name: str) -> object:
    if name in properties:
        return properties[name]
    return properties.get(name.strip())


def parse_message_template(template: str, properties: Properties | None) -> Message:
    """Expand ``{name}`` placeholders of an eager message into a message tuple.

    Each placeholder becomes the matching property value (``None`` when the
    key is absent). ``{{`` and ``}}`` stand for literal braces.
    """
    properties = properties or {}
    parts: list[object] = []
    literal: list[str] = []
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        literal.append(template[position : match.start()])
        token = match.group(0)
        if token == "{{":
            literal.append("{")
        elif token == "}}":
            literal.append("}")
        else:
            parts.append("".join(literal))
            parts.append(_lookup(properties, match.group(1)))
            literal = []
        position = match.end()
    literal.append(template[position:])
    parts.append("".join(literal))
    return tuple(parts)


def merge_properties(
    defaults: Properties | None, properties: Properties | None
) -> Properties | None:
    """Shallow-merge *properties* over *defaults*.

    When only one side is given it is returned as-is, without copying.
    """
    if not properties:
        return defaults if defaults is not None else properties
    if not defaults:
        return properties
    return {**defaults, **properties}
