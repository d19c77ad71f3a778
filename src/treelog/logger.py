from __future__ import annotations

import threading
import time
import weakref
from collections.abc import Callable, Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from .category import CategoryList, MaybeCategory, get_category_list
from .level import LogLevel, LogLevelLike, parse_log_level
from .record import (
    Lazy,
    LogRecord,
    Message,
    MissingTemplateError,
    Properties,
    PropertiesTransformer,
    RawLogRecord,
    RawMessage,
    merge_properties,
    parse_message_template,
    render_message,
)


if TYPE_CHECKING:
    from .filter import Filter
    from .sink import Sink


META_LOGGER_CATEGORY: CategoryList = ("treelog", "meta")
SINK_FAILURE_MESSAGE = "Failed to emit a log record to sink {sink}: {error}"

type ParentSinks = Literal["inherit", "override"]
type LogTemplatePrefix = Callable[..., Message]
type LogCallback = Callable[[LogTemplatePrefix], Sequence[object]]
type PropertiesLike = Properties | Callable[[], Properties] | None

# Guards structural mutation of the tree (child creation, reset).
_tree_lock = threading.RLock()


def _freeze(properties: Properties | None) -> Mapping[str, Any] | None:
    if properties is None or isinstance(properties, MappingProxyType):
        return properties
    return MappingProxyType(dict(properties))


def _with_extra(properties: PropertiesLike, extra: Properties) -> PropertiesLike:
    """Layer call-time keyword properties over the positional properties."""
    if not extra:
        return properties
    if callable(properties):
        supplier = properties
        return lambda: {**supplier(), **extra}
    return merge_properties(properties, extra)


def _split_template_parts(parts: Sequence[object]) -> tuple[tuple[str, ...], Sequence[object]]:
    """Split ``literal, value, literal, ...`` into literal segments and values."""
    template = parts[0::2]
    values = parts[1::2]
    for literal in template:
        if not isinstance(literal, str):
            raise TypeError(
                f"Template literal segments must be strings, got {type(literal).__name__}"
            )
    literals: tuple[str, ...] = tuple(template)  # type: ignore[arg-type]
    if len(literals) == len(values):
        literals += ("",)
    return literals, values


class Logger:
    """A node of the process-wide category tree.

    Every category has exactly one canonical node at a time. Children are
    held weakly: a node nobody references may be reclaimed, and the next
    lookup recreates it with empty configuration. Sinks, filters and
    property transformers are attached directly to the node; resolution
    walks the ``parent`` chain.

    Obtain nodes with :func:`get_logger` or :meth:`get_child`, never by
    calling the constructor.
    """

    _root: ClassVar[Logger | None] = None

    def __init__(
        self,
        parent: Logger | None,
        category: CategoryList,
        properties: Properties | None = None,
        *,
        canonical: Logger | None = None,
    ) -> None:
        self.parent = parent
        self.category: CategoryList = category
        self.children: weakref.WeakValueDictionary[str, Logger] = weakref.WeakValueDictionary()
        self.sinks: list[Sink] = []
        self.parent_sinks: ParentSinks = "inherit"
        self.filters: list[Filter] = []
        self.property_transformers: list[PropertiesTransformer] = []
        self.properties: Mapping[str, Any] | None = _freeze(
            merge_properties(parent.properties if parent is not None else None, properties)
        )
        self._bound_to: Logger | None = canonical

    # -- tree -----------------------------------------------------------------

    @classmethod
    def get_root(cls) -> Logger:
        """Return the root logger, creating it on first call."""
        root = cls._root
        if root is None:
            with _tree_lock:
                if cls._root is None:
                    cls._root = cls(None, ())
                root = cls._root
        return root

    @property
    def _canonical(self) -> Logger:
        return self._bound_to if self._bound_to is not None else self

    @property
    def is_bound(self) -> bool:
        """``True`` for a property-bound variant created by :meth:`bind`."""
        return self._bound_to is not None

    def _descend(self, names: CategoryList) -> Logger:
        node = self
        with _tree_lock:
            for name in names:
                child = node.children.get(name)
                if child is None:
                    child = Logger(node, (*node.category, name))
                    node.children[name] = child
                node = child
        return node

    def get_child(
        self, subcategory: MaybeCategory, properties: Properties | None = None
    ) -> Logger:
        """Return the logger for ``self.category + subcategory``.

        An empty subcategory (``None``, ``""``, ``[""]``) returns this logger,
        re-bound with *properties* when they are given. A property-bound
        variant resolves the canonical child and re-binds it, so whatever is
        configured on the canonical category still applies.

        Example::

            db = get_logger("app").get_child("db")
            assert db is get_logger(["app", "db"])
        """
        names = get_category_list(subcategory)
        if not names:
            return self.bind(properties) if properties else self
        child = self._canonical._descend(names)
        extra = merge_properties(self.properties if self.is_bound else None, properties)
        return child.bind(extra) if extra else child

    def bind(self, properties: Properties | None = None, **kwargs: Any) -> Logger:
        """Return a variant of this logger carrying extra bound properties.

        The variant shares the category and configuration of this logger;
        its records carry the union of the inherited and the given
        properties, later keys winning.

        Example::

            request_log = log.bind(request_id="req-456")
            request_log.info("Processing {request_id}")
        """
        return Logger(
            self,
            self.category,
            merge_properties(properties, kwargs or None),
            canonical=self._canonical,
        )

    def __iter__(self) -> Iterator[Logger]:
        """Iterate over all live descendants (depth-first)."""
        for child in list(self.children.values()):
            yield child
            yield from child

    def __repr__(self) -> str:
        bound = ", bound" if self.is_bound else ""
        return (
            f"Logger(category={self.category!r}, sinks={len(self.sinks)}, "
            f"filters={len(self.filters)}, parent_sinks={self.parent_sinks!r}{bound})"
        )

    def reset(self) -> None:
        """Remove sinks, filters and property transformers from this logger."""
        with _tree_lock:
            self.sinks.clear()
            self.parent_sinks = "inherit"
            self.filters.clear()
            self.property_transformers.clear()

    def reset_descendants(self) -> None:
        """Reset every live descendant, then this logger."""
        with _tree_lock:
            for child in list(self.children.values()):
                child.reset_descendants()
            self.reset()

    # -- resolution -----------------------------------------------------------

    def filter(self, record: LogRecord) -> bool:
        """Decide whether *record* passes.

        The nearest logger (this one included) with a non-empty filter list
        decides alone: every filter in that list must accept. Filters of
        loggers further up are not consulted.
        """
        node: Logger | None = self
        while node is not None:
            filters = tuple(node.filters)
            if filters:
                return all(accept(record) for accept in filters)
            node = node.parent
        return True

    def get_sinks(self) -> list[Sink]:
        """Return the effective sinks, ancestors' first unless overridden."""
        if self.parent is not None and self.parent_sinks == "inherit":
            sinks = self.parent.get_sinks()
        else:
            sinks = []
        sinks.extend(self.sinks)
        return sinks

    def prop_transform(self, raw_record: RawLogRecord) -> Properties:
        """Apply the nearest non-empty property-transformer list to *raw_record*."""
        node: Logger | None = self
        while node is not None and not node.property_transformers:
            node = node.parent
        if node is None:
            return raw_record.properties
        result = raw_record
        for transform in tuple(node.property_transformers):
            result = result.with_properties(transform(result))
        return result.properties

    def _properties_cell(
        self,
        level: LogLevel,
        timestamp: float,
        raw_message: RawMessage | Lazy[RawMessage],
        properties: PropertiesLike,
    ) -> Lazy[Properties]:
        def compute() -> Properties:
            supplied = properties() if callable(properties) else properties
            merged = merge_properties(self.properties, supplied)
            return self.prop_transform(
                RawLogRecord(self.category, level, timestamp, raw_message, merged or {})
            )

        return Lazy(compute)

    # -- emission -------------------------------------------------------------

    def emit(self, record: LogRecord, bypass_sinks: Sequence[Sink] = ()) -> None:
        """Dispatch *record* to every effective sink not in *bypass_sinks*.

        A sink that raises is reported to the meta logger as a ``fatal``
        record and is skipped for the rest of this dispatch, including the
        dispatch of that meta record.
        """
        if not self.filter(record):
            return
        # Bound methods (``records.append``) compare equal but are not identical.
        bypassed = list(bypass_sinks)
        failed: list[Sink] = []
        for sink in self.get_sinks():
            if sink in bypassed:
                continue
            try:
                sink(record)
            except Exception as error:
                failed.append(sink)
                bypassed.append(sink)
                get_meta_logger()._log(
                    LogLevel.FATAL,
                    SINK_FAILURE_MESSAGE,
                    {"sink": sink, "error": error, "record": record},
                    bypass_sinks=(*bypass_sinks, *failed),
                )

    def _log(
        self,
        level: LogLevelLike,
        raw_message: str,
        properties: PropertiesLike = None,
        *,
        bypass_sinks: Sequence[Sink] = (),
    ) -> None:
        resolved = parse_log_level(level)
        timestamp = time.time()
        props = self._properties_cell(resolved, timestamp, raw_message, properties)
        record = LogRecord(
            self.category,
            resolved,
            timestamp,
            raw_message,
            Lazy(lambda: parse_message_template(raw_message, props.get())),
            props,
        )
        self.emit(record, bypass_sinks)

    def log_lazily(
        self,
        level: LogLevelLike,
        callback: LogCallback,
        properties: Properties | None = None,
    ) -> None:
        """Log a message whose values are only computed if the record is read.

        *callback* receives a template function and must call it once with
        alternating literal segments and values, returning its result::

            log.debug(lambda t: t("Cache holds ", expensive_count(), " entries"))

        :raises MissingTemplateError: when the message is realized and the
            callback never called the template function.
        """
        resolved = parse_log_level(level)
        timestamp = time.time()

        def realize() -> tuple[RawMessage, Message]:
            captured: list[tuple[str, ...]] = []

            def prefix(*parts: object) -> Message:
                template, values = _split_template_parts(parts)
                captured.append(template)
                return render_message(template, values)

            message = callback(prefix)
            if not captured:
                raise MissingTemplateError(
                    "No log record was made: the callback must call the template "
                    "function it receives."
                )
            return captured[-1], tuple(message)

        realized = Lazy(realize)
        raw_message: Lazy[RawMessage] = Lazy(lambda: realized.get()[0])
        record = LogRecord(
            self.category,
            resolved,
            timestamp,
            raw_message,
            Lazy(lambda: realized.get()[1]),
            self._properties_cell(resolved, timestamp, raw_message, properties),
        )
        self.emit(record)

    def log_template(
        self,
        level: LogLevelLike,
        template: Sequence[str],
        values: Sequence[object],
        properties: Properties | None = None,
    ) -> None:
        """Log pre-split literal segments with already-evaluated values.

        Example::

            log.log_template("info", ("Hello, ", "!"), [name])
        """
        resolved = parse_log_level(level)
        timestamp = time.time()
        literals = tuple(template)
        if len(literals) <= len(values):
            literals += ("",) * (len(values) - len(literals) + 1)
        record = LogRecord(
            self.category,
            resolved,
            timestamp,
            literals,
            render_message(literals, values),
            self._properties_cell(resolved, timestamp, literals, properties),
        )
        self.emit(record)

    def log(
        self,
        level: LogLevelLike,
        message: str | LogCallback | Sequence[str],
        *values: Any,
        **properties: Any,
    ) -> None:
        """Log *message* at *level*.

        - ``str``: a template with ``{name}`` placeholders; the optional
          positional argument is a properties mapping or a zero-argument
          callable returning one, only called if the record passes::

              log.info("Took {ms} ms", {"ms": 12})
              log.debug("State {state}", lambda: {"state": snapshot()})

        - callable: a lazy callback, see :meth:`log_lazily`.
        - sequence of ``str``: literal segments followed by the values, see
          :meth:`log_template`.

        Keyword arguments are added to the record's properties.
        """
        if isinstance(message, str):
            if len(values) > 1:
                raise TypeError(
                    "A string message takes at most one positional properties argument"
                )
            supplied: PropertiesLike = values[0] if values else None
            self._log(level, message, _with_extra(supplied, properties))
        elif callable(message):
            if values:
                raise TypeError("A lazy callback message takes no positional arguments")
            self.log_lazily(level, message, properties or None)
        else:
            self.log_template(level, message, values, properties or None)

    def debug(self, message: str | LogCallback | Sequence[str], *values: Any, **properties: Any) -> None:
        """Log at :attr:`LogLevel.DEBUG`."""
        self.log(LogLevel.DEBUG, message, *values, **properties)

    def info(self, message: str | LogCallback | Sequence[str], *values: Any, **properties: Any) -> None:
        """Log at :attr:`LogLevel.INFO`."""
        self.log(LogLevel.INFO, message, *values, **properties)

    def warning(self, message: str | LogCallback | Sequence[str], *values: Any, **properties: Any) -> None:
        """Log at :attr:`LogLevel.WARNING`."""
        self.log(LogLevel.WARNING, message, *values, **properties)

    warn = warning

    def error(self, message: str | LogCallback | Sequence[str], *values: Any, **properties: Any) -> None:
        """Log at :attr:`LogLevel.ERROR`."""
        self.log(LogLevel.ERROR, message, *values, **properties)

    def critical(self, message: str | LogCallback | Sequence[str], *values: Any, **properties: Any) -> None:
        """Log at :attr:`LogLevel.CRITICAL`."""
        self.log(LogLevel.CRITICAL, message, *values, **properties)

    def fatal(self, message: str | LogCallback | Sequence[str], *values: Any, **properties: Any) -> None:
        """Log at :attr:`LogLevel.FATAL`."""
        self.log(LogLevel.FATAL, message, *values, **properties)


def get_logger(category: MaybeCategory = ()) -> Logger:
    """Return the canonical logger for *category*.

    A string is a one-segment category; sequences may nest. Keep the result
    around (typically ``log = get_logger(__name__)``); a logger nobody
    references may be reclaimed together with its configuration.
    """
    return Logger.get_root().get_child(category)


_meta_logger: Logger | None = None


def get_meta_logger() -> Logger:
    """Return the logger used to report the library's own failures."""
    global _meta_logger
    if _meta_logger is None:
        _meta_logger = get_logger(META_LOGGER_CATEGORY)
    return _meta_logger


def is_logger(obj: object) -> bool:
    return isinstance(obj, Logger)
