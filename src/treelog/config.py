from __future__ import annotations

import asyncio
import atexit
import inspect
import threading
from collections.abc import Mapping
from typing import Any, Required, TypedDict

from .category import CategoryList, MaybeCategory
from .filter import FilterLike, to_filter
from .level import LogLevelLike
from .logger import META_LOGGER_CATEGORY, Logger, ParentSinks, get_logger, get_meta_logger
from .record import Properties, PropertiesTransformer, RawLogRecord
from .sink import Sink, get_console_sink


class ConfigError(Exception):
    """Raised when a configuration is invalid or applied twice without ``reset``."""


class LoggerConfig(TypedDict, total=False):
    """Configuration of a single category.

    ``level`` adds a level filter ahead of the named ``filters``; an explicit
    ``None`` rejects every record. ``properties`` are defaults placed beneath
    each record's own properties.
    """

    category: Required[MaybeCategory]
    sinks: list[str]
    filters: list[str]
    level: LogLevelLike | None
    parent_sinks: ParentSinks
    properties: Properties
    property_transformers: list[str]


class Config(TypedDict, total=False):
    """Declarative bundle of named sinks, filters and per-category settings."""

    sinks: Mapping[str, Sink]
    filters: Mapping[str, FilterLike]
    property_transformers: Mapping[str, PropertiesTransformer]
    loggers: Required[list[LoggerConfig]]
    reset: bool
    """Replace an existing configuration instead of raising ``ConfigError``."""


_META_OWNERS: frozenset[CategoryList] = frozenset({(), ("treelog",), META_LOGGER_CATEGORY})
_PARENT_SINKS: frozenset[str] = frozenset({"inherit", "override"})

_config_lock = threading.RLock()
_current_config: Config | None = None
# Configured loggers are held here; an unreferenced node would otherwise be
# reclaimed together with its sinks and filters.
_strong_refs: list[Logger] = []
_disposables: list[Any] = []


def _disposables_of(config: Config) -> list[Any]:
    found: list[Any] = []
    for candidate in [*config.get("sinks", {}).values(), *config.get("filters", {}).values()]:
        if hasattr(candidate, "close") or hasattr(candidate, "aclose"):
            if not any(candidate is seen for seen in found):
                found.append(candidate)
    return found


def _close(disposable: Any) -> None:
    close = getattr(disposable, "close", None)
    if callable(close):
        close()


def _defaults_transformer(defaults: Properties) -> PropertiesTransformer:
    frozen = dict(defaults)

    def apply_defaults(record: RawLogRecord) -> Properties:
        return {**frozen, **record.properties}

    return apply_defaults


def _lookup[T](table: Mapping[str, T], name: str, kind: str) -> T:
    try:
        return table[name]
    except KeyError:
        _reset_locked()
        raise ConfigError(f"{kind} not found: {name}.") from None


def _apply_logger_config(config: Config, logger_config: LoggerConfig) -> Logger:
    logger = get_logger(logger_config["category"])
    _strong_refs.append(logger)
    for sink_id in logger_config.get("sinks", []):
        logger.sinks.append(_lookup(config.get("sinks", {}), sink_id, "Sink"))
    if "parent_sinks" in logger_config:
        policy = logger_config["parent_sinks"]
        if policy not in _PARENT_SINKS:
            _reset_locked()
            raise ConfigError(
                f"Invalid parent_sinks: {policy!r}. Expected one of: inherit, override"
            )
        logger.parent_sinks = policy
    if "level" in logger_config:
        try:
            logger.filters.append(to_filter(logger_config["level"]))
        except ValueError as error:
            _reset_locked()
            raise ConfigError(str(error)) from error
    for filter_id in logger_config.get("filters", []):
        logger.filters.append(to_filter(_lookup(config.get("filters", {}), filter_id, "Filter")))
    if logger_config.get("properties"):
        logger.property_transformers.append(_defaults_transformer(logger_config["properties"]))
    for transformer_id in logger_config.get("property_transformers", []):
        logger.property_transformers.append(
            _lookup(config.get("property_transformers", {}), transformer_id, "Property transformer")
        )
    return logger


def configure(config: Config) -> None:
    """Populate the logger tree from a declarative configuration.

    The tree is reset first, then every entry of ``config["loggers"]`` is
    applied in order. Sinks of a previous configuration that are not reused
    are closed.

    Example::

        configure({
            "sinks": {"console": get_console_sink(), "file": get_file_sink("app.log")},
            "filters": {"slow": lambda r: r.properties.get("elapsed", 0) > 1.0},
            "loggers": [
                {"category": "my-app", "sinks": ["console"], "level": "info"},
                {"category": ["my-app", "sql"], "sinks": ["file"], "filters": ["slow"]},
                {"category": ["treelog", "meta"], "sinks": ["console"], "level": "warning"},
            ],
        })

    :raises ConfigError: when already configured and ``reset`` is not set,
        or when an entry names an unknown sink, filter or property
        transformer. The tree is left reset in the latter case.
    """
    global _current_config
    with _config_lock:
        if _current_config is not None and not config.get("reset", False):
            raise ConfigError(
                "Already configured; if you want to reset, turn on the reset flag."
            )
        keep = _disposables_of(config)
        for disposable in _disposables:
            if not any(disposable is kept for kept in keep):
                _close(disposable)
        _disposables.clear()
        # Owned from here on, even if an entry below fails.
        _disposables.extend(keep)
        _strong_refs.clear()
        Logger.get_root().reset_descendants()
        _current_config = config

        meta_configured = False
        for logger_config in config["loggers"]:
            logger = _apply_logger_config(config, logger_config)
            if logger.category in _META_OWNERS:
                meta_configured = True

        meta = get_meta_logger()
        if not meta_configured:
            meta.sinks.append(get_console_sink())

    meta.info(
        "treelog loggers are configured. The library reports its own failures "
        "through the meta logger, category {meta_logger_category}. Give it a "
        "dedicated sink to notice when logging itself fails. To turn off this "
        "message, configure the meta logger with a level above {dismiss_level}.",
        {"meta_logger_category": META_LOGGER_CATEGORY, "dismiss_level": "info"},
    )


def get_config() -> Config | None:
    """Return the active configuration, or ``None`` when unconfigured."""
    return _current_config


def _reset_locked() -> None:
    global _current_config
    Logger.get_root().reset_descendants()
    _strong_refs.clear()
    _current_config = None


def dispose() -> None:
    """Close every disposable sink and filter of the active configuration."""
    with _config_lock:
        disposables = list(_disposables)
        _disposables.clear()
    for disposable in disposables:
        _close(disposable)


def reset() -> None:
    """Dispose the active configuration and clear the whole logger tree."""
    with _config_lock:
        dispose()
        _reset_locked()


async def adispose() -> None:
    """Like :func:`dispose`, awaiting ``aclose()`` where a sink provides one."""
    with _config_lock:
        disposables = list(_disposables)
        _disposables.clear()
    pending = []
    for disposable in disposables:
        aclose = getattr(disposable, "aclose", None)
        if callable(aclose):
            result = aclose()
            if inspect.isawaitable(result):
                pending.append(result)
        else:
            _close(disposable)
    await asyncio.gather(*pending)


async def areset() -> None:
    """Async counterpart of :func:`reset`."""
    await adispose()
    with _config_lock:
        _reset_locked()


atexit.register(dispose)
