"""Hierarchical, category-based structured logging."""
# ruff: noqa: E402

__author__ = "Nicholas Corbin"
__email__ = "nickcorbin17@yahoo.com"

from .category import Category, CategoryList, MaybeCategory, get_category_list
from .config import (
    Config,
    ConfigError,
    LoggerConfig,
    adispose,
    areset,
    configure,
    dispose,
    get_config,
    reset,
)
from .filesink import FileSink, RotatingFileSink, get_file_sink, get_rotating_file_sink
from .filter import Filter, FilterLike, get_level_filter, to_filter
from .formatter import (
    FormattedValues,
    TextFormatter,
    ansi_color_formatter,
    default_text_formatter,
    get_ansi_color_formatter,
    get_text_formatter,
)
from .level import LogLevel, compare_log_levels, is_log_level, parse_log_level
from .logger import META_LOGGER_CATEGORY, Logger, get_logger, get_meta_logger, is_logger
from .record import (
    Lazy,
    LogRecord,
    MissingTemplateError,
    RawLogRecord,
    merge_properties,
    parse_message_template,
    render_message,
)
from .sink import Sink, get_console_sink, get_stream_sink, with_filter


__all__ = [
    "META_LOGGER_CATEGORY",
    "Category",
    "CategoryList",
    "Config",
    "ConfigError",
    "FileSink",
    "Filter",
    "FilterLike",
    "FormattedValues",
    "Lazy",
    "LogLevel",
    "LogRecord",
    "Logger",
    "LoggerConfig",
    "MaybeCategory",
    "MissingTemplateError",
    "RawLogRecord",
    "RotatingFileSink",
    "Sink",
    "TextFormatter",
    "adispose",
    "ansi_color_formatter",
    "areset",
    "compare_log_levels",
    "configure",
    "default_text_formatter",
    "dispose",
    "get_ansi_color_formatter",
    "get_category_list",
    "get_config",
    "get_console_sink",
    "get_file_sink",
    "get_level_filter",
    "get_logger",
    "get_meta_logger",
    "get_rotating_file_sink",
    "get_stream_sink",
    "get_text_formatter",
    "is_log_level",
    "is_logger",
    "merge_properties",
    "parse_log_level",
    "parse_message_template",
    "render_message",
    "reset",
    "to_filter",
    "with_filter",
]
