from __future__ import annotations

import atexit
import os
import threading
from pathlib import Path
from typing import BinaryIO, Self

from .formatter import TextFormatter, default_text_formatter
from .record import LogRecord


DEFAULT_MAX_SIZE = 1024 * 1024
DEFAULT_MAX_FILES = 5


class FileSink:
    """Append formatted records to a file, synchronously.

    The file (and its parent directories) is created on the first write, not
    at construction. Every write is flushed. The handle is closed by
    :meth:`close`, when the owning configuration is disposed, or at
    interpreter exit.

    :param path: Destination file.
    :param formatter: Turns a record into one line of text.
    :param encoding: Encoding used to turn that text into bytes.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        formatter: TextFormatter = default_text_formatter,
        encoding: str = "utf-8",
    ) -> None:
        self.path = Path(path)
        self.formatter = formatter
        self.encoding = encoding
        self._handle: BinaryIO | None = None
        self._closed = False
        self._lock = threading.Lock()
        atexit.register(self.close)

    @property
    def closed(self) -> bool:
        return self._closed

    def _open(self) -> BinaryIO:
        if self._closed:
            raise ValueError(f"Cannot write to a closed file sink: {self.path}")
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.path, "ab")
        return self._handle

    def _write(self, chunk: bytes) -> None:
        handle = self._open()
        handle.write(chunk)
        handle.flush()

    def __call__(self, record: LogRecord) -> None:
        chunk = self.formatter(record).encode(self.encoding)
        with self._lock:
            self._write(chunk)

    def close(self) -> None:
        """Flush and close the file handle (idempotent)."""
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None
            self._closed = True
        atexit.unregister(self.close)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"


class RotatingFileSink(FileSink):
    """A :class:`FileSink` that rotates once the file would outgrow *max_size*.

    Before a write that would take a non-empty file past *max_size* bytes,
    ``P.(n-1)`` is moved to ``P.n`` down to ``P.1``, ``P`` becomes ``P.1``
    and the write goes to a fresh ``P``. At most *max_files* rotated files
    are kept; the oldest is overwritten. A single record is never split
    across files, so a record larger than *max_size* still lands whole.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        max_files: int = DEFAULT_MAX_FILES,
        formatter: TextFormatter = default_text_formatter,
        encoding: str = "utf-8",
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if max_files < 1:
            raise ValueError(f"max_files must be at least 1, got {max_files}")
        super().__init__(path, formatter=formatter, encoding=encoding)
        self.max_size = max_size
        self.max_files = max_files
        self._offset = 0

    def rotated_path(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}.{index}")

    def _open(self) -> BinaryIO:
        opening = self._handle is None
        handle = super()._open()
        if opening:
            self._offset = os.fstat(handle.fileno()).st_size
        return handle

    def _rotate(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        for index in range(self.max_files - 1, 0, -1):
            source = self.rotated_path(index)
            if source.exists():
                os.replace(source, self.rotated_path(index + 1))
        os.replace(self.path, self.rotated_path(1))

    def _write(self, chunk: bytes) -> None:
        self._open()
        if self._offset > 0 and self._offset + len(chunk) > self.max_size:
            self._rotate()
        handle = self._open()
        handle.write(chunk)
        handle.flush()
        self._offset += len(chunk)


def get_file_sink(
    path: str | os.PathLike[str],
    *,
    formatter: TextFormatter = default_text_formatter,
    encoding: str = "utf-8",
) -> FileSink:
    """Return a sink appending to *path*. See :class:`FileSink`."""
    return FileSink(path, formatter=formatter, encoding=encoding)


def get_rotating_file_sink(
    path: str | os.PathLike[str],
    *,
    max_size: int = DEFAULT_MAX_SIZE,
    max_files: int = DEFAULT_MAX_FILES,
    formatter: TextFormatter = default_text_formatter,
    encoding: str = "utf-8",
) -> RotatingFileSink:
    """Return a size-rotated file sink. See :class:`RotatingFileSink`.

    Example::

        sink = get_rotating_file_sink("logs/app.log", max_size=10 * 1024 * 1024)
    """
    return RotatingFileSink(
        path, max_size=max_size, max_files=max_files, formatter=formatter, encoding=encoding
    )
