"""Thread-safe logging with optional file output and a live callback."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Callable, Optional, TextIO

_MAX_MESSAGE = 2047


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


_TAGS = {
    LogLevel.DEBUG: "DBG",
    LogLevel.INFO: "INF",
    LogLevel.WARNING: "WRN",
    LogLevel.ERROR: "ERR",
    LogLevel.FATAL: "FAT",
}

LogCallback = Callable[[LogLevel, str], None]


class Logger:
    """Formats timestamped entries and sends them to debug output, a file and a callback."""

    def __init__(self, min_level: LogLevel = LogLevel.DEBUG) -> None:
        self._lock = threading.RLock()
        self._min_level = LogLevel(min_level)
        self._file: Optional[TextIO] = None
        self._callback: Optional[LogCallback] = None
        self._debug_sink = logging.getLogger("tekscope")

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    def set_min_level(self, level: LogLevel) -> None:
        self._min_level = LogLevel(level)

    def enable_file_log(self, path) -> None:
        """Append entries to the given file, replacing any file already open."""
        with self._lock:
            self._close_file()
            self._file = Path(path).open("a", encoding="utf-8")

    def disable_file_log(self) -> None:
        with self._lock:
            self._close_file()

    def set_callback(self, callback: LogCallback) -> None:
        with self._lock:
            self._callback = callback

    def clear_callback(self) -> None:
        with self._lock:
            self._callback = None

    def log(self, level: LogLevel, category: str, message: str) -> None:
        level = LogLevel(level)
        if level < self._min_level:
            return
        self._write_entry(level, category, str(message)[:_MAX_MESSAGE])

    def debug(self, category: str, message: str) -> None:
        self.log(LogLevel.DEBUG, category, message)

    def info(self, category: str, message: str) -> None:
        self.log(LogLevel.INFO, category, message)

    def warning(self, category: str, message: str) -> None:
        self.log(LogLevel.WARNING, category, message)

    def error(self, category: str, message: str) -> None:
        self.log(LogLevel.ERROR, category, message)

    def fatal(self, category: str, message: str) -> None:
        self.log(LogLevel.FATAL, category, message)

    def _close_file(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def _write_entry(self, level: LogLevel, category: str, message: str) -> None:
        now = datetime.now()
        stamp = now.strftime("%Y-%m-%d %H:%M:%S") + f".{now.microsecond // 1000:03d}"
        entry = f"{stamp} [{_TAGS[level]}] [{category or ''}] {message}"
        with self._lock:
            self._debug_sink.debug(entry)
            if self._file is not None:
                self._file.write(entry + "\n")
                self._file.flush()
            if self._callback is not None:
                self._callback(level, entry)


_INSTANCE = Logger()


def get_logger() -> Logger:
    """Return the process-wide logger."""
    return _INSTANCE