"""
oiiai.services.log_buffer — In-Memory Log Tail for the Admin Panel
====================================================================

A bounded, thread-safe buffer fed by a :class:`logging.Handler`.  The
admin API reads it with :func:`get_logs` and adjusts what it captures with
:func:`set_capture_level`.  Nothing is persisted; a restart empties it.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Uvicorn turns propagation off on these; we turn it back on
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")

_buffer: LogBuffer | None = None
_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class LogBuffer:
    """Ring buffer of :class:`LogEntry` backed by a bounded deque."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def tail(
        self,
        count: int = 200,
        level: str | None = None,
        logger_prefix: str | None = None,
    ) -> list[dict[str, str]]:
        """Newest *count* entries at or above *level* from loggers under *logger_prefix*."""
        floor = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(floor, int):
            floor = 0

        with self._lock:
            snapshot = list(self._entries)

        matched = [
            asdict(e) for e in snapshot
            if logging.getLevelName(e.level) >= floor
            and (not logger_prefix or e.logger.startswith(logger_prefix))
        ]
        return matched[-count:] if count else matched

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RingBufferHandler(logging.Handler):
    def __init__(self, buffer: LogBuffer, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
            ))
        except Exception:
            self.handleError(record)


def get_buffer() -> LogBuffer:
    global _buffer
    if _buffer is None:
        with _lock:
            if _buffer is None:
                _buffer = LogBuffer()
    return _buffer


def _installed_handler() -> RingBufferHandler | None:
    for handler in logging.getLogger().handlers:
        if isinstance(handler, RingBufferHandler):
            return handler
    return None


def _lower_root_level(level: int) -> None:
    root = logging.getLogger()
    if root.level == logging.NOTSET or root.level > level:
        root.setLevel(level)


def install_handler(level: int = logging.INFO) -> RingBufferHandler:
    """Attach the buffer handler to the root logger (once) and route
    Uvicorn's loggers through it.

    Call after Uvicorn has configured logging, i.e. from the app lifespan.
    """
    handler = _installed_handler()
    if handler is None:
        handler = RingBufferHandler(get_buffer(), level=level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)
    _lower_root_level(level)

    for name in _UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.propagate = True
        uv_logger.setLevel(logging.INFO)
    return handler


def get_logs(
    tail: int = 200,
    level: str | None = None,
    logger_filter: str | None = None,
) -> list[dict[str, str]]:
    return get_buffer().tail(tail, level=level, logger_prefix=logger_filter)


def get_current_level() -> str:
    handler = _installed_handler()
    target = handler if handler is not None else logging.getLogger()
    return logging.getLevelName(target.level)


def set_capture_level(level_name: str) -> str:
    """Change the handler's minimum level; installs it if missing.

    Raises
    ------
    ValueError
        *level_name* is not one of :data:`VALID_LEVELS`.
    """
    level_name = level_name.upper()
    if level_name not in VALID_LEVELS:
        raise ValueError(f"Invalid level: {level_name}. Must be one of {VALID_LEVELS}")

    numeric = logging.getLevelName(level_name)
    handler = _installed_handler()
    if handler is None:
        install_handler(level=numeric)
    else:
        handler.setLevel(numeric)
        _lower_root_level(numeric)
    return level_name
