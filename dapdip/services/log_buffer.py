"""
dapdip.services.log_buffer — Live Log Tail for the Admin API
==============================================================

A bounded in-memory buffer fed by a :class:`logging.Handler`.  The admin
router reads it through :func:`get_logs` and adjusts the capture level
with :func:`set_capture_level`.  Nothing is persisted; a restart starts
with an empty buffer.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_buffer: LogBuffer | None = None
_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class LogBuffer:
    """Fixed-capacity, thread-safe store of recent :class:`LogEntry` rows."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_entries(
        self,
        tail: int = 200,
        level: str | None = None,
        logger_filter: str | None = None,
    ) -> list[dict[str, str]]:
        """Newest *tail* entries at or above *level* whose logger name starts
        with *logger_filter*, oldest first.
        """
        threshold = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(threshold, int):
            threshold = 0

        with self._lock:
            snapshot = list(self._entries)

        matched = [
            asdict(entry)
            for entry in snapshot
            if logging.getLevelName(entry.level) >= threshold
            and (not logger_filter or entry.logger.startswith(logger_filter))
        ]
        return matched[-tail:] if tail else matched

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RingBufferHandler(logging.Handler):
    """Forwards every record it accepts into a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(
                LogEntry(
                    timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                    level=record.levelname,
                    logger=record.name,
                    message=self.format(record),
                )
            )
        except Exception:
            self.handleError(record)


# ---------------------------------------------------------------------------
# Process-wide access
# ---------------------------------------------------------------------------
def get_buffer() -> LogBuffer:
    global _buffer
    with _lock:
        if _buffer is None:
            _buffer = LogBuffer()
    return _buffer


def _installed_handler() -> RingBufferHandler | None:
    for handler in logging.getLogger().handlers:
        if isinstance(handler, RingBufferHandler):
            return handler
    return None


def install_handler(level: int = logging.DEBUG) -> RingBufferHandler:
    """Attach the buffer handler to the root logger (once).

    Uvicorn turns propagation off for its own loggers, so it is switched
    back on here; this runs from the app lifespan, after Uvicorn has
    configured logging.
    """
    handler = _installed_handler()
    if handler is None:
        handler = RingBufferHandler(get_buffer(), level=level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.propagate = True
        uv_logger.setLevel(logging.INFO)
    logging.getLogger("dapdip").setLevel(logging.DEBUG)
    return handler


def get_logs(
    tail: int = 200,
    level: str | None = None,
    logger_filter: str | None = None,
) -> list[dict[str, str]]:
    return get_buffer().get_entries(tail=tail, level=level, logger_filter=logger_filter)


def get_current_level() -> str:
    handler = _installed_handler()
    if handler is not None:
        return logging.getLevelName(handler.level)
    return logging.getLevelName(logging.getLogger().level)


def set_capture_level(level_name: str) -> str:
    """Change the minimum captured level; returns the normalised name.

    Raises
    ------
    ValueError
        If *level_name* is not one of :data:`VALID_LEVELS`.
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
    return level_name
