"""
Request pipeline tracing.

The trace writer receives records from every stage of the request pipeline
(request begin/end, controller selection, activation, action execution,
formatting) and writes the ones at or above its minimum level through
structlog. A bounded history of accepted records is kept for diagnostics.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Deque, List, Optional

import structlog

logger = structlog.get_logger("booklibrary.web.trace")

CATEGORY_REQUEST = "booklibrary.web.request"
CATEGORY_ROUTING = "booklibrary.web.routing"
CATEGORY_CONTROLLERS = "booklibrary.web.controllers"
CATEGORY_ACTIVATION = "booklibrary.web.activation"
CATEGORY_FORMATTING = "booklibrary.web.formatting"


class TraceLevel(IntEnum):
    """Verbosity of trace records, lowest first."""

    OFF = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5


_STDLIB_LEVELS = {
    TraceLevel.DEBUG: logging.DEBUG,
    TraceLevel.INFO: logging.INFO,
    TraceLevel.WARN: logging.WARNING,
    TraceLevel.ERROR: logging.ERROR,
    TraceLevel.FATAL: logging.CRITICAL,
}


@dataclass
class TraceRecord:
    """One trace entry."""

    category: str
    level: TraceLevel
    operator: Optional[str] = None
    operation: Optional[str] = None
    message: str = ""
    request_id: Optional[str] = None
    status_code: Optional[int] = None
    elapsed: Optional[float] = None
    exception: Optional[BaseException] = None
    timestamp: float = field(default_factory=time.time)


class TraceWriter:
    """Receives trace records from the host."""

    def is_enabled(self, category: str, level: TraceLevel) -> bool:
        raise NotImplementedError

    def trace(self, category: str, level: TraceLevel, **fields: Any) -> Optional[TraceRecord]:
        raise NotImplementedError


class SystemDiagnosticsTraceWriter(TraceWriter):
    """
    Trace writer backed by structlog.

    Records below ``minimum_level`` are discarded; with ``TraceLevel.OFF``
    every record is discarded.
    """

    def __init__(self, minimum_level: TraceLevel = TraceLevel.INFO, history_size: int = 256):
        self.minimum_level = minimum_level
        self._history: Deque[TraceRecord] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    @history_size.setter
    def history_size(self, size: int) -> None:
        with self._lock:
            self._history = deque(self._history, maxlen=size)

    @property
    def is_verbose(self) -> bool:
        return self.minimum_level == TraceLevel.DEBUG

    def is_enabled(self, category: str, level: TraceLevel) -> bool:
        if self.minimum_level == TraceLevel.OFF or level == TraceLevel.OFF:
            return False
        return level >= self.minimum_level

    def trace(self, category: str, level: TraceLevel, **fields: Any) -> Optional[TraceRecord]:
        """
        Write a trace record if the level is enabled.

        ``request_id`` defaults to the correlation id bound in the structlog
        context for the current request.

        Returns:
            The accepted record, or None when it was filtered out
        """
        if not self.is_enabled(category, level):
            return None

        if "request_id" not in fields:
            fields["request_id"] = structlog.contextvars.get_contextvars().get("correlation_id")

        record = TraceRecord(category=category, level=level, **fields)
        with self._lock:
            self._history.append(record)

        self._write(record)
        return record

    def _write(self, record: TraceRecord) -> None:
        event = {
            "category": record.category,
            "trace_level": record.level.name,
        }
        for name in ("operator", "operation", "message", "request_id", "status_code"):
            value = getattr(record, name)
            if value not in (None, ""):
                event[name] = value
        if record.elapsed is not None:
            event["elapsed"] = f"{record.elapsed:.3f}s"
        if record.exception is not None:
            event["error"] = str(record.exception)

        logger.log(_STDLIB_LEVELS[record.level], "http_trace", **event)

    @property
    def recent(self) -> List[TraceRecord]:
        """Accepted records, oldest first."""
        with self._lock:
            return list(self._history)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
