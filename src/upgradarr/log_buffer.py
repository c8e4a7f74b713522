"""
Structured, bounded log history.

Log records are captured by a ``logging.Handler`` and kept in an in-memory
ring buffer that monitoring surfaces can query. The handler is passed in and
installed explicitly; nothing here patches global output streams. When a
``LogStore`` is supplied, entries are also flushed to SQLite in batches.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .persistence.log_store import LogStore

DEFAULT_CAPACITY = 1000
DEFAULT_FLUSH_SIZE = 50

_LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


@dataclass(slots=True)
class LogEntry:
    """A single structured log entry.

    Attributes:
        timestamp: When the record was emitted (UTC)
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        source: Short component name, e.g. "resolver" or "tmdb"
        message: Rendered log message
        details: Optional structured payload attached via ``extra={"details": ...}``
        release_title: Release the entry concerns, if any
        job_id: Identifier of the run that produced the entry
        error: Formatted exception text when the record carried exc_info
    """

    timestamp: datetime
    level: str
    source: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    release_title: Optional[str] = None
    job_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "source": self.source,
            "message": self.message,
            "details": dict(self.details),
            "release_title": self.release_title,
            "job_id": self.job_id,
            "error": self.error,
        }


class StructuredLogBuffer:
    """Thread-safe ring buffer of ``LogEntry`` objects with bounded retention."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def query(
        self,
        *,
        level: Optional[str] = None,
        source: Optional[str] = None,
        search: Optional[str] = None,
        job_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[LogEntry]:
        """Return matching entries, newest first.

        Args:
            level: Minimum level name; entries below it are skipped
            source: Exact source component to match
            search: Case-insensitive substring of the message or release title
            job_id: Only entries emitted by this run
            limit: Maximum number of entries to return

        Returns:
            Matching entries ordered from newest to oldest.
        """
        threshold = _LEVEL_ORDER.get(level.upper(), 0) if level else 0
        needle = search.lower() if search else None
        with self._lock:
            snapshot = list(self._entries)

        results: List[LogEntry] = []
        for entry in reversed(snapshot):
            if _LEVEL_ORDER.get(entry.level, 0) < threshold:
                continue
            if source and entry.source != source:
                continue
            if job_id and entry.job_id != job_id:
                continue
            if needle:
                haystack = f"{entry.message}\n{entry.release_title or ''}".lower()
                if needle not in haystack:
                    continue
            results.append(entry)
            if limit is not None and len(results) >= limit:
                break
        return results


def _source_for(record: logging.LogRecord) -> str:
    explicit = getattr(record, "source", None)
    if explicit:
        return str(explicit)
    return record.name.rsplit(".", 1)[-1]


class StructuredLogHandler(logging.Handler):
    """Forwards log records into a ``StructuredLogBuffer``.

    Records may carry ``details``, ``release_title``, ``job_id`` and ``source``
    through the ``extra`` mapping. With a ``LogStore`` the entries are also
    persisted in batches of ``flush_size``.
    """

    def __init__(
        self,
        buffer: StructuredLogBuffer,
        *,
        store: Optional[LogStore] = None,
        job_id: Optional[str] = None,
        level: int = logging.NOTSET,
        flush_size: int = DEFAULT_FLUSH_SIZE,
    ) -> None:
        super().__init__(level)
        self.buffer = buffer
        self.store = store
        self.job_id = job_id
        self.flush_size = max(flush_size, 1)
        self._pending: List[LogEntry] = []
        self.setFormatter(logging.Formatter("%(message)s"))

    def to_entry(self, record: logging.LogRecord) -> LogEntry:
        details = getattr(record, "details", None)
        error = None
        if record.exc_info:
            error = logging.Formatter().formatException(record.exc_info)
        return LogEntry(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
            level=record.levelname,
            source=_source_for(record),
            message=record.getMessage(),
            details=dict(details) if isinstance(details, dict) else {},
            release_title=getattr(record, "release_title", None),
            job_id=getattr(record, "job_id", None) or self.job_id,
            error=error,
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = self.to_entry(record)
            self.buffer.append(entry)
            if self.store is not None:
                self._pending.append(entry)
                if len(self._pending) >= self.flush_size:
                    self.flush()
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        if self.store is None or not self._pending:
            return
        self.acquire()
        try:
            batch, self._pending = self._pending, []
            self.store.append_many(batch)
        finally:
            self.release()

    def close(self) -> None:
        try:
            self.flush()
        finally:
            super().close()


def install_log_buffer(
    buffer: StructuredLogBuffer,
    *,
    logger: Optional[logging.Logger] = None,
    store: Optional[LogStore] = None,
    job_id: Optional[str] = None,
    level: int = logging.DEBUG,
) -> StructuredLogHandler:
    """Attach a ``StructuredLogHandler`` to ``logger`` (root when omitted).

    Returns:
        The installed handler, to be passed to ``remove_log_buffer`` later.
    """
    handler = StructuredLogHandler(buffer, store=store, job_id=job_id, level=level)
    (logger or logging.getLogger()).addHandler(handler)
    return handler


def remove_log_buffer(handler: StructuredLogHandler, *, logger: Optional[logging.Logger] = None) -> None:
    """Detach and close a handler installed by ``install_log_buffer``."""
    (logger or logging.getLogger()).removeHandler(handler)
    handler.close()
