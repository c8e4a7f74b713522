"""SQLite persistence for structured log entries."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..errors import PersistenceError
from ..log_buffer import LogEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def log_db_path(database_path: Path) -> Path:
    """Location of the log database that accompanies ``database_path``."""
    return database_path.with_name(f"{database_path.stem}-logs{database_path.suffix or '.db'}")


class LogStore:
    """Append-only ``structured_logs`` table with query and retention pruning.

    The store keeps its own connection per thread so log flushes never join
    a release transaction.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._local = threading.local()
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS structured_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                level TEXT NOT NULL,
                source TEXT NOT NULL,
                message TEXT NOT NULL,
                details TEXT,
                release_title TEXT,
                job_id TEXT,
                error TEXT
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_structured_logs_timestamp ON structured_logs(timestamp)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_structured_logs_job ON structured_logs(job_id)")
        conn.commit()

    def _get_connection(self) -> sqlite3.Connection:
        if getattr(self._local, "connection", None) is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._local.connection = sqlite3.connect(self._db_path, timeout=10.0)
            self._local.connection.execute("PRAGMA journal_mode=WAL")
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    def close(self) -> None:
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None

    def append_many(self, entries: Iterable[LogEntry]) -> int:
        rows = [
            (
                entry.timestamp.astimezone(timezone.utc).isoformat(),
                entry.level,
                entry.source,
                entry.message,
                json.dumps(entry.details, default=str) if entry.details else None,
                entry.release_title,
                entry.job_id,
                entry.error,
            )
            for entry in entries
        ]
        if not rows:
            return 0
        conn = self._get_connection()
        try:
            conn.executemany(
                """
                INSERT INTO structured_logs (
                    timestamp, level, source, message, details, release_title, job_id, error
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(f"Failed to write {len(rows)} log entries: {exc}") from exc
        return len(rows)

    def query(
        self,
        *,
        level: Optional[str] = None,
        source: Optional[str] = None,
        search: Optional[str] = None,
        job_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[LogEntry]:
        """Return matching entries, newest first. ``level`` is a minimum."""
        clauses, params = [], []
        if level:
            level = level.upper()
            if level in _LEVELS:
                accepted = _LEVELS[_LEVELS.index(level) :]
                clauses.append(f"level IN ({', '.join('?' for _ in accepted)})")
                params.extend(accepted)
        if source:
            clauses.append("source = ?")
            params.append(source)
        if job_id:
            clauses.append("job_id = ?")
            params.append(job_id)
        if search:
            clauses.append("(message LIKE ? OR release_title LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        rows = self._get_connection().execute(
            f"SELECT * FROM structured_logs {where} ORDER BY timestamp DESC, id DESC LIMIT ?", params
        ).fetchall()
        return [
            LogEntry(
                timestamp=datetime.fromisoformat(row["timestamp"]),
                level=row["level"],
                source=row["source"],
                message=row["message"],
                details=json.loads(row["details"]) if row["details"] else {},
                release_title=row["release_title"],
                job_id=row["job_id"],
                error=row["error"],
            )
            for row in rows
        ]

    def prune(self, max_age_days: Optional[int] = None, max_entries: Optional[int] = None) -> int:
        """Delete entries older than ``max_age_days`` and beyond the newest ``max_entries``."""
        conn = self._get_connection()
        deleted = 0
        try:
            if max_age_days is not None:
                cutoff = (datetime.now(timezone.utc) - timedelta(days=max_age_days)).isoformat()
                deleted += conn.execute("DELETE FROM structured_logs WHERE timestamp < ?", (cutoff,)).rowcount
            if max_entries is not None:
                deleted += conn.execute(
                    """
                    DELETE FROM structured_logs WHERE id NOT IN (
                        SELECT id FROM structured_logs ORDER BY timestamp DESC, id DESC LIMIT ?
                    )
                    """,
                    (max_entries,),
                ).rowcount
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(f"Failed to prune structured logs: {exc}") from exc
        return deleted
