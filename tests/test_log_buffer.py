"""Tests for the structured log buffer, handler and SQLite log store."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from upgradarr.log_buffer import (
    LogEntry,
    StructuredLogBuffer,
    StructuredLogHandler,
    install_log_buffer,
    remove_log_buffer,
)
from upgradarr.persistence import LogStore, log_db_path


def _entry(message: str, level: str = "INFO", **kwargs) -> LogEntry:
    kwargs.setdefault("timestamp", datetime.now(timezone.utc))
    kwargs.setdefault("source", "resolver")
    return LogEntry(level=level, message=message, **kwargs)


@pytest.fixture
def log_store(tmp_path: Path) -> LogStore:
    store = LogStore(tmp_path / "logs.db")
    yield store
    store.close()


class TestStructuredLogBuffer:
    def test_capacity_is_bounded(self) -> None:
        buffer = StructuredLogBuffer(capacity=3)
        for index in range(5):
            buffer.append(_entry(f"message {index}"))

        assert len(buffer) == 3
        assert [entry.message for entry in buffer.query()] == ["message 4", "message 3", "message 2"]

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError):
            StructuredLogBuffer(capacity=0)

    def test_query_filters(self) -> None:
        buffer = StructuredLogBuffer()
        buffer.append(_entry("debug noise", level="DEBUG"))
        buffer.append(_entry("tmdb down", level="WARNING", source="tmdb", job_id="job-1"))
        buffer.append(_entry("Linked", release_title="Inception 2010", job_id="job-2"))

        assert [entry.message for entry in buffer.query(level="warning")] == ["tmdb down"]
        assert [entry.message for entry in buffer.query(source="tmdb")] == ["tmdb down"]
        assert [entry.message for entry in buffer.query(search="inception")] == ["Linked"]
        assert [entry.message for entry in buffer.query(job_id="job-1")] == ["tmdb down"]
        assert len(buffer.query(limit=1)) == 1


class TestStructuredLogHandler:
    def test_records_carry_extra_fields(self) -> None:
        buffer = StructuredLogBuffer()
        logger = logging.getLogger("upgradarr.tests.handler")
        handler = install_log_buffer(buffer, logger=logger, job_id="job-9")
        try:
            logger.warning(
                "Mismatch for %s",
                "Inception",
                extra={"release_title": "Inception.2010", "details": {"field": "imdb_id"}},
            )
        finally:
            remove_log_buffer(handler, logger=logger)

        entry = buffer.query()[0]
        assert entry.message == "Mismatch for Inception"
        assert entry.source == "handler"
        assert entry.release_title == "Inception.2010"
        assert entry.details == {"field": "imdb_id"}
        assert entry.job_id == "job-9"
        assert handler not in logger.handlers

    def test_exception_text_is_captured(self) -> None:
        buffer = StructuredLogBuffer()
        handler = StructuredLogHandler(buffer)
        logger = logging.getLogger("upgradarr.tests.errors")
        logger.addHandler(handler)
        try:
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("Failed", extra={"source": "pipeline"})
        finally:
            logger.removeHandler(handler)

        entry = buffer.query()[0]
        assert entry.source == "pipeline"
        assert "RuntimeError: boom" in entry.error

    def test_flushes_to_store_in_batches(self, log_store: LogStore) -> None:
        buffer = StructuredLogBuffer()
        handler = StructuredLogHandler(buffer, store=log_store, flush_size=2)
        logger = logging.getLogger("upgradarr.tests.flush")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            logger.info("one")
            logger.info("two")
            logger.info("three")
            assert len(log_store.query()) == 2
        finally:
            logger.removeHandler(handler)
            handler.close()

        assert len(log_store.query()) == 3


class TestLogStore:
    def test_log_db_path(self) -> None:
        assert log_db_path(Path("/data/upgradarr.db")) == Path("/data/upgradarr-logs.db")
        assert log_db_path(Path("/data/state")) == Path("/data/state-logs.db")

    def test_append_and_query(self, log_store: LogStore) -> None:
        written = log_store.append_many(
            [
                _entry("resolved", level="DEBUG"),
                _entry("rate limited", level="WARNING", source="tmdb", details={"status": 429}),
                _entry("failed", level="ERROR", release_title="Dune 2021", job_id="abc"),
            ]
        )

        assert written == 3
        assert {entry.message for entry in log_store.query(level="WARNING")} == {"rate limited", "failed"}
        assert log_store.query(source="tmdb")[0].details == {"status": 429}
        assert log_store.query(search="dune")[0].message == "failed"
        assert log_store.query(job_id="abc")[0].release_title == "Dune 2021"
        assert log_store.append_many([]) == 0

    def test_prune_by_age_and_count(self, log_store: LogStore) -> None:
        old = datetime.now(timezone.utc) - timedelta(days=30)
        log_store.append_many([_entry("old", timestamp=old)] + [_entry(f"new {index}") for index in range(3)])

        assert log_store.prune(max_age_days=7) == 1
        assert log_store.prune(max_entries=2) == 1
        assert len(log_store.query()) == 2
