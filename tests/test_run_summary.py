from __future__ import annotations

import io
import logging
from unittest.mock import MagicMock

from rich.console import Console

from upgradarr.models import RunStats
from upgradarr.progress import ProgressTracker, RichProgressListener
from upgradarr.run_summary import has_activity, log_run_recap, render_summary_table


class TestHasActivity:
    """Test has_activity function."""

    def test_returns_false_for_empty_stats(self) -> None:
        assert has_activity(RunStats()) is False

    def test_returns_true_when_processed(self) -> None:
        assert has_activity(RunStats(processed=2)) is True

    def test_returns_true_when_errors(self) -> None:
        assert has_activity(RunStats(errors=["Feed movies: timeout"])) is True


class TestRunStats:
    def test_register_status_counts_per_feed(self) -> None:
        stats = RunStats()
        stats.register_status("NEW", feed_name="movies")
        stats.register_status("UPGRADE_CANDIDATE", feed_name="movies")
        stats.register_status("ADDED", feed_name="movies", preserved=True)
        stats.register_status("NEW_SEASON", feed_name="shows")

        assert (stats.new, stats.upgrade_candidates, stats.preserved, stats.new_seasons) == (1, 1, 1, 1)
        assert stats.processed == 4
        assert stats.per_feed["movies"].processed == 3

    def test_warnings_are_deduplicated(self) -> None:
        stats = RunStats()
        stats.register_warning("Radarr sync failed")
        stats.register_warning("Radarr sync failed")

        assert stats.warnings == ["Radarr sync failed"]

    def test_summary(self) -> None:
        stats = RunStats()
        stats.register_fetched("movies", 5, 2)
        stats.register_error("boom", feed_name="movies")

        summary = stats.summary()

        assert summary["errors"] == 1
        assert summary["feeds"]["movies"] == {"fetched": 5, "new_items": 2, "processed": 0, "errors": 1}


class TestLogRunRecap:
    def test_recap_and_problems_are_logged(self, caplog) -> None:
        stats = RunStats(processed=3, new=1, errors=["Feed movies: timeout"], disabled_providers={"tmdb": "429"})

        with caplog.at_level(logging.DEBUG, logger="upgradarr.run_summary"):
            log_run_recap(stats, duration=1.25)

        recap, problems = caplog.records
        assert recap.levelno == logging.INFO
        assert "Run Recap" in recap.getMessage()
        assert "1.2s" in recap.getMessage() or "1.3s" in recap.getMessage()
        assert "tmdb" in recap.getMessage()
        assert problems.levelno == logging.ERROR
        assert "Feed movies: timeout" in problems.getMessage()

    def test_idle_run_logs_at_debug(self, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="upgradarr.run_summary"):
            log_run_recap(RunStats())

        assert [record.levelno for record in caplog.records] == [logging.DEBUG]


class TestRenderSummaryTable:
    def test_rows_per_feed(self) -> None:
        stats = RunStats()
        stats.register_fetched("movies", 3, 3)
        stats.register_status("NEW", feed_name="movies")
        stats.disabled_providers = {"omdb": "limit reached"}
        buffer = io.StringIO()
        console = Console(file=buffer, width=120, color_system=None)

        table = render_summary_table(stats, console)

        output = buffer.getvalue()
        assert table.row_count == 2
        assert "movies" in output
        assert "Disabled providers: omdb" in output


class TestProgressTracker:
    def test_latest_event_and_listeners(self) -> None:
        tracker = ProgressTracker()
        seen = []
        tracker.add_listener(seen.append)

        event = tracker.update("movie-matching", 2, 4, 0, "movies")

        assert tracker.latest is event
        assert event.fraction == 0.5
        assert seen == [event]

    def test_failing_listener_does_not_interrupt(self) -> None:
        tracker = ProgressTracker()
        tracker.add_listener(MagicMock(side_effect=RuntimeError("broken")))
        seen = []
        tracker.add_listener(seen.append)

        tracker.update("feed-sync")

        assert len(seen) == 1

    def test_rich_listener_creates_one_task_per_step(self) -> None:
        progress = MagicMock()
        progress.add_task.return_value = 1
        listener = RichProgressListener(progress)
        tracker = ProgressTracker()
        tracker.add_listener(listener)

        tracker.update("feed-sync", 0, 2)
        tracker.update("feed-sync", 1, 2)

        progress.add_task.assert_called_once_with("feed-sync", total=2)
        assert progress.update.call_count == 2
