"""Run recaps for the log and the console."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.table import Table

from .logging_utils import render_fields_block, render_section_block

if TYPE_CHECKING:
    from .models import RunStats

LOGGER = logging.getLogger(__name__)

SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"
DIM_COLOR = "dim"

MAX_LISTED_ERRORS = 10


def has_activity(stats: RunStats) -> bool:
    return bool(stats.processed or stats.errors or stats.backfilled)


def log_run_recap(stats: RunStats, *, duration: Optional[float] = None) -> None:
    """Log a block summarizing the run, followed by any errors."""
    fields = [
        ("Processed", stats.processed),
        ("New", stats.new),
        ("Upgrade candidates", stats.upgrade_candidates),
        ("Attention needed", stats.attention),
        ("Ignored", stats.ignored),
        ("Already held", stats.existing),
        ("New shows", stats.new_shows),
        ("New seasons", stats.new_seasons),
        ("Preserved", stats.preserved),
        ("Backfilled", stats.backfilled),
        ("Errors", stats.error_count),
    ]
    if duration is not None:
        fields.append(("Duration", f"{duration:.1f}s"))
    if stats.disabled_providers:
        fields.append(("Disabled providers", sorted(stats.disabled_providers)))
    LOGGER.log(logging.INFO if has_activity(stats) else logging.DEBUG, render_fields_block("Run Recap", fields))

    if stats.errors or stats.warnings:
        errors = stats.errors[:MAX_LISTED_ERRORS]
        if len(stats.errors) > MAX_LISTED_ERRORS:
            errors.append(f"... and {len(stats.errors) - MAX_LISTED_ERRORS} more")
        level = logging.ERROR if stats.errors else logging.WARNING
        LOGGER.log(level, render_section_block("Run Problems", [("Errors", errors), ("Warnings", stats.warnings)]))


def _colorize(value: int, *, is_error: bool = False) -> str:
    if value == 0:
        color = DIM_COLOR
    elif is_error:
        color = ERROR_COLOR
    else:
        color = SUCCESS_COLOR
    return f"[{color}]{value}[/{color}]"


def render_summary_table(stats: RunStats, console: Optional[Console] = None) -> Table:
    """Print per-feed and overall counters as a rich table and return it."""
    console = console or Console()
    table = Table(title="Run Summary", show_header=True, header_style="bold")
    table.add_column("Feed", style="cyan")
    table.add_column("Fetched", justify="right")
    table.add_column("New items", justify="right")
    table.add_column("Processed", justify="right")
    table.add_column("Errors", justify="right")

    for name in sorted(stats.per_feed):
        feed = stats.per_feed[name]
        table.add_row(
            name,
            str(feed.fetched),
            str(feed.new_items),
            _colorize(feed.processed),
            _colorize(feed.errors, is_error=True),
        )

    table.add_section()
    table.add_row("[bold]Total[/bold]", "", "", _colorize(stats.processed), _colorize(stats.error_count, is_error=True))

    totals = Table(show_header=False, box=None)
    totals.add_column("Status")
    totals.add_column("Count", justify="right")
    for label, value in (
        ("New", stats.new),
        ("Upgrade candidates", stats.upgrade_candidates),
        ("Attention needed", stats.attention),
        ("Ignored", stats.ignored),
        ("New shows", stats.new_shows),
        ("New seasons", stats.new_seasons),
        ("Backfilled", stats.backfilled),
    ):
        totals.add_row(label, _colorize(value))

    console.print(table)
    console.print(totals)
    if stats.disabled_providers:
        console.print(
            f"[{WARNING_COLOR}]Disabled providers: {', '.join(sorted(stats.disabled_providers))}[/{WARNING_COLOR}]"
        )
    return table
