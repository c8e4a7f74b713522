from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class FeedStats:
    fetched: int = 0
    new_items: int = 0
    processed: int = 0
    errors: int = 0


@dataclass(slots=True)
class RunStats:
    """Aggregate counters for one pipeline pass."""

    processed: int = 0
    new: int = 0
    upgrade_candidates: int = 0
    ignored: int = 0
    attention: int = 0
    existing: int = 0
    new_shows: int = 0
    new_seasons: int = 0
    preserved: int = 0
    backfilled: int = 0
    held_movies: int = 0
    held_shows: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    disabled_providers: Dict[str, str] = field(default_factory=dict)
    per_feed: Dict[str, FeedStats] = field(default_factory=dict)

    def feed(self, name: str) -> FeedStats:
        return self.per_feed.setdefault(name, FeedStats())

    def register_fetched(self, feed_name: str, count: int, new_items: int) -> None:
        stats = self.feed(feed_name)
        stats.fetched += count
        stats.new_items += new_items

    def register_status(self, status: str, *, feed_name: Optional[str] = None, preserved: bool = False) -> None:
        """Count a classified release under its status."""
        self.processed += 1
        if feed_name:
            self.feed(feed_name).processed += 1
        if preserved:
            self.preserved += 1
            return
        if status == "NEW":
            self.new += 1
        elif status == "UPGRADE_CANDIDATE":
            self.upgrade_candidates += 1
        elif status == "ATTENTION_NEEDED":
            self.attention += 1
        elif status == "NEW_SHOW":
            self.new_shows += 1
        elif status == "NEW_SEASON":
            self.new_seasons += 1
        elif status == "IGNORED":
            self.ignored += 1

    def register_existing(self) -> None:
        self.existing += 1

    def register_error(self, message: str, *, feed_name: Optional[str] = None) -> None:
        self.errors.append(message)
        if feed_name:
            self.feed(feed_name).errors += 1

    def register_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def summary(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "new": self.new,
            "upgrade_candidates": self.upgrade_candidates,
            "ignored": self.ignored,
            "attention": self.attention,
            "existing": self.existing,
            "new_shows": self.new_shows,
            "new_seasons": self.new_seasons,
            "preserved": self.preserved,
            "backfilled": self.backfilled,
            "held_movies": self.held_movies,
            "held_shows": self.held_shows,
            "errors": self.error_count,
            "disabled_providers": dict(self.disabled_providers),
            "feeds": {
                name: {
                    "fetched": stats.fetched,
                    "new_items": stats.new_items,
                    "processed": stats.processed,
                    "errors": stats.errors,
                }
                for name, stats in self.per_feed.items()
            },
        }
