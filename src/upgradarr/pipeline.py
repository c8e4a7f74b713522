"""Batch sync orchestration.

A run is a fixed sequence of stages sharing one ``PipelineContext``:

1. ``LibrarySyncStage`` snapshots the held library (Radarr, Sonarr),
2. ``FeedSyncStage`` fetches every enabled feed and stores its items,
3. ``MovieMatchingStage`` and ``TvMatchingStage`` reconcile stored items,
4. ``BackfillStage`` links releases to movies that appeared since.

Each feed's writes form one transaction; each item is a savepoint inside it,
so a failed item is rolled back alone and the batch continues.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol, Sequence

from .backfill import backfill_library_links
from .config import AppConfig, FeedConfig, apply_settings_mapping
from .errors import PersistenceError, ProviderError
from .feeds import FeedFetcher
from .library.index import HeldLibraryIndex, HeldShowIndex
from .library.radarr import RadarrClient
from .library.sonarr import SonarrClient
from .matching import match_movie_release
from .models import RunStats
from .parsers.feed_item import parse_feed_item
from .persistence.release_store import FeedItemRecord, ReleaseStore
from .progress import ProgressTracker
from .providers import ProviderClients, ProviderGate
from .reconciliation import is_terminal, resolve_status
from .resolver import IdentifierResolver
from .run_summary import log_run_recap
from .tv_matching import known_show_from_record, match_tv_release
from .tv_resolver import KnownShow, TvIdentifierResolver

LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """State shared by the stages of one run.

    Stage outputs (``held_index``, ``show_index``, ``feed_items``) are set by
    the sync stages and consumed by the matching stages.
    """

    config: AppConfig
    store: ReleaseStore
    clients: ProviderClients
    gate: ProviderGate = field(default_factory=ProviderGate)
    progress: ProgressTracker = field(default_factory=ProgressTracker)
    stats: RunStats = field(default_factory=RunStats)
    radarr: Optional[RadarrClient] = None
    sonarr: Optional[SonarrClient] = None
    feed_fetcher: Optional[FeedFetcher] = None
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    held_index: HeldLibraryIndex = field(default_factory=HeldLibraryIndex)
    show_index: HeldShowIndex = field(default_factory=HeldShowIndex)
    feed_items: Dict[str, List[FeedItemRecord]] = field(default_factory=dict)

    @property
    def settings(self):
        return self.config.settings

    def enabled_feeds(self, kind: Optional[str] = None) -> List[FeedConfig]:
        return [feed for feed in self.config.feeds if feed.enabled and (kind is None or feed.kind == kind)]

    def close(self) -> None:
        self.clients.close()
        for client in (self.radarr, self.sonarr, self.feed_fetcher):
            if client is not None:
                client.close()


def build_context(
    config: AppConfig,
    store: ReleaseStore,
    *,
    progress: Optional[ProgressTracker] = None,
    job_id: Optional[str] = None,
) -> PipelineContext:
    """Create a context with clients built from the effective settings.

    Values saved in the store's settings table override the file configuration.
    """
    settings = apply_settings_mapping(config.settings, store.get_app_settings())
    config = replace(config, settings=settings)
    library = settings.library
    context = PipelineContext(
        config=config,
        store=store,
        clients=ProviderClients.from_settings(settings.providers),
        progress=progress or ProgressTracker(),
        radarr=RadarrClient(library.radarr_url, library.radarr_api_key, timeout=library.timeout)
        if library.radarr_enabled
        else None,
        sonarr=SonarrClient(library.sonarr_url, library.sonarr_api_key, timeout=library.timeout)
        if library.sonarr_enabled
        else None,
        feed_fetcher=FeedFetcher(timeout=library.timeout),
    )
    if job_id:
        context.job_id = job_id
    return context


class Stage(Protocol):
    name: str

    def run(self, context: PipelineContext) -> None: ...


class LibrarySyncStage:
    """Refresh the held-library snapshot; fall back to the stored one on failure."""

    name = "library-sync"

    def run(self, context: PipelineContext) -> None:
        store, stats = context.store, context.stats

        movies = None
        if context.radarr is not None:
            context.progress.update(self.name, message="Fetching Radarr movies")
            try:
                movies = context.gate.call("radarr", context.radarr.list_movies)
                store.replace_held_movies(movies)
            except ProviderError as exc:
                LOGGER.warning("Radarr sync failed, using stored snapshot: %s", exc)
                stats.register_warning(f"Radarr sync failed: {exc}")
                movies = None
        if movies is None:
            movies = store.list_held_movies()
        context.held_index = HeldLibraryIndex(movies)
        stats.held_movies = len(movies)

        shows = None
        if context.sonarr is not None:
            context.progress.update(self.name, message="Fetching Sonarr series")
            try:
                shows = context.gate.call("sonarr", context.sonarr.list_series)
                store.replace_held_shows(shows)
            except ProviderError as exc:
                LOGGER.warning("Sonarr sync failed, using stored snapshot: %s", exc)
                stats.register_warning(f"Sonarr sync failed: {exc}")
                shows = None
        if shows is None:
            shows = store.list_held_shows()
        context.show_index = HeldShowIndex(shows)
        stats.held_shows = len(shows)
        LOGGER.info("Held library: %d movie(s), %d show(s)", len(movies), len(shows))


class FeedSyncStage:
    """Fetch each enabled feed and store its items, one transaction per feed."""

    name = "feed-sync"

    def run(self, context: PipelineContext) -> None:
        feeds = context.enabled_feeds()
        fetcher = context.feed_fetcher or FeedFetcher()
        for index, feed in enumerate(feeds, start=1):
            context.progress.update(self.name, index - 1, len(feeds), context.stats.error_count, feed.name)
            try:
                items = fetcher.fetch(feed.url)
            except ProviderError as exc:
                LOGGER.error("Failed to fetch feed %s: %s", feed.name, exc)
                context.stats.register_error(f"Feed {feed.name}: {exc}", feed_name=feed.name)
                items = []

            new_items = 0
            try:
                with context.store.transaction():
                    for item in items:
                        record = FeedItemRecord(
                            guid=item.guid,
                            feed_name=feed.name,
                            kind=feed.kind,
                            source_site=feed.site,
                            title=item.title,
                            link=item.link,
                            published_at=item.published_at,
                            description=item.description,
                        )
                        if context.store.upsert_feed_item(record):
                            new_items += 1
            except PersistenceError as exc:
                LOGGER.error("Failed to store items of feed %s: %s", feed.name, exc)
                context.stats.register_error(f"Feed {feed.name}: {exc}", feed_name=feed.name)

            context.stats.register_fetched(feed.name, len(items), new_items)
            context.feed_items[feed.name] = context.store.list_feed_items(feed_name=feed.name, kind=feed.kind)
            LOGGER.info("Feed %s: %d item(s), %d new", feed.name, len(items), new_items)
        context.progress.update(self.name, len(feeds), len(feeds), context.stats.error_count)


class MovieMatchingStage:
    name = "movie-matching"

    def run(self, context: PipelineContext) -> None:
        resolver = IdentifierResolver(context.clients, context.gate)
        quality = context.settings.quality
        store, stats = context.store, context.stats

        for feed in context.enabled_feeds("movie"):
            records = context.feed_items.get(feed.name, [])
            try:
                with store.transaction():
                    for position, feed_record in enumerate(records, start=1):
                        self._process(context, resolver, quality, feed, feed_record)
                        context.progress.update(self.name, position, len(records), stats.error_count, feed.name)
            except PersistenceError as exc:
                LOGGER.error("Matching for feed %s was rolled back: %s", feed.name, exc)
                stats.register_error(f"Feed {feed.name}: {exc}", feed_name=feed.name)

    @staticmethod
    def _process(context: PipelineContext, resolver, quality, feed: FeedConfig, feed_record: FeedItemRecord) -> None:
        store, stats = context.store, context.stats
        previous = store.get_release(feed_record.guid)
        if previous is not None and is_terminal(previous.status):
            stats.register_status(previous.status, feed_name=feed.name, preserved=True)
            return

        item = parse_feed_item(feed_record.to_feed_item(), feed_name=feed.name, source_site=feed.site)
        try:
            with store.savepoint("release"):
                result = match_movie_release(
                    item, resolver=resolver, index=context.held_index, settings=quality, previous=previous
                )
                result.record.status = resolve_status(previous.status if previous else None, result.decision.status)
                store.upsert_release(result.record)
        except PersistenceError as exc:
            LOGGER.error("Failed to store release %s: %s", item.title, exc, extra={"release_title": item.title})
            stats.register_error(f"{item.title}: {exc}", feed_name=feed.name)
            return

        stats.register_status(result.record.status, feed_name=feed.name)
        if result.held is not None:
            stats.register_existing()


class TvMatchingStage:
    name = "tv-matching"

    def run(self, context: PipelineContext) -> None:
        resolver = TvIdentifierResolver(context.clients, context.gate)
        store, stats = context.store, context.stats
        feeds = context.enabled_feeds("tv")
        if not feeds:
            return

        known_shows: List[KnownShow] = [KnownShow.from_held(show) for show in context.show_index.shows]
        known_shows.extend(known_show_from_record(record) for record in store.list_tv_releases())

        for feed in feeds:
            records = context.feed_items.get(feed.name, [])
            try:
                with store.transaction():
                    for position, feed_record in enumerate(records, start=1):
                        known = self._process(context, resolver, feed, feed_record, known_shows)
                        if known is not None and known.has_ids:
                            known_shows.append(known)
                        context.progress.update(self.name, position, len(records), stats.error_count, feed.name)
            except PersistenceError as exc:
                LOGGER.error("TV matching for feed %s was rolled back: %s", feed.name, exc)
                stats.register_error(f"Feed {feed.name}: {exc}", feed_name=feed.name)

    @staticmethod
    def _process(
        context: PipelineContext,
        resolver: TvIdentifierResolver,
        feed: FeedConfig,
        feed_record: FeedItemRecord,
        known_shows: Sequence[KnownShow],
    ) -> Optional[KnownShow]:
        store, stats = context.store, context.stats
        previous = store.get_tv_release(feed_record.guid)
        if previous is not None and is_terminal(previous.status):
            stats.register_status(previous.status, feed_name=feed.name, preserved=True)
            return None

        item = parse_feed_item(feed_record.to_feed_item(), feed_name=feed.name, source_site=feed.site)
        try:
            with store.savepoint("tv_release"):
                result = match_tv_release(
                    item,
                    resolver=resolver,
                    show_index=context.show_index,
                    known_shows=known_shows,
                    strip_year=feed.strip_year_from_show_name,
                    previous=previous,
                )
                result.record.status = resolve_status(previous.status if previous else None, result.status)
                store.upsert_tv_release(result.record)
        except PersistenceError as exc:
            LOGGER.error("Failed to store TV release %s: %s", item.title, exc, extra={"release_title": item.title})
            stats.register_error(f"{item.title}: {exc}", feed_name=feed.name)
            return None

        stats.register_status(result.record.status, feed_name=feed.name)
        return known_show_from_record(result.record)


class BackfillStage:
    name = "backfill"

    def run(self, context: PipelineContext) -> None:
        if not len(context.held_index):
            return
        with context.store.transaction():
            context.stats.backfilled = backfill_library_links(context.store, context.held_index)


def default_stages() -> List[Stage]:
    return [LibrarySyncStage(), FeedSyncStage(), MovieMatchingStage(), TvMatchingStage(), BackfillStage()]


class Pipeline:
    """Runs the stages in order and always returns aggregate statistics."""

    def __init__(self, context: PipelineContext, stages: Optional[Sequence[Stage]] = None) -> None:
        self.context = context
        self.stages = list(stages) if stages is not None else default_stages()

    def run(self) -> RunStats:
        context = self.context
        started = time.perf_counter()
        LOGGER.info("Starting run %s with %d feed(s)", context.job_id, len(context.enabled_feeds()))
        for stage in self.stages:
            LOGGER.debug("Running stage %s", stage.name)
            try:
                stage.run(context)
            except PersistenceError as exc:
                LOGGER.error("Stage %s failed: %s", stage.name, exc)
                context.stats.register_error(f"Stage {stage.name}: {exc}")
        context.stats.disabled_providers = context.gate.disabled
        duration = time.perf_counter() - started
        context.progress.update("complete", context.stats.processed, context.stats.processed, context.stats.error_count)
        log_run_recap(context.stats, duration=duration)
        return context.stats
