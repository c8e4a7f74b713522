"""Per-item reconciliation of a TV release against the held shows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .library.index import HeldShowIndex
from .library.models import HeldShow
from .parsers.feed_item import ParsedFeedItem
from .parsers.tv_title import ShowSeason, parse_show_season, strip_years
from .persistence.release_store import TvReleaseRecord
from .reconciliation import TvReleaseStatus, classify_tv_release
from .resolver import ExternalIdentifiers
from .tv_resolver import KnownShow, TvIdentifierResolver

LOGGER = logging.getLogger(__name__)


@dataclass
class TvMatchResult:
    record: TvReleaseRecord
    status: TvReleaseStatus
    show: ShowSeason
    identifiers: ExternalIdentifiers
    held: Optional[HeldShow] = None


def show_season_for(title: str, *, strip_year: bool = False) -> ShowSeason:
    show = parse_show_season(title)
    if strip_year:
        return ShowSeason(strip_years(show.show_name), show.season_number)
    return show


def identifiers_from_tv_record(previous: Optional[TvReleaseRecord]) -> Optional[ExternalIdentifiers]:
    if previous is None:
        return None
    return ExternalIdentifiers(
        tvdb_id=previous.tvdb_id,
        tmdb_id=previous.tmdb_id,
        imdb_id=previous.imdb_id,
        tvdb_id_manual=previous.tvdb_id_manual,
        tmdb_id_manual=previous.tmdb_id_manual,
        imdb_id_manual=previous.imdb_id_manual,
    )


def known_show_from_record(record: TvReleaseRecord) -> KnownShow:
    return KnownShow(
        name=record.show_name,
        tvdb_id=record.tvdb_id,
        tmdb_id=record.tmdb_id,
        imdb_id=record.imdb_id,
        poster_url=record.tvdb_poster_url or record.tmdb_poster_url,
    )


def match_tv_release(
    item: ParsedFeedItem,
    *,
    resolver: TvIdentifierResolver,
    show_index: HeldShowIndex,
    known_shows: Sequence[KnownShow] = (),
    strip_year: bool = False,
    previous: Optional[TvReleaseRecord] = None,
) -> TvMatchResult:
    """Resolve and classify one TV release.

    The held show is found by TVDB id, then TMDB id, then year-agnostic name.
    """
    show = show_season_for(item.title, strip_year=strip_year)
    ids = resolver.resolve(show.show_name, identifiers_from_tv_record(previous), known_shows)

    held = show_index.lookup(tvdb_id=ids.tvdb_id, tmdb_id=ids.tmdb_id, name=show.show_name)
    status = classify_tv_release(
        show_held=held is not None,
        season_number=show.season_number,
        season_held=held.has_season(show.season_number) if held else False,
    )
    LOGGER.debug(
        "TV %r -> show=%r season=%s tvdb=%s held=%s status=%s",
        item.title,
        show.show_name,
        show.season_number,
        ids.tvdb_id,
        held.title if held else None,
        status.value,
        extra={"release_title": item.title},
    )

    poster = (held.poster_url if held else None) or ids.poster_url
    record = TvReleaseRecord(
        guid=item.guid,
        title=item.title,
        normalized_title=item.normalized_title,
        show_name=show.show_name,
        season_number=show.season_number,
        source_site=item.source_site,
        feed_name=item.feed_name,
        link=item.link,
        published_at=item.published_at,
        tvdb_id=ids.tvdb_id,
        tmdb_id=ids.tmdb_id,
        imdb_id=ids.imdb_id,
        tvdb_id_manual=ids.tvdb_id_manual,
        tmdb_id_manual=ids.tmdb_id_manual,
        imdb_id_manual=ids.imdb_id_manual,
        tvdb_poster_url=poster if ids.tvdb_id else None,
        tmdb_poster_url=poster if ids.tmdb_id and not ids.tvdb_id else None,
        library_series_id=held.id if held else None,
        library_series_title=held.title if held else None,
        status=status.value,
    )
    return TvMatchResult(record=record, status=status, show=show, identifiers=ids, held=held)
