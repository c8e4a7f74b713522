"""Identifier resolution for TV releases.

Shows already known locally (held in Sonarr or tracked from earlier
releases) are matched by year-agnostic fuzzy name first; external search
through TVDB, TMDB, OMDB and Brave only runs for shows nobody knows yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from rapidfuzz import fuzz, process

from .errors import ProviderError, RateLimited
from .library.models import HeldShow
from .parsers.tv_title import show_match_key
from .providers import ProviderClients, ProviderGate
from .resolver import ExternalIdentifiers

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

NAME_MATCH_THRESHOLD = 90.0


@dataclass(frozen=True)
class KnownShow:
    """A show whose identifiers are already known locally."""

    name: str
    tvdb_id: Optional[int] = None
    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None
    poster_url: Optional[str] = None

    @classmethod
    def from_held(cls, show: HeldShow) -> KnownShow:
        return cls(
            name=show.title,
            tvdb_id=show.tvdb_id,
            tmdb_id=show.tmdb_id,
            imdb_id=show.imdb_id,
            poster_url=show.poster_url,
        )

    @property
    def has_ids(self) -> bool:
        return bool(self.tvdb_id or self.tmdb_id or self.imdb_id)


def match_known_show(
    show_name: str,
    known_shows: Sequence[KnownShow],
    threshold: float = NAME_MATCH_THRESHOLD,
) -> Optional[KnownShow]:
    """Return the known show whose year-agnostic name best matches ``show_name``."""
    key = show_match_key(show_name)
    if not key or not known_shows:
        return None
    keys = [show_match_key(show.name) for show in known_shows]
    best = process.extractOne(key, keys, scorer=fuzz.token_sort_ratio, score_cutoff=threshold)
    if best is None:
        return None
    _, score, index = best
    LOGGER.debug("Matched show %r to known %r (score %.1f)", show_name, known_shows[index].name, score)
    return known_shows[index]


class TvIdentifierResolver:
    """Resolves TVDB, TMDB and IMDB ids for a show name."""

    def __init__(self, clients: ProviderClients, gate: ProviderGate) -> None:
        self.clients = clients
        self.gate = gate

    def _call(self, step: str, provider: str, func: Callable[..., T], *args: Any) -> Optional[T]:
        try:
            return self.gate.call(provider, func, *args)
        except RateLimited as exc:
            LOGGER.info("Step %s skipped: %s", step, exc)
        except ProviderError as exc:
            LOGGER.warning("Step %s failed (%s): %s", step, provider, exc)
        return None

    def resolve(
        self,
        show_name: str,
        existing: Optional[ExternalIdentifiers] = None,
        known_shows: Iterable[KnownShow] = (),
    ) -> ExternalIdentifiers:
        """Resolve identifiers for ``show_name``.

        Args:
            show_name: Show name parsed from the release title
            existing: Identifiers already stored for the release, pins included
            known_shows: Held shows and shows tracked from earlier releases

        Returns:
            A new ExternalIdentifiers; pinned fields are passed through.
        """
        ids = replace(existing) if existing is not None else ExternalIdentifiers()

        known = match_known_show(show_name, [show for show in known_shows if show.has_ids])
        if known is not None:
            for field_name in ("tvdb_id", "tmdb_id", "imdb_id"):
                value = getattr(known, field_name)
                if value and not getattr(ids, field_name):
                    ids.set_id(field_name, value)
            ids.poster_url = ids.poster_url or known.poster_url
            ids.title = ids.title or known.name
            return ids

        if not ids.tvdb_id:
            self._search_tvdb(ids, show_name)
        elif not (ids.tmdb_id and ids.imdb_id):
            self._tvdb_extended(ids, ids.tvdb_id)
        if not ids.tmdb_id:
            self._search_tmdb(ids, show_name)
        if not ids.imdb_id:
            self._search_omdb(ids, show_name)
        if not ids.tvdb_id and not ids.tmdb_id:
            self._search_brave(ids, show_name)

        ids.needs_attention = not (ids.tvdb_id or ids.tmdb_id)
        LOGGER.debug(
            "Resolved show %r -> tvdb=%s tmdb=%s imdb=%s", show_name, ids.tvdb_id, ids.tmdb_id, ids.imdb_id
        )
        return ids

    def _search_tvdb(self, ids: ExternalIdentifiers, show_name: str) -> None:
        tvdb = self.clients.tvdb
        if tvdb is None:
            return
        tvdb_id = self._call("tvdb-search", tvdb.provider_name, tvdb.search_series_id, show_name)
        if not tvdb_id:
            return
        ids.set_id("tvdb_id", tvdb_id)
        self._tvdb_extended(ids, ids.tvdb_id)

    def _tvdb_extended(self, ids: ExternalIdentifiers, tvdb_id: Optional[int]) -> None:
        tvdb = self.clients.tvdb
        if tvdb is None or not tvdb_id:
            return
        series = self._call("tvdb-extended", tvdb.provider_name, tvdb.get_series_extended, tvdb_id)
        if series is None:
            return
        if series.tmdb_id and not ids.tmdb_id:
            ids.set_id("tmdb_id", series.tmdb_id)
        if series.imdb_id and not ids.imdb_id:
            ids.set_id("imdb_id", series.imdb_id)
        ids.poster_url = ids.poster_url or series.poster_url
        ids.title = ids.title or series.name

    def _search_tmdb(self, ids: ExternalIdentifiers, show_name: str) -> None:
        tmdb = self.clients.tmdb
        if tmdb is None:
            return
        results = self._call("tmdb-tv-search", tmdb.provider_name, tmdb.search_tv, show_name) or []
        if not results:
            return
        show = results[0]
        if not ids.set_id("tmdb_id", show.id):
            return
        ids.title = ids.title or show.name
        ids.release_year = ids.release_year or show.first_air_year
        ids.original_language = ids.original_language or show.original_language
        tmdb_poster = show.poster_url
        if not ids.imdb_id:
            external = self._call("tmdb-external-ids", tmdb.provider_name, tmdb.get_tv_external_ids, show.id)
            if external is not None:
                if external.imdb_id:
                    ids.set_id("imdb_id", external.imdb_id)
                if external.tvdb_id and not ids.tvdb_id:
                    ids.set_id("tvdb_id", external.tvdb_id)
        ids.poster_url = ids.poster_url or tmdb_poster

    def _search_omdb(self, ids: ExternalIdentifiers, show_name: str) -> None:
        omdb = self.clients.omdb
        if omdb is None:
            return
        item = self._call("omdb-series-search", omdb.provider_name, omdb.best_match, show_name, None, "series")
        if item is not None and item.imdb_id:
            ids.set_id("imdb_id", item.imdb_id)

    def _search_brave(self, ids: ExternalIdentifiers, show_name: str) -> None:
        brave = self.clients.brave
        if brave is None:
            return
        tvdb_id = self._call("brave-tvdb-search", brave.provider_name, brave.find_tvdb_id, show_name)
        if tvdb_id:
            LOGGER.info("Web search found TVDB %s for %r (low confidence)", tvdb_id, show_name)
            ids.set_id("tvdb_id", tvdb_id)
