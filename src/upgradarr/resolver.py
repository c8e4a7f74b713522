"""Multi-provider identifier resolution for movie releases.

The resolver turns a noisy release title into TMDB and IMDB identifiers. It
walks a fixed chain of steps and stops as soon as both ids are known:

1. cross-validate a held TMDB/IMDB pair and correct a mismatch,
2. TMDB id -> IMDB id,
3. IMDB id -> TMDB id,
4. TMDB title search,
5. OMDB title search,
6. web search for an IMDB id.

Manually pinned identifiers are never overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Optional, TypeVar

from .errors import ProviderError, RateLimited, ValidationMismatch
from .parsers.release_title import normalize_title
from .providers import ProviderClients, ProviderGate
from .providers.models import TmdbMovie, valid_imdb_id

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

PINNABLE_FIELDS = ("tmdb_id", "imdb_id", "tvdb_id")


@dataclass
class ExternalIdentifiers:
    """Canonical identifiers for a release plus what was learned resolving them.

    Attributes:
        tmdb_id: Primary identifier (TMDB)
        imdb_id: Secondary identifier; only ``tt`` ids with 7+ digits are kept
        tvdb_id: TV identifier (TVDB)
        tmdb_id_manual: ``tmdb_id`` is pinned by an operator
        imdb_id_manual: ``imdb_id`` is pinned by an operator
        tvdb_id_manual: ``tvdb_id`` is pinned by an operator
        title: Canonical title reported by a provider
        original_language: Original language code reported by TMDB
        poster_url: Poster artwork URL
        release_year: Release (or first air) year reported by a provider
        needs_attention: An IMDB id is known but no TMDB id could be derived
    """

    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None
    tvdb_id: Optional[int] = None
    tmdb_id_manual: bool = False
    imdb_id_manual: bool = False
    tvdb_id_manual: bool = False
    title: Optional[str] = None
    original_language: Optional[str] = None
    poster_url: Optional[str] = None
    release_year: Optional[int] = None
    needs_attention: bool = False

    def __post_init__(self) -> None:
        if not self.imdb_id_manual:
            self.imdb_id = valid_imdb_id(self.imdb_id)

    def is_pinned(self, field_name: str) -> bool:
        return bool(getattr(self, f"{field_name}_manual"))

    def set_id(self, field_name: str, value: Any) -> bool:
        """Assign an identifier unless it is pinned. Returns True when written."""
        if self.is_pinned(field_name):
            return False
        if field_name == "imdb_id":
            value = valid_imdb_id(value)
        setattr(self, field_name, value)
        return True

    @property
    def complete(self) -> bool:
        return bool(self.tmdb_id and self.imdb_id)

    def to_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


class IdentifierResolver:
    """Resolves movie identifiers through TMDB, OMDB and web search.

    Every step is independently fallible: provider errors are logged and the
    chain moves on. Providers go through the shared ``ProviderGate`` so a rate
    limited provider is skipped for the rest of the run.
    """

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
        title: str,
        clean_title: str,
        year: Optional[int],
        existing: Optional[ExternalIdentifiers] = None,
    ) -> ExternalIdentifiers:
        """Resolve identifiers for a movie release.

        Args:
            title: Raw release title, used for logging context
            clean_title: Search hint derived from the title
            year: Release year from the title, when known
            existing: Identifiers already known (persisted, pinned or hinted)

        Returns:
            A new ExternalIdentifiers; ``existing`` is not modified.
        """
        ids = replace(existing) if existing is not None else ExternalIdentifiers()
        log_extra = {"release_title": title}

        if ids.tmdb_id and ids.imdb_id:
            self._cross_validate(ids, year, log_extra)
        if ids.tmdb_id and not ids.imdb_id:
            self._primary_to_secondary(ids)
        if ids.imdb_id and not ids.tmdb_id:
            self._secondary_to_primary(ids)

        if not ids.tmdb_id and clean_title:
            self._search_tmdb(ids, title, clean_title, year)
            if ids.tmdb_id and not ids.imdb_id:
                self._primary_to_secondary(ids)

        if not ids.tmdb_id and not ids.imdb_id and clean_title:
            self._search_omdb(ids, clean_title, year)
            if not ids.imdb_id:
                self._search_web(ids, clean_title, year)
            if ids.imdb_id and not ids.tmdb_id:
                self._secondary_to_primary(ids)
            elif ids.tmdb_id and not ids.imdb_id:
                self._primary_to_secondary(ids)

        ids.needs_attention = bool(ids.imdb_id and not ids.tmdb_id)
        LOGGER.debug(
            "Resolved %r -> tmdb=%s imdb=%s%s",
            clean_title or title,
            ids.tmdb_id,
            ids.imdb_id,
            " (needs attention)" if ids.needs_attention else "",
        )
        return ids

    @staticmethod
    def _adopt_metadata(ids: ExternalIdentifiers, movie: TmdbMovie) -> None:
        ids.title = movie.title or ids.title
        ids.original_language = movie.original_language or ids.original_language
        ids.poster_url = movie.poster_url or ids.poster_url
        ids.release_year = movie.release_year or ids.release_year

    def _cross_validate(self, ids: ExternalIdentifiers, year: Optional[int], log_extra: dict) -> None:
        tmdb = self.clients.tmdb
        if tmdb is None:
            return
        movie = self._call("cross-validate", tmdb.provider_name, tmdb.get_movie, ids.tmdb_id)
        if movie is None:
            return
        if not movie.imdb_id or movie.imdb_id == ids.imdb_id:
            self._adopt_metadata(ids, movie)
            return

        mismatch = ValidationMismatch("imdb_id", ids.imdb_id, movie.imdb_id)
        LOGGER.warning(
            "TMDB %s reports %s but the release carries %s",
            ids.tmdb_id,
            movie.imdb_id,
            ids.imdb_id,
            extra={**log_extra, "details": {"field": mismatch.field, "held": mismatch.held, "reported": mismatch.reported}},
        )
        if ids.is_pinned("tmdb_id"):
            return

        replacement = self._call("cross-validate", tmdb.provider_name, tmdb.find_by_imdb_id, ids.imdb_id)
        if replacement is None:
            LOGGER.info("No TMDB movie for %s; keeping TMDB %s", ids.imdb_id, ids.tmdb_id)
            return
        replacement_year = replacement.release_year
        if year is not None and replacement_year is not None and replacement_year != year:
            LOGGER.info(
                "Year mismatch for TMDB %s (%s != %s); keeping TMDB %s",
                replacement.id,
                replacement_year,
                year,
                ids.tmdb_id,
            )
            return
        LOGGER.info("Corrected TMDB %s -> %s from %s", ids.tmdb_id, replacement.id, ids.imdb_id)
        ids.set_id("tmdb_id", replacement.id)
        self._adopt_metadata(ids, replacement)

    def _primary_to_secondary(self, ids: ExternalIdentifiers) -> None:
        tmdb = self.clients.tmdb
        if tmdb is None:
            return
        movie = self._call("tmdb->imdb", tmdb.provider_name, tmdb.get_movie, ids.tmdb_id)
        if movie is None:
            return
        self._adopt_metadata(ids, movie)
        if movie.imdb_id:
            ids.set_id("imdb_id", movie.imdb_id)

    def _secondary_to_primary(self, ids: ExternalIdentifiers) -> None:
        tmdb = self.clients.tmdb
        if tmdb is None:
            return
        movie = self._call("imdb->tmdb", tmdb.provider_name, tmdb.find_by_imdb_id, ids.imdb_id)
        if movie is None:
            return
        if ids.set_id("tmdb_id", movie.id):
            self._adopt_metadata(ids, movie)

    def _search_tmdb(self, ids: ExternalIdentifiers, title: str, clean_title: str, year: Optional[int]) -> None:
        tmdb = self.clients.tmdb
        if tmdb is None:
            return
        queries = [clean_title]
        normalized = normalize_title(clean_title)
        if normalized and normalized != clean_title.lower():
            queries.append(normalized)

        for query in queries:
            results = self._call("tmdb-search", tmdb.provider_name, tmdb.search_movie, query, year) or []
            for movie in results:
                if year is not None and movie.release_year is not None and movie.release_year != year:
                    LOGGER.debug("Rejecting TMDB %s for %r: year %s != %s", movie.id, title, movie.release_year, year)
                    continue
                if ids.set_id("tmdb_id", movie.id):
                    self._adopt_metadata(ids, movie)
                return

    def _search_omdb(self, ids: ExternalIdentifiers, clean_title: str, year: Optional[int]) -> None:
        omdb = self.clients.omdb
        if omdb is None:
            return
        item = self._call("omdb-search", omdb.provider_name, omdb.best_match, clean_title, year, "movie")
        if item is not None and item.imdb_id:
            ids.set_id("imdb_id", item.imdb_id)

    def _search_web(self, ids: ExternalIdentifiers, clean_title: str, year: Optional[int]) -> None:
        for engine in (self.clients.brave, self.clients.duckduckgo):
            if engine is None or not self.gate.is_enabled(engine.provider_name):
                continue
            imdb_id = self._call("web-search", engine.provider_name, engine.find_imdb_id, clean_title, year)
            if imdb_id:
                LOGGER.info("Web search found %s for %r (low confidence)", imdb_id, clean_title)
                ids.set_id("imdb_id", imdb_id)
                return

        brave = self.clients.brave
        if brave is None or ids.tmdb_id or not self.gate.is_enabled(brave.provider_name):
            return
        tmdb_id = self._call("web-search-tmdb", brave.provider_name, brave.find_tmdb_id, clean_title, year)
        if tmdb_id:
            LOGGER.info("Web search found TMDB %s for %r (low confidence)", tmdb_id, clean_title)
            ids.set_id("tmdb_id", tmdb_id)
