"""In-memory lookups over a held-library snapshot."""

from __future__ import annotations

from typing import Iterable, Optional

from ..parsers.release_title import normalize_title
from ..parsers.tv_title import show_match_key
from .models import HeldMovie, HeldShow


class HeldLibraryIndex:
    """Indexes held movies by TMDB id and normalized title.

    Example:
        index = HeldLibraryIndex(radarr.list_movies())
        movie = index.lookup_by_primary_id(27205)
    """

    def __init__(self, movies: Iterable[HeldMovie] = ()) -> None:
        self._by_tmdb: dict[int, HeldMovie] = {}
        self._by_title: dict[str, list[HeldMovie]] = {}
        self._movies: list[HeldMovie] = []
        for movie in movies:
            self.add(movie)

    def add(self, movie: HeldMovie) -> None:
        self._movies.append(movie)
        if movie.tmdb_id:
            self._by_tmdb[movie.tmdb_id] = movie
        self._by_title.setdefault(normalize_title(movie.title), []).append(movie)

    def __len__(self) -> int:
        return len(self._movies)

    @property
    def movies(self) -> list[HeldMovie]:
        return list(self._movies)

    def lookup_by_primary_id(self, tmdb_id: Optional[int]) -> Optional[HeldMovie]:
        if not tmdb_id:
            return None
        return self._by_tmdb.get(tmdb_id)

    def lookup_by_title(self, title: str, year: Optional[int] = None) -> Optional[HeldMovie]:
        """Exact normalized-title match; with a year, only same-year entries qualify."""
        candidates = self._by_title.get(normalize_title(title), [])
        if year is not None:
            candidates = [movie for movie in candidates if movie.year == year]
        return candidates[0] if candidates else None


class HeldShowIndex:
    """Indexes held shows by TVDB id, TMDB id and year-agnostic name."""

    def __init__(self, shows: Iterable[HeldShow] = ()) -> None:
        self._shows = list(shows)
        self._by_tvdb = {show.tvdb_id: show for show in self._shows if show.tvdb_id}
        self._by_tmdb = {show.tmdb_id: show for show in self._shows if show.tmdb_id}
        self._by_key: dict[str, HeldShow] = {}
        for show in self._shows:
            self._by_key.setdefault(show_match_key(show.title), show)

    def __len__(self) -> int:
        return len(self._shows)

    @property
    def shows(self) -> list[HeldShow]:
        return list(self._shows)

    def lookup(
        self,
        *,
        tvdb_id: Optional[int] = None,
        tmdb_id: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Optional[HeldShow]:
        if tvdb_id and tvdb_id in self._by_tvdb:
            return self._by_tvdb[tvdb_id]
        if tmdb_id and tmdb_id in self._by_tmdb:
            return self._by_tmdb[tmdb_id]
        if name:
            return self._by_key.get(show_match_key(name))
        return None
