"""TMDB v3 client (primary identifier provider)."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from ..errors import ProviderUnavailable
from .http import ProviderHttpClient
from .models import TmdbExternalIds, TmdbFindResponse, TmdbMovie, TmdbPage, TmdbTvShow

LOGGER = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"


class TmdbClient(ProviderHttpClient):
    """Client for The Movie Database v3 API.

    Example:
        with TmdbClient(api_key="...") as client:
            movies = client.search_movie("Inception", 2010)
    """

    provider_name = "tmdb"
    base_url = TMDB_BASE_URL

    def __init__(self, api_key: str, *, language: str = "en-US", timeout: float = 15.0, **kwargs) -> None:
        super().__init__(timeout=timeout, **kwargs)
        self.api_key = api_key
        self.language = language

    def _get(self, path: str, **params) -> Optional[dict]:
        query = {"api_key": self.api_key}
        query.update({key: value for key, value in params.items() if value is not None})
        data = self._get_json(path, params=query)
        if data is not None and not isinstance(data, dict):
            raise ProviderUnavailable(f"tmdb returned unexpected payload for {path}", provider=self.provider_name)
        return data

    def _parse(self, model, data, path: str):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ProviderUnavailable(f"tmdb returned malformed data for {path}", provider=self.provider_name) from exc

    def search_movie(self, title: str, year: Optional[int] = None) -> list[TmdbMovie]:
        data = self._get("/search/movie", query=title, year=year, language=self.language)
        if not data:
            return []
        page = self._parse(TmdbPage[TmdbMovie], data, "/search/movie")
        LOGGER.debug("TMDB movie search %r (year=%s): %d result(s)", title, year, len(page.results))
        return page.results

    def get_movie(self, tmdb_id: int) -> Optional[TmdbMovie]:
        path = f"/movie/{tmdb_id}"
        data = self._get(path, language=self.language)
        return self._parse(TmdbMovie, data, path) if data else None

    def find_by_imdb_id(self, imdb_id: str) -> Optional[TmdbMovie]:
        """Return the first movie TMDB maps to ``imdb_id``, if any."""
        path = f"/find/{imdb_id}"
        data = self._get(path, external_source="imdb_id", language=self.language)
        if not data:
            return None
        result = self._parse(TmdbFindResponse, data, path)
        return result.movie_results[0] if result.movie_results else None

    def search_tv(self, name: str) -> list[TmdbTvShow]:
        data = self._get("/search/tv", query=name, language=self.language)
        if not data:
            return []
        return self._parse(TmdbPage[TmdbTvShow], data, "/search/tv").results

    def get_tv_external_ids(self, tmdb_id: int) -> Optional[TmdbExternalIds]:
        path = f"/tv/{tmdb_id}/external_ids"
        data = self._get(path)
        return self._parse(TmdbExternalIds, data, path) if data else None
