"""OMDB client (secondary identifier provider)."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from ..errors import ProviderUnavailable, RateLimited
from .http import ProviderHttpClient
from .models import OmdbSearchItem, OmdbSearchResponse

LOGGER = logging.getLogger(__name__)

OMDB_BASE_URL = "https://www.omdbapi.com/"
_RATE_LIMIT_MARKERS = ("request limit reached", "limit reached")


def year_matches(item: OmdbSearchItem, year: Optional[int]) -> bool:
    """True when ``year`` equals the item's year or falls inside its range."""
    if year is None or not item.year:
        return False
    text = item.year.replace("–", "-").strip()
    if "-" in text:
        start, _, end = text.partition("-")
        try:
            start_year = int(start.strip())
        except ValueError:
            return False
        end = end.strip()
        end_year = int(end) if end.isdigit() else start_year if end else 9999
        return start_year <= year <= end_year
    return item.start_year == year


class OmdbClient(ProviderHttpClient):
    provider_name = "omdb"
    base_url = OMDB_BASE_URL

    def __init__(self, api_key: str, *, timeout: float = 15.0, **kwargs) -> None:
        super().__init__(timeout=timeout, **kwargs)
        self.api_key = api_key

    def search(self, title: str, year: Optional[int] = None, kind: str = "movie") -> list[OmdbSearchItem]:
        """Search OMDB by title.

        Args:
            title: Title to search for
            year: Optional release year filter
            kind: "movie" or "series"

        Returns:
            Matching items, empty when OMDB reports no results.

        Raises:
            RateLimited: OMDB reported its daily request limit
        """
        params = {"s": title, "type": kind, "apikey": self.api_key}
        if year:
            params["y"] = str(year)
        data = self._get_json("", params=params)
        if not data:
            return []
        try:
            response = OmdbSearchResponse.model_validate(data)
        except ValidationError as exc:
            raise ProviderUnavailable("omdb returned malformed search data", provider=self.provider_name) from exc

        if not response.ok:
            error = (response.error or "").lower()
            if any(marker in error for marker in _RATE_LIMIT_MARKERS):
                raise RateLimited(f"omdb: {response.error}", provider=self.provider_name)
            LOGGER.debug("OMDB search %r returned no results: %s", title, response.error)
            return []
        return response.search

    def best_match(self, title: str, year: Optional[int] = None, kind: str = "movie") -> Optional[OmdbSearchItem]:
        """Search and pick the year-matching result, else the first one."""
        results = [item for item in self.search(title, year, kind) if item.imdb_id]
        if not results and year:
            # A wrong year filter hides everything; retry without it
            results = [item for item in self.search(title, None, kind) if item.imdb_id]
        if not results:
            return None
        for item in results:
            if year_matches(item, year):
                return item
        return results[0]
