"""Web-search fallback for identifiers: DuckDuckGo HTML and Brave Search.

Results are pattern-matched for IMDB, TMDB or TVDB ids. This is the lowest
confidence source; any structured provider answer takes precedence.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import ValidationError

from ..errors import ProviderUnavailable
from .http import ProviderHttpClient
from .models import BraveSearchResponse, WebSearchResult

LOGGER = logging.getLogger(__name__)

DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"
BRAVE_BASE_URL = "https://api.search.brave.com"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

IMDB_URL_PATTERN = re.compile(r"imdb\.com/title/(tt\d{7,})", re.IGNORECASE)
TMDB_URL_PATTERN = re.compile(r"themoviedb\.org/(?:movie|tv)/(\d+)", re.IGNORECASE)
TVDB_URL_PATTERN = re.compile(r"thetvdb\.com/(?:dereferrer/series/|\?tab=series&id=|series/)(\d+)", re.IGNORECASE)

# DuckDuckGo markup patterns, most reliable first
_DDG_PATTERNS = [
    re.compile(r'href="[^"]*imdb\.com(?:/|%2F)title(?:/|%2F)(tt\d{7,})', re.IGNORECASE),
    IMDB_URL_PATTERN,
    re.compile(r"imdb[^<]*?(tt\d{7,})", re.IGNORECASE),
]
_BARE_IMDB_ID = re.compile(r"tt\d{7,}")
_CONTEXT_WINDOW = 200


def extract_imdb_id_from_html(html: str) -> Optional[str]:
    """Pick the most plausible IMDB id out of search-result markup."""
    for pattern in _DDG_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)

    matches = list(_BARE_IMDB_ID.finditer(html))
    for match in matches:
        window = html[max(match.start() - _CONTEXT_WINDOW, 0) : match.end() + _CONTEXT_WINDOW].lower()
        if "imdb" in window or "title" in window:
            return match.group(0)
    return matches[0].group(0) if matches else None


class DuckDuckGoSearch(ProviderHttpClient):
    provider_name = "duckduckgo"
    base_url = DUCKDUCKGO_URL

    def __init__(self, *, timeout: float = 15.0, **kwargs) -> None:
        super().__init__(timeout=timeout, headers={"User-Agent": BROWSER_USER_AGENT, "Accept": "text/html"}, **kwargs)

    def find_imdb_id(self, title: str, year: Optional[int] = None) -> Optional[str]:
        query = f"{title} {year} imdb" if year else f"{title} imdb"
        response = self._request("GET", "", params={"q": query})
        if response is None:
            return None
        imdb_id = extract_imdb_id_from_html(response.text)
        LOGGER.debug("DuckDuckGo search %r -> %s", query, imdb_id or "no IMDB id")
        return imdb_id


class BraveSearch(ProviderHttpClient):
    provider_name = "brave"
    base_url = BRAVE_BASE_URL

    def __init__(self, api_key: str, *, timeout: float = 15.0, **kwargs) -> None:
        super().__init__(timeout=timeout, headers={"X-Subscription-Token": api_key}, **kwargs)

    def search(self, query: str, count: int = 10) -> list[WebSearchResult]:
        data = self._get_json("/res/v1/web/search", params={"q": query, "count": count})
        if not data:
            return []
        try:
            return BraveSearchResponse.model_validate(data).results
        except ValidationError as exc:
            raise ProviderUnavailable("brave returned malformed search data", provider=self.provider_name) from exc

    def _first_id(self, query: str, pattern: re.Pattern[str]) -> Optional[str]:
        for result in self.search(query):
            match = pattern.search(result.url)
            if match:
                LOGGER.debug("Brave search %r -> %s", query, match.group(1))
                return match.group(1)
        return None

    @staticmethod
    def _query(title: str, year: Optional[int], site: str) -> str:
        return f'"{title}" {year} site:{site}' if year else f'"{title}" site:{site}'

    def find_imdb_id(self, title: str, year: Optional[int] = None) -> Optional[str]:
        return self._first_id(self._query(title, year, "imdb.com"), IMDB_URL_PATTERN)

    def find_tmdb_id(self, title: str, year: Optional[int] = None) -> Optional[int]:
        value = self._first_id(self._query(title, year, "themoviedb.org"), TMDB_URL_PATTERN)
        return int(value) if value else None

    def find_tvdb_id(self, name: str) -> Optional[int]:
        value = self._first_id(self._query(name, None, "thetvdb.com"), TVDB_URL_PATTERN)
        return int(value) if value else None
