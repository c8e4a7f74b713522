"""Metadata provider clients and the per-run provider gate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import ProviderSettings
from .gate import ProviderGate
from .omdb import OmdbClient
from .tmdb import TmdbClient
from .tvdb import TvdbClient
from .web_search import BraveSearch, DuckDuckGoSearch


@dataclass
class ProviderClients:
    """The configured provider clients; a missing API key leaves a slot empty."""

    tmdb: Optional[TmdbClient] = None
    omdb: Optional[OmdbClient] = None
    tvdb: Optional[TvdbClient] = None
    duckduckgo: Optional[DuckDuckGoSearch] = None
    brave: Optional[BraveSearch] = None

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> ProviderClients:
        timeout = settings.timeout
        return cls(
            tmdb=TmdbClient(settings.tmdb_api_key, language=settings.language, timeout=timeout)
            if settings.tmdb_api_key
            else None,
            omdb=OmdbClient(settings.omdb_api_key, timeout=timeout) if settings.omdb_api_key else None,
            tvdb=TvdbClient(settings.tvdb_api_key, pin=settings.tvdb_user_pin, timeout=timeout)
            if settings.tvdb_api_key
            else None,
            duckduckgo=DuckDuckGoSearch(timeout=timeout) if settings.web_search_enabled else None,
            brave=BraveSearch(settings.brave_api_key, timeout=timeout)
            if settings.brave_api_key and settings.web_search_enabled
            else None,
        )

    def close(self) -> None:
        for client in (self.tmdb, self.omdb, self.tvdb, self.duckduckgo, self.brave):
            if client is not None:
                client.close()


__all__ = [
    "BraveSearch",
    "DuckDuckGoSearch",
    "OmdbClient",
    "ProviderClients",
    "ProviderGate",
    "TmdbClient",
    "TvdbClient",
]
