"""Radarr v3 client."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .client import ArrClient, LibraryApiError
from .models import HeldMovie

LOGGER = logging.getLogger(__name__)


class RadarrClient(ArrClient):
    provider_name = "radarr"

    def _movies(self, payload) -> list[HeldMovie]:
        if not isinstance(payload, list):
            raise LibraryApiError("radarr returned an unexpected movie payload", provider=self.provider_name)
        movies: list[HeldMovie] = []
        for entry in payload:
            try:
                movies.append(HeldMovie.model_validate(entry))
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed Radarr movie %s: %s", entry.get("title") if isinstance(entry, dict) else entry, exc)
        return movies

    def list_movies(self) -> list[HeldMovie]:
        movies = self._movies(self._get("/api/v3/movie"))
        LOGGER.debug("Fetched %d movie(s) from Radarr", len(movies))
        return movies

    def lookup(self, term: str) -> list[HeldMovie]:
        """Search Radarr's own metadata lookup (not limited to held movies)."""
        return self._movies(self._get("/api/v3/movie/lookup", params={"term": term}))
