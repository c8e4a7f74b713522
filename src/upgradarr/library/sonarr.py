"""Sonarr v3 client."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .client import ArrClient, LibraryApiError
from .models import HeldShow

LOGGER = logging.getLogger(__name__)


class SonarrClient(ArrClient):
    provider_name = "sonarr"

    def _series(self, payload) -> list[HeldShow]:
        if not isinstance(payload, list):
            raise LibraryApiError("sonarr returned an unexpected series payload", provider=self.provider_name)
        shows: list[HeldShow] = []
        for entry in payload:
            try:
                shows.append(HeldShow.model_validate(entry))
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed Sonarr series: %s", exc)
        return shows

    def list_series(self) -> list[HeldShow]:
        shows = self._series(self._get("/api/v3/series"))
        LOGGER.debug("Fetched %d series from Sonarr", len(shows))
        return shows

    def lookup(self, term: str) -> list[HeldShow]:
        return self._series(self._get("/api/v3/series/lookup", params={"term": term}))
