"""TheTVDB v4 client with bearer-token login."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from pydantic import ValidationError

from ..errors import ProviderUnavailable
from .http import ProviderHttpClient
from .models import TvdbSearchResult, TvdbSeries

LOGGER = logging.getLogger(__name__)

TVDB_BASE_URL = "https://api4.thetvdb.com/v4"
TOKEN_LIFETIME = 23 * 60 * 60  # tokens last a month; refresh daily


class TvdbClient(ProviderHttpClient):
    """Client for TheTVDB v4 API.

    The bearer token is obtained lazily on first use and refreshed once it is
    older than ``TOKEN_LIFETIME`` seconds.
    """

    provider_name = "tvdb"
    base_url = TVDB_BASE_URL

    def __init__(self, api_key: str, *, pin: Optional[str] = None, timeout: float = 15.0, **kwargs) -> None:
        super().__init__(timeout=timeout, **kwargs)
        self.api_key = api_key
        self.pin = pin
        self._token: Optional[str] = None
        self._token_acquired = 0.0
        self._token_lock = threading.Lock()

    def login(self) -> str:
        payload = {"apikey": self.api_key}
        if self.pin:
            payload["pin"] = self.pin
        response = self._request("POST", "/login", json=payload)
        token = None
        if response is not None:
            try:
                token = (response.json().get("data") or {}).get("token")
            except (ValueError, AttributeError):
                token = None
        if not token:
            raise ProviderUnavailable("tvdb login did not return a token", provider=self.provider_name)
        self._token = token
        self._token_acquired = time.monotonic()
        LOGGER.debug("Obtained TVDB token")
        return token

    def _auth_headers(self) -> dict[str, str]:
        with self._token_lock:
            if not self._token or time.monotonic() - self._token_acquired > TOKEN_LIFETIME:
                self.login()
            return {"Authorization": f"Bearer {self._token}"}

    def _get_data(self, path: str, **params):
        payload = self._get_json(path, params=params or None, headers=self._auth_headers())
        if not isinstance(payload, dict):
            return None
        return payload.get("data")

    def search_series(self, name: str) -> list[TvdbSearchResult]:
        data = self._get_data("/search", query=name, type="series")
        if not isinstance(data, list):
            return []
        results = []
        for entry in data:
            try:
                results.append(TvdbSearchResult.model_validate(entry))
            except ValidationError:
                LOGGER.debug("Skipping malformed TVDB search entry: %s", entry)
        return results

    def search_series_id(self, name: str) -> Optional[int]:
        """Return the TVDB id of the first search hit for ``name``."""
        for result in self.search_series(name):
            if result.tvdb_id:
                return result.tvdb_id
        return None

    def get_series_extended(self, tvdb_id: int) -> Optional[TvdbSeries]:
        path = f"/series/{tvdb_id}/extended"
        data = self._get_data(path)
        if not isinstance(data, dict):
            return None
        try:
            return TvdbSeries.model_validate(data)
        except ValidationError as exc:
            raise ProviderUnavailable(f"tvdb returned malformed data for {path}", provider=self.provider_name) from exc
