"""Shared requests plumbing for the Radarr and Sonarr v3 APIs."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import ProviderUnavailable, RateLimited
from ..utils import validate_url

LOGGER = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = frozenset({500, 502, 503, 504})


class LibraryApiError(ProviderUnavailable):
    """Raised when a held-library API request fails."""


def _build_url(base_url: str, path: str) -> str:
    normalized = base_url.rstrip("/") + "/"
    return urljoin(normalized, path.lstrip("/"))


class ArrClient:
    """Thin wrapper around the *arr v3 HTTP API.

    The API key travels in the ``X-Api-Key`` header. Transient 5xx failures
    are retried by the mounted urllib3 ``Retry`` adapter.
    """

    provider_name = "arr"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        max_retries: int = DEFAULT_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    ) -> None:
        if not validate_url(base_url):
            raise LibraryApiError(f"Invalid {self.provider_name} URL: {base_url}", provider=self.provider_name)

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

        self.session = session or requests.Session()
        if session is None:
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=backoff_factor,
                status_forcelist=list(RETRY_STATUS_CODES),
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy, pool_maxsize=10)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        url = _build_url(self.base_url, path)
        LOGGER.debug("%s GET %s", self.provider_name, url)
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json", "X-Api-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise LibraryApiError(f"{self.provider_name} request failed: {exc}", provider=self.provider_name) from exc

        if response.status_code == 429:
            raise RateLimited(f"{self.provider_name} rate limit exceeded (429)", provider=self.provider_name, status_code=429)
        if response.status_code >= 400:
            raise LibraryApiError(
                f"{self.provider_name} request failed ({response.status_code}): {response.text[:200]}",
                provider=self.provider_name,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise LibraryApiError(
                f"Failed to parse {self.provider_name} response as JSON ({response.status_code})",
                provider=self.provider_name,
                status_code=response.status_code,
            ) from exc

    def close(self) -> None:
        self.session.close()
