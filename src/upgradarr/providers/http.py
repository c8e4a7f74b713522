"""Shared httpx plumbing for metadata provider clients."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..errors import ProviderUnavailable, RateLimited

LOGGER = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = 1.0
MAX_BACKOFF = 30.0
USER_AGENT = "upgradarr/1.0"


class ProviderHttpClient:
    """Base class for provider clients with retry logic.

    Transient failures (connection errors, 5xx) are retried with exponential
    backoff. A 404 yields ``None``. A 429 raises ``RateLimited`` immediately so
    the caller can disable the provider for the run. Anything else raises
    ``ProviderUnavailable``.
    """

    provider_name = "provider"
    base_url = ""

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        max_retries: int = MAX_RETRIES,
        backoff: float = RETRY_BACKOFF,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        merged_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            merged_headers.update(headers)
        self._client = httpx.Client(timeout=timeout, headers=merged_headers, follow_redirects=True)
        self.max_retries = max(max_retries, 1)
        self.backoff = backoff

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response | None:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method
            path: Path relative to ``base_url`` or an absolute URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            The response, or None when the resource does not exist (404).

        Raises:
            RateLimited: The provider answered 429
            ProviderUnavailable: Network failure or other non-2xx response
        """
        url = self._url(path)
        backoff = self.backoff
        last_exception: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                response = self._client.request(method, url, **kwargs)
            except httpx.RequestError as exc:
                last_exception = exc
                LOGGER.debug(
                    "%s request error (attempt %d/%d): %s", self.provider_name, attempt + 1, self.max_retries, exc
                )
            else:
                status = response.status_code
                if status == 404:
                    LOGGER.debug("%s resource not found: %s", self.provider_name, path)
                    return None
                if status == 429:
                    raise RateLimited(
                        f"{self.provider_name} rate limit exceeded (429)",
                        provider=self.provider_name,
                        status_code=429,
                    )
                if status < 400:
                    return response
                if status < 500:
                    raise ProviderUnavailable(
                        f"{self.provider_name} request failed ({status}): {response.text[:200]}",
                        provider=self.provider_name,
                        status_code=status,
                    )
                last_exception = ProviderUnavailable(
                    f"{self.provider_name} server error ({status})",
                    provider=self.provider_name,
                    status_code=status,
                )
                LOGGER.debug(
                    "%s server error %d (attempt %d/%d)", self.provider_name, status, attempt + 1, self.max_retries
                )

            if attempt < self.max_retries - 1:
                time.sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)

        raise ProviderUnavailable(
            f"{self.provider_name}: failed to fetch {path} after {self.max_retries} attempts",
            provider=self.provider_name,
        ) from last_exception

    def _get_json(self, path: str, **kwargs: Any) -> Any | None:
        response = self._request("GET", path, **kwargs)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailable(
                f"{self.provider_name} returned invalid JSON for {path}",
                provider=self.provider_name,
                status_code=response.status_code,
            ) from exc

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
