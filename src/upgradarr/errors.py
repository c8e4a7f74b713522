"""Exception types shared across providers, the library clients and the store."""

from __future__ import annotations

from typing import Optional


class UpgradarrError(Exception):
    """Base exception for the reconciliation engine."""


class ProviderError(UpgradarrError):
    """Raised when a metadata or library provider request fails."""

    def __init__(self, message: str, *, provider: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProviderUnavailable(ProviderError):
    """Network failure or non-2xx response from a provider."""


class RateLimited(ProviderError):
    """Provider signalled that further calls should stop for this run."""


class PersistenceError(UpgradarrError):
    """Raised when a record cannot be written to the store."""


class ValidationMismatch(UpgradarrError):
    """Identifier cross-check disagreement between two providers.

    Logged as a warning by the resolvers; callers never see it raised.
    """

    def __init__(self, field: str, held: object, reported: object) -> None:
        super().__init__(f"{field} mismatch: held={held} reported={reported}")
        self.field = field
        self.held = held
        self.reported = reported
