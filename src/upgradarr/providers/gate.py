"""Per-run provider availability shared by every resolver and worker."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, TypeVar

from ..errors import RateLimited

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderGate:
    """Tracks providers disabled for the remainder of the current run.

    A provider that raises ``RateLimited`` is disabled here and every later
    call through the gate fails fast with ``RateLimited`` without touching
    the network. Other providers are unaffected. The state is guarded by a
    lock so concurrent workers share one view.
    """

    def __init__(self) -> None:
        self._disabled: Dict[str, str] = {}
        self._lock = threading.Lock()

    def is_enabled(self, provider: str) -> bool:
        with self._lock:
            return provider not in self._disabled

    def disable(self, provider: str, reason: str) -> None:
        with self._lock:
            if provider in self._disabled:
                return
            self._disabled[provider] = reason
        LOGGER.warning("Provider %s disabled for the rest of this run: %s", provider, reason)

    @property
    def disabled(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._disabled)

    def call(self, provider: str, func: Callable[..., T], *args, **kwargs) -> T:
        """Invoke ``func`` unless ``provider`` is disabled.

        Raises:
            RateLimited: If the provider is disabled or signals a rate limit now.
            ProviderError: Propagated unchanged from ``func``.
        """
        with self._lock:
            reason = self._disabled.get(provider)
        if reason is not None:
            raise RateLimited(f"{provider} disabled for this run ({reason})", provider=provider)
        try:
            return func(*args, **kwargs)
        except RateLimited as exc:
            self.disable(provider, str(exc))
            raise
