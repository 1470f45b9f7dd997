"""Time-boxed cache for registry reads.

Values are keyed by a logical resource name (``"catalog"``,
``"category:devops-deployment"``). Expired entries are kept around so a
failed refresh can fall back to the stale value.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from agt.errors import RegistryUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """Thread-safe TTL cache with stale-on-error fallback."""

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the value for *key* if it is still fresh, else None."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._expired(entry):
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_fetch(self, key: str, fetcher: Callable[[], T]) -> T:
        """Return a fresh cached value, or call *fetcher* and cache its result.

        When *fetcher* raises :class:`RegistryUnavailableError` and an expired
        value exists for *key*, the stale value is returned with a warning.
        """
        with self._lock:
            entry = self._entries.get(key)

        if entry is not None and not self._expired(entry):
            return entry.value

        try:
            value = fetcher()
        except RegistryUnavailableError as e:
            if entry is not None:
                logger.warning("Using cached %s due to fetch error: %s", key, e)
                return entry.value
            raise

        self.set(key, value)
        return value

    def _expired(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.stored_at) >= self.ttl
