"""In-process cache for resolved signing keys.

Each `JWKSKeyProvider` owns one `InMemoryCache`, so entries are scoped to a
single key set. Negative entries remember kids the key set did not contain,
which turns repeated tokens with random kids into cheap failures instead of
JWKS refreshes.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jwt import PyJWK


@dataclass(slots=True)
class _CacheItem:
    value: PyJWK | None  # None: known-missing
    expires_at: float


class InMemoryCache:
    """TTL cache of `PyJWK` objects keyed by kid.

    Expired entries are dropped lazily on access. All methods take an
    internal lock, so one instance can back a provider shared by request
    threads.

    Example:
        ```python
        cache = InMemoryCache()
        cache.set(pyjwk_object, ttl_seconds=600)
        cache.get("key-id-123")       # PyJWK

        cache.set_missing("bad-kid", ttl_seconds=30)
        cache.is_missing("bad-kid")   # True
        ```
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, _CacheItem] = {}

    def _live(self, kid: str) -> _CacheItem | None:
        item = self._store.get(kid)
        if item is None:
            return None
        if time.time() >= item.expires_at:
            self._store.pop(kid, None)
            return None
        return item

    def get(self, kid: str) -> PyJWK | None:
        """Return the key for ``kid``; None if absent, expired or known-missing."""
        with self._lock:
            item = self._live(kid)
        return item.value if item else None

    def set(self, key: PyJWK, ttl_seconds: int) -> None:
        """Cache ``key`` under its ``kid``.

        Raises:
            ValueError: The key has no key_id.
        """
        kid = key.key_id
        if not kid:
            raise ValueError("PyJWK must have key_id populated to be cached")

        with self._lock:
            self._store[kid] = _CacheItem(value=key, expires_at=time.time() + ttl_seconds)

    def set_missing(self, kid: str, ttl_seconds: int) -> None:
        with self._lock:
            self._store[kid] = _CacheItem(value=None, expires_at=time.time() + ttl_seconds)

    def is_missing(self, kid: str) -> bool:
        with self._lock:
            item = self._live(kid)
        return item is not None and item.value is None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
