"""Process-wide registry of key providers, one per JWKS URI.

Providers are created lazily on first use and kept for the life of the
registry. There is no TTL here: each provider refreshes its own key set
(on lifespan expiry and on unknown kids), so rotation needs no help from
this layer. `clear` is for tests and for operators recovering from a
botched rotation.
"""

from __future__ import annotations

import threading

import structlog

from .protocols import KeyProvider, KeyProviderFactory

logger = structlog.get_logger(__name__)


class KeyProviderRegistry:
    """Get-or-create map from JWKS URI to `KeyProvider`.

    Thread Safety:
        Lookup and insert happen under one lock, so two threads asking for
        the same URI get the same provider. Construction does no I/O, which
        keeps the critical section short.

    Example:
        ```python
        registry = KeyProviderRegistry(lambda uri: JWKSKeyProvider(uri, http))
        provider = registry.get("https://iam.example.com/.well-known/jwks")
        registry.get("https://iam.example.com/.well-known/jwks") is provider  # True
        ```
    """

    def __init__(self, factory: KeyProviderFactory) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._providers: dict[str, KeyProvider] = {}

    def get(self, jwks_uri: str) -> KeyProvider:
        """Return the provider for ``jwks_uri``, creating it on first use."""
        with self._lock:
            provider = self._providers.get(jwks_uri)
            if provider is None:
                provider = self._factory(jwks_uri)
                self._providers[jwks_uri] = provider
                logger.debug("key_provider_created", jwks_uri=jwks_uri)
            return provider

    def clear(self) -> None:
        """Drop every provider; the next `get` builds (and fetches) anew."""
        with self._lock:
            dropped = len(self._providers)
            self._providers.clear()
        logger.info("key_providers_cleared", dropped=dropped)

    def __contains__(self, jwks_uri: object) -> bool:
        with self._lock:
            return jwks_uri in self._providers

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)
