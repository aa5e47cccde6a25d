"""OIDC discovery with a per-provider TTL cache.

`DiscoveryResolver` turns a provider base URL into the issuer and JWKS URI
published in its ``/.well-known/openid-configuration`` document.

Caching rules
-------------
- One `DiscoveryRecord` per normalized base URL (trailing ``/`` stripped).
- A record is served while ``now - fetched_at < ttl_seconds`` and replaced
  wholesale by a fresh fetch afterwards.
- A failed fetch stores nothing; the old record (if any) stays until it is
  replaced or invalidated.
- Concurrent misses for the same URL may each fetch. Both results describe
  the same document, so whichever is written last is fine.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Final

import httpx
import structlog

from .errors import DiscoveryFailed
from .fetch import get_json

logger = structlog.get_logger(__name__)

DISCOVERY_PATH: Final[str] = "/.well-known/openid-configuration"

_DEFAULT_TTL: Final[float] = 300.0
"""Discovery document lifetime in seconds."""

_DEFAULT_TIMEOUT: Final[float] = 8.0
"""Upper bound for one discovery request in seconds."""


def normalize_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


@dataclass(frozen=True, slots=True)
class DiscoveryRecord:
    """What a provider's discovery document says about token verification.

    Attributes:
        jwks_uri: Location of the provider's JSON Web Key Set.
        issuer: Expected ``iss`` claim. Falls back to the base URL when the
            document does not name one.
        fetched_at: Unix time the document was fetched.
        document: The whole discovery document, read-only.
    """

    jwks_uri: str
    issuer: str
    fetched_at: float
    document: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.fetched_at < ttl_seconds


class DiscoveryResolver:
    """Fetches and caches discovery documents keyed by provider base URL.

    Thread Safety:
        The record map is only touched inside a short lock. The HTTP request
        runs outside it, so a slow provider never blocks lookups for others.

    Timeouts:
        ``timeout`` bounds each connect and read and the request as a whole;
        a body still arriving after ``timeout`` seconds is abandoned.

    Example:
        ```python
        resolver = DiscoveryResolver(httpx.Client())
        record = resolver.resolve("https://iam.example.com/")
        record.jwks_uri   # "https://iam.example.com/.well-known/jwks"
        ```
    """

    def __init__(
        self,
        http_client: httpx.Client,
        *,
        ttl_seconds: float = _DEFAULT_TTL,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self._http = http_client
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._lock = threading.Lock()
        self._records: dict[str, DiscoveryRecord] = {}

    def resolve(self, base_url: str) -> DiscoveryRecord:
        """Return a fresh `DiscoveryRecord` for ``base_url``.

        Raises:
            DiscoveryFailed: The document could not be fetched or has no
                ``jwks_uri``.
        """
        base = normalize_base_url(base_url)
        now = time.time()

        with self._lock:
            cached = self._records.get(base)
        if cached is not None and cached.is_fresh(now, self._ttl):
            return cached

        record = self._fetch(base)
        with self._lock:
            self._records[base] = record
        return record

    def peek(self, base_url: str) -> DiscoveryRecord | None:
        """Return the cached record for ``base_url`` without fetching, fresh or not."""
        with self._lock:
            return self._records.get(normalize_base_url(base_url))

    def invalidate(self, base_url: str | None = None) -> None:
        """Drop the record for ``base_url``, or every record when None."""
        with self._lock:
            if base_url is None:
                self._records.clear()
            else:
                self._records.pop(normalize_base_url(base_url), None)

    def _fetch(self, base: str) -> DiscoveryRecord:
        url = f"{base}{DISCOVERY_PATH}"
        try:
            body = get_json(
                self._http,
                url,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPStatusError as e:
            logger.warning(
                "oidc_discovery_failed", url=url, status=e.response.status_code
            )
            raise DiscoveryFailed(
                f"OIDC discovery failed: {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning("oidc_discovery_failed", url=url, error=str(e))
            raise DiscoveryFailed(f"OIDC discovery failed: {e}") from e

        if not isinstance(body, dict):
            logger.warning("oidc_discovery_failed", url=url, error="not a JSON object")
            raise DiscoveryFailed("OIDC discovery response is not a JSON object")

        jwks_uri = body.get("jwks_uri")
        if not jwks_uri or not isinstance(jwks_uri, str):
            logger.warning("oidc_discovery_failed", url=url, error="missing jwks_uri")
            raise DiscoveryFailed("OIDC discovery response missing jwks_uri")

        issuer = body.get("issuer")
        if not issuer or not isinstance(issuer, str):
            issuer = base

        logger.info("oidc_discovery_fetched", url=url, issuer=issuer, jwks_uri=jwks_uri)
        return DiscoveryRecord(
            jwks_uri=jwks_uri,
            issuer=issuer,
            fetched_at=time.time(),
            document=MappingProxyType(body),
        )
