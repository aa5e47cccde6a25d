"""
JWKS key provider.

Resolves JWT signing keys from one remote JSON Web Key Set, with per-kid
caching, negative caching and throttled refresh.
"""

from __future__ import annotations

from typing import Any, Final

import httpx
import structlog
from jwt import PyJWK, PyJWKClient
from jwt.exceptions import PyJWKClientConnectionError, PyJWTError

from ..cache_stores import InMemoryCache
from ..errors import DiscoveryFailed, InvalidToken
from ..fetch import get_json
from ..protocols import CacheStore
from ..refresh_gate import RefreshGate

logger = structlog.get_logger(__name__)

_DEFAULT_KEY_TTL: Final[int] = 600
_DEFAULT_MISSING_TTL: Final[int] = 30
_DEFAULT_FETCH_TIMEOUT: Final[float] = 8.0


class HttpxJWKClient(PyJWKClient):
    """`PyJWKClient` that downloads the key set through an `httpx.Client`.

    PyJWT's own client uses urllib. Going through httpx lets the key set
    share the discovery client's connection pool, proxies and transport (a
    `httpx.MockTransport` in tests), with the same bounded timeout.
    """

    def __init__(
        self,
        uri: str,
        http_client: httpx.Client,
        *,
        lifespan: int = _DEFAULT_KEY_TTL,
        timeout: float = _DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        super().__init__(
            uri,
            cache_jwk_set=True,
            lifespan=lifespan,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        self._http = http_client

    def fetch_data(self) -> Any:
        try:
            jwk_set = get_json(self._http, self.uri, timeout=self.timeout, headers=self.headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise PyJWKClientConnectionError(
                f'Fail to fetch data from the url, err: "{e}"'
            ) from e

        logger.info("jwks_fetched", jwks_uri=self.uri)
        if self.jwk_set_cache is not None and isinstance(jwk_set, dict):
            self.jwk_set_cache.put(jwk_set)
        return jwk_set


class JWKSKeyProvider:
    """
    Resolves signing keys for one JWKS URI.

    Resolution Strategy
    -------------------
    For each requested ``kid``:

    1) Negative cache: a kid recently found missing fails immediately.
    2) Per-kid cache: a key resolved within ``ttl_seconds`` is returned.
    3) Key set lookup: the JWK set cached by the underlying client (fetched
       on first use, re-fetched once its lifespan is over).
    4) Forced refresh: on a miss, re-download the set once, if the
       `RefreshGate` allows it. This is how rotated keys are picked up.
    5) Failure: the kid is negative-cached and `InvalidToken` is raised.

    Tokens with no ``kid`` header are accepted only when the key set holds
    exactly one signing key.

    A key set that cannot be downloaded raises `DiscoveryFailed`, not
    `InvalidToken`: the token may be fine, the provider is not.

    Parameters
    ----------
    jwks_uri : str
        Key set location, as published by discovery.
    http_client : httpx.Client
        Client used for downloads.
    cache : CacheStore | None
        Per-kid key cache. A private `InMemoryCache` by default.
    ttl_seconds : int
        Lifetime of resolved keys and of the downloaded set.
    missing_ttl_seconds : int
        Lifetime of negative entries.
    min_interval : float
        Minimum seconds between forced refreshes.
    alert_threshold : int
        Throttled refreshes before the gate logs a warning.
    timeout : float
        Upper bound for one key set download in seconds.
    """

    def __init__(
        self,
        jwks_uri: str,
        http_client: httpx.Client,
        *,
        cache: CacheStore | None = None,
        ttl_seconds: int = _DEFAULT_KEY_TTL,
        missing_ttl_seconds: int = _DEFAULT_MISSING_TTL,
        min_interval: float = 60.0,
        alert_threshold: int = 40,
        timeout: float = _DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._jwks_uri = jwks_uri
        self._ttl = ttl_seconds
        self._missing_ttl = missing_ttl_seconds
        self._cache: CacheStore = cache or InMemoryCache()
        self._gate = RefreshGate(
            min_interval=min_interval, alert_threshold=alert_threshold, name=jwks_uri
        )
        self._http = http_client
        self._timeout = timeout
        self._client = self._new_client()

    @property
    def jwks_uri(self) -> str:
        return self._jwks_uri

    def get_key_for_token(self, kid: str | None) -> PyJWK:
        if kid is None:
            return self._sole_signing_key()

        if self._cache.is_missing(kid):
            raise InvalidToken(f'Unknown kid "{kid}" (cached)')

        cached = self._cache.get(kid)
        if cached is not None:
            return cached

        key = self._lookup(kid, refresh=False)
        if key is None:
            if not self._gate.allow():
                self._cache.set_missing(kid, ttl_seconds=self._missing_ttl)
                raise InvalidToken("Key refresh throttled")
            logger.info("jwks_refresh_forced", jwks_uri=self._jwks_uri, kid=kid)
            key = self._lookup(kid, refresh=True)

        if key is None:
            self._cache.set_missing(kid, ttl_seconds=self._missing_ttl)
            raise InvalidToken(f'Unable to find a signing key that matches: "{kid}"')

        self._cache.set(key, ttl_seconds=self._ttl)
        return key

    def clear(self) -> None:
        """Forget resolved keys, negative entries and the downloaded set."""
        self._cache.clear()
        self._client = self._new_client()
        self._gate.reset()

    def _new_client(self) -> HttpxJWKClient:
        return HttpxJWKClient(
            self._jwks_uri, self._http, lifespan=self._ttl, timeout=self._timeout
        )

    def _lookup(self, kid: str, *, refresh: bool) -> PyJWK | None:
        try:
            keys = self._client.get_signing_keys(refresh=refresh)
        except PyJWKClientConnectionError as e:
            logger.warning("jwks_fetch_failed", jwks_uri=self._jwks_uri, error=str(e))
            raise DiscoveryFailed(f"JWKS fetch failed: {e}") from e
        except PyJWTError as e:
            # empty set or no usable keys
            logger.warning("jwks_unusable", jwks_uri=self._jwks_uri, error=str(e))
            return None
        return PyJWKClient.match_kid(keys, kid)

    def _sole_signing_key(self) -> PyJWK:
        try:
            jwk_set = self._client.get_jwk_set()
        except PyJWKClientConnectionError as e:
            logger.warning("jwks_fetch_failed", jwks_uri=self._jwks_uri, error=str(e))
            raise DiscoveryFailed(f"JWKS fetch failed: {e}") from e
        except PyJWTError as e:
            raise InvalidToken(f"Unusable key set: {e}") from e

        candidates = [k for k in jwk_set.keys if k.public_key_use in ("sig", None)]
        if len(candidates) != 1:
            raise InvalidToken(
                "Token header has no 'kid' and the key set does not hold exactly one signing key"
            )
        return candidates[0]
