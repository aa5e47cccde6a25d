"""Token validation: discovery, key resolution, verification, verdict.

`TokenValidator.validate` is the entry point. It never raises; every failure
comes back as an `AuthFailure` with a `ReasonCode`.

Steps
-----
1. Reject anything that is not a compact JWS string (`TOKEN_MISSING`).
2. Resolve issuer and JWKS URI from the provider's discovery document.
3. Get (or create) the key provider for that JWKS URI.
4. Verify signature, expiry and issuer, with the client ID as audience.
   If only the audience check fails, verify once more without it: some IAM
   applications issue tokens with no ``aud`` at all.
5. Require a ``sub`` and derive the owning organization from it.
6. Map the claims onto an `AuthSuccess`.
"""

from __future__ import annotations

import threading
from types import TracebackType
from typing import Final

import httpx
import jwt
import structlog

from .claims import normalize_claims, owner_from_subject
from .config import IamConfig
from .discovery import DiscoveryResolver
from .errors import AudienceMismatch, AuthError, InvalidToken, MissingToken, SubjectMissing
from .key_providers import JWKSKeyProvider
from .key_registry import KeyProviderRegistry
from .protocols import Claims, KeyProvider
from .results import AuthFailure, AuthResult, AuthSuccess, ReasonCode
from .verifier import DEFAULT_LEEWAY, JWTVerifier, JWTVerifyOptions

logger = structlog.get_logger(__name__)

_DEFAULT_HTTP_TIMEOUT: Final[float] = 8.0

_UNVERIFIED: Final[dict[str, bool]] = {
    "verify_signature": False,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_iss": False,
    "verify_aud": False,
    "verify_sub": False,
    "verify_jti": False,
}
"""Decode options for the pre-flight shape check: parse only."""


def is_compact_jws(token: object) -> bool:
    """True for a string of three non-empty dot-separated segments whose header
    and payload decode to JSON objects.

    Nothing is verified here; this only weeds out garbage before any request
    goes to the IAM server.
    """
    if not isinstance(token, str) or not token:
        return False
    parts = token.split(".")
    if len(parts) != 3 or not all(parts):
        return False
    try:
        jwt.get_unverified_header(token)
        jwt.decode(token, options=_UNVERIFIED)
    except jwt.InvalidTokenError:
        return False
    return True


class TokenValidator:
    """Validates IAM bearer tokens against any number of providers.

    Owns two caches shared by every call: discovery records keyed by
    provider URL, and key providers keyed by JWKS URI. Both are safe to use
    from several threads.

    Example:
        ```python
        validator = TokenValidator()
        config = IamConfig(server_url="https://iam.example.com", client_id="my-app")

        result = validator.validate(token, config)
        if result.ok:
            print(result.user_id, result.owner)
        else:
            print(result.reason)
        ```

    Args:
        http_client: Client for discovery and key set downloads. A private
            one is created (and closed by `close`) when omitted.
        discovery: Resolver to use instead of a new `DiscoveryResolver`.
        registry: Key provider registry to use instead of a new one.
        algorithms: Allowed signing algorithms.
        leeway: Clock skew tolerance in seconds.
        discovery_ttl: Lifetime of cached discovery documents in seconds.
        timeout: Upper bound for each discovery or key set request.
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        *,
        discovery: DiscoveryResolver | None = None,
        registry: KeyProviderRegistry | None = None,
        algorithms: tuple[str, ...] = ("RS256",),
        leeway: int = DEFAULT_LEEWAY,
        discovery_ttl: float = 300.0,
        timeout: float = _DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._timeout = timeout
        self._algorithms = algorithms
        self._leeway = leeway
        self._discovery = discovery or DiscoveryResolver(
            self._http, ttl_seconds=discovery_ttl, timeout=timeout
        )
        self._registry = registry or KeyProviderRegistry(self._build_key_provider)

    @property
    def discovery(self) -> DiscoveryResolver:
        return self._discovery

    @property
    def registry(self) -> KeyProviderRegistry:
        return self._registry

    def validate(self, token: str, config: IamConfig) -> AuthResult:
        """Validate ``token`` for the provider and client in ``config``."""
        try:
            return self._validate(token, config)
        except AuthError as e:
            logger.info("token_rejected", reason=e.reason.value, detail=str(e))
            return AuthFailure(e.reason)
        except Exception:
            logger.exception("token_validation_error")
            return AuthFailure(ReasonCode.SIGNATURE_INVALID)

    def clear_key_cache(self) -> None:
        """Drop every key provider and the keys they cached."""
        self._registry.clear()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> TokenValidator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _build_key_provider(self, jwks_uri: str) -> KeyProvider:
        return JWKSKeyProvider(jwks_uri, self._http, timeout=self._timeout)

    def _validate(self, token: str, config: IamConfig) -> AuthSuccess:
        if not is_compact_jws(token):
            raise MissingToken("Token is missing or malformed")

        record = self._discovery.resolve(config.server_url)
        provider = self._registry.get(record.jwks_uri)
        options = JWTVerifyOptions(
            issuer=record.issuer,
            audience=config.client_id,
            algorithms=self._algorithms,
            leeway=self._leeway,
        )
        claims = self._verify(token, provider, options)

        subject = claims.get("sub")
        if not subject or not isinstance(subject, str):
            raise SubjectMissing("Token has no subject")

        owner = owner_from_subject(subject, config.org_name)
        logger.debug("token_validated", sub=subject, owner=owner)
        return normalize_claims(claims, owner)

    def _verify(self, token: str, provider: KeyProvider, options: JWTVerifyOptions) -> Claims:
        try:
            return JWTVerifier(provider, options).verify(token)
        except AudienceMismatch as e:
            # Audience detection is message-based; see verifier.classify_failure.
            logger.info("audience_fallback", audience=options.audience, detail=str(e))

        try:
            return JWTVerifier(provider, options.without_audience()).verify(token)
        except AuthError as e:
            raise InvalidToken(f"Verification without audience failed: {e}") from e


_default_validator: TokenValidator | None = None
_default_lock = threading.Lock()


def default_validator() -> TokenValidator:
    """The process-wide validator used by `validate_token`."""
    global _default_validator
    with _default_lock:
        if _default_validator is None:
            _default_validator = TokenValidator()
        return _default_validator


def validate_token(token: str, config: IamConfig) -> AuthResult:
    """Validate ``token`` with the process-wide validator."""
    return default_validator().validate(token, config)


def clear_jwks_cache() -> None:
    """Drop the process-wide validator's key providers (tests, key rotation)."""
    default_validator().clear_key_cache()
