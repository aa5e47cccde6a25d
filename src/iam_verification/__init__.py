"""
IAM bearer token validation.

Verifies access and ID tokens issued by a Casdoor-style IAM server: the
issuer and key set are found through OIDC discovery, signatures are checked
with PyJWT, and the result is a typed verdict instead of an exception.

High-level flow (per call)
--------------------------
1. `TokenValidator.validate(token, config)` rejects non-JWS input outright.
2. `DiscoveryResolver` returns the provider's issuer and ``jwks_uri``
   (cached for five minutes per provider URL).
3. `KeyProviderRegistry` hands out the `JWKSKeyProvider` for that
   ``jwks_uri`` (one per URI, created lazily, kept for the process).
4. `JWTVerifier` checks signature, expiry (30 s leeway), issuer and audience.
   A failure on the audience alone is retried without the audience check.
5. The ``sub`` claim (``"org/username"``) becomes ``user_id`` and ``owner``.

Example usage
-------------

.. code-block:: python

    from iam_verification import IamConfig, validate_token

    config = IamConfig(server_url="https://iam.example.com", client_id="my-app")
    result = validate_token(access_token, config)
    if result.ok:
        print(result.user_id, result.owner, result.email)
    else:
        print(result.reason)  # e.g. "iam_token_expired"

With Flask:

.. code-block:: python

    from iam_verification import AuthExtension, IamConfig, TokenValidator, current_user

    auth = AuthExtension(TokenValidator(), IamConfig.from_env())

    @app.get("/me")
    @auth.require()
    def me():
        return {"id": current_user().user_id}
"""

# Cache stores
from .cache_stores import InMemoryCache

# Claims
from .claims import normalize_claims, owner_from_subject

# Config
from .config import IamConfig

# Discovery
from .discovery import DiscoveryRecord, DiscoveryResolver

# Errors
from .errors import (
    AudienceMismatch,
    AuthError,
    DiscoveryFailed,
    ExpiredToken,
    InvalidToken,
    MissingToken,
    SubjectMissing,
)

# Extractors
from .extractors import BearerExtractor, CookieExtractor

# Flask extension
from .flask_extension import AuthExtension, current_user

# Key providers
from .key_providers import JWKSKeyProvider
from .key_registry import KeyProviderRegistry

# Logging
from .logs import configure_logging

# Protocols
from .protocols import CacheStore, Claims, Extractor, IamClaims, KeyProvider

# Refresh gate
from .refresh_gate import RefreshGate

# Results
from .results import AuthFailure, AuthResult, AuthSuccess, ReasonCode

# Validator
from .validator import TokenValidator, clear_jwks_cache, validate_token

# Verifier
from .verifier import JWTVerifier, JWTVerifyOptions, classify_failure

__all__ = [
    # Validator
    "TokenValidator",
    "validate_token",
    "clear_jwks_cache",
    # Config
    "IamConfig",
    # Results
    "AuthFailure",
    "AuthResult",
    "AuthSuccess",
    "ReasonCode",
    # Errors
    "AudienceMismatch",
    "AuthError",
    "DiscoveryFailed",
    "ExpiredToken",
    "InvalidToken",
    "MissingToken",
    "SubjectMissing",
    # Protocols
    "CacheStore",
    "Claims",
    "Extractor",
    "IamClaims",
    "KeyProvider",
    # Discovery
    "DiscoveryRecord",
    "DiscoveryResolver",
    # Keys
    "InMemoryCache",
    "JWKSKeyProvider",
    "KeyProviderRegistry",
    "RefreshGate",
    # Verifier
    "JWTVerifier",
    "JWTVerifyOptions",
    "classify_failure",
    # Claims
    "normalize_claims",
    "owner_from_subject",
    # Flask
    "AuthExtension",
    "BearerExtractor",
    "CookieExtractor",
    "current_user",
    # Logging
    "configure_logging",
]
