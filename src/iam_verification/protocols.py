"""Structural interfaces and type aliases.

Protocols (PEP 544) keep the seams of the pipeline swappable in tests:
a fake `KeyProvider` or `Extractor` needs only the right methods, not a base
class.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, NotRequired, Protocol, TypedDict

if TYPE_CHECKING:
    from jwt import PyJWK

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Decoded JWT payload. Unknown claims are kept as-is."""

type ViewFunc = Callable[..., Any]
"""Flask view function."""

type KeyProviderFactory = Callable[[str], KeyProvider]
"""Builds a `KeyProvider` for a JWKS URI."""


class IamClaims(TypedDict):
    """Claims an IAM access or ID token is known to carry.

    Only ``sub`` is required for a successful verdict. Anything not listed
    here is still present in the verified `Claims` mapping.
    """

    sub: str
    iss: NotRequired[str]
    aud: NotRequired[str | list[str]]
    exp: NotRequired[int]
    iat: NotRequired[int]
    email: NotRequired[str]
    name: NotRequired[str]
    preferred_username: NotRequired[str]
    picture: NotRequired[str]
    phone: NotRequired[str]
    groups: NotRequired[list[str]]


# ============================================================================
# Core Protocols
# ============================================================================


class CacheStore(Protocol):
    """Per-kid cache for resolved signing keys, with negative entries."""

    def get(self, kid: str) -> PyJWK | None:
        """Return the cached key, or None when absent, expired or known-missing."""
        ...

    def set(self, key: PyJWK, ttl_seconds: int) -> None: ...

    def set_missing(self, kid: str, ttl_seconds: int) -> None:
        """Remember that ``kid`` is not in the key set."""
        ...

    def is_missing(self, kid: str) -> bool: ...

    def clear(self) -> None: ...


class KeyProvider(Protocol):
    """Resolves signing keys from one key set.

    Implementations fetch and cache the key set themselves and are expected
    to re-fetch when asked for a kid they do not know (key rotation).
    """

    def get_key_for_token(self, kid: str | None) -> PyJWK:
        """Resolve the signing key for ``kid``.

        Args:
            kid: ``kid`` header of the token, or None when the header has none.

        Raises:
            InvalidToken: The key cannot be resolved.
            DiscoveryFailed: The key set could not be fetched.
        """
        ...


class Extractor(Protocol):
    """Pulls the raw token out of the current Flask request."""

    def extract(self) -> str:
        """Return the raw token.

        Raises:
            MissingToken: No token in the request.
        """
        ...
