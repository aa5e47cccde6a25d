"""JWT signature and claims verification using PyJWT.

`JWTVerifier` checks one token against one key provider and one set of
options, and reports failures as domain errors:

- `ExpiredToken` when the token is past ``exp`` (beyond leeway)
- `AudienceMismatch` when the audience claim is absent or wrong
- `InvalidToken` for everything else (signature, issuer, algorithm, kid)

PyJWT failures are sorted by `classify_failure`, which reads the error
*message*. The validator's audience fallback depends on that sorting, so the
matching rules live in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Final

import jwt

from .errors import AudienceMismatch, ExpiredToken, InvalidToken
from .protocols import Claims

if TYPE_CHECKING:
    from .protocols import KeyProvider

DEFAULT_LEEWAY: Final[int] = 30
"""Clock skew tolerance in seconds for exp/nbf/iat."""

_AUDIENCE_MARKERS: Final[tuple[str, ...]] = ("audience", '"aud"')


class FailureKind(StrEnum):
    EXPIRED = "expired"
    AUDIENCE = "audience"
    OTHER = "other"


def classify_failure(error: BaseException) -> FailureKind:
    """Sort a verification failure by what its message says.

    PyJWT words these as "Signature has expired", "Invalid audience",
    "Audience doesn't match" and 'Token is missing the "aud" claim'.
    Anything mentioning expiry wins over anything mentioning the audience.
    """
    message = str(error).lower()
    if "expired" in message:
        return FailureKind.EXPIRED
    if any(marker in message for marker in _AUDIENCE_MARKERS):
        return FailureKind.AUDIENCE
    return FailureKind.OTHER


@dataclass(frozen=True, slots=True)
class JWTVerifyOptions:
    """What a valid token must look like.

    Attributes:
        issuer: Expected ``iss``. None skips the issuer check.
        audience: Expected ``aud``. None skips the audience check entirely,
            including for tokens that do carry an ``aud``.
        algorithms: Allowed signing algorithms. Always an explicit
            allowlist, never ``none``.
        leeway: Clock skew tolerance in seconds.
    """

    issuer: str | None
    audience: str | None
    algorithms: tuple[str, ...] = ("RS256",)
    leeway: int = DEFAULT_LEEWAY

    def without_audience(self) -> JWTVerifyOptions:
        return replace(self, audience=None)


class JWTVerifier:
    """Verifies tokens signed by keys from one `KeyProvider`.

    Cheap to build: the validator makes one per call because the expected
    issuer comes from discovery.

    Example:
        ```python
        verifier = JWTVerifier(
            key_provider=provider,
            options=JWTVerifyOptions(
                issuer="https://iam.example.com",
                audience="my-app",
            ),
        )
        try:
            claims = verifier.verify(raw_token)
        except ExpiredToken:
            ...
        except AudienceMismatch:
            claims = JWTVerifier(provider, options.without_audience()).verify(raw_token)
        ```
    """

    def __init__(self, key_provider: KeyProvider, options: JWTVerifyOptions) -> None:
        self._keys = key_provider
        self._opt = options

    @property
    def options(self) -> JWTVerifyOptions:
        return self._opt

    def verify(self, token: str) -> Claims:
        """Verify ``token`` and return its claims.

        Raises:
            ExpiredToken: ``exp`` has passed.
            AudienceMismatch: ``aud`` is absent or does not match.
            InvalidToken: Malformed token, bad signature, wrong issuer,
                disallowed algorithm or unresolvable kid.
            DiscoveryFailed: The key set could not be downloaded.
        """
        # The header is read unverified, only to pick the key.
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Malformed token header: {e}") from e

        kid = header.get("kid")
        if kid is not None and not isinstance(kid, str):
            raise InvalidToken("Token header 'kid' is not a string")

        key = self._keys.get_key_for_token(kid)

        try:
            return jwt.decode(
                token,
                key.key,
                algorithms=list(self._opt.algorithms),
                audience=self._opt.audience,
                issuer=self._opt.issuer,
                leeway=self._opt.leeway,
                # sub is checked by TokenValidator
                options={"verify_aud": self._opt.audience is not None, "verify_sub": False},
            )
        except jwt.InvalidTokenError as e:
            kind = classify_failure(e)
            if kind is FailureKind.EXPIRED:
                raise ExpiredToken("Token has expired") from e
            if kind is FailureKind.AUDIENCE:
                raise AudienceMismatch(f"Token validation failed: {e}") from e
            raise InvalidToken(f"Token validation failed: {e}") from e
