"""Authentication errors raised inside the validation pipeline.

Components (discovery, key providers, the JWT verifier) raise these. Only
`TokenValidator.validate` catches them and turns them into an `AuthFailure`
carrying the class's ``reason``, so application code normally never sees
them. They are public for callers that use the lower-level pieces directly.

Security Note:
    Messages may contain provider URLs or library error text. Log them
    server-side; return only the reason code to clients.
"""

from __future__ import annotations

from typing import ClassVar

from .results import ReasonCode


class AuthError(Exception):
    """Base class for every token validation failure.

    Attributes:
        reason: Reason code reported in the verdict.
        status_code: HTTP status a web layer should answer with.
    """

    reason: ClassVar[ReasonCode] = ReasonCode.SIGNATURE_INVALID
    status_code: ClassVar[int] = 401

    @property
    def description(self) -> str:
        return self.reason.value


class MissingToken(AuthError):  # noqa: N818
    """No token, an empty token, or something that is not a compact JWS."""

    reason = ReasonCode.TOKEN_MISSING


class DiscoveryFailed(AuthError):  # noqa: N818
    """Provider metadata or its key set could not be fetched.

    Raised for transport errors, timeouts, non-success statuses, bodies that
    are not JSON objects, and discovery documents without ``jwks_uri``.
    Answered with 503 because the fault is upstream, not in the token.
    """

    reason = ReasonCode.DISCOVERY_FAILED
    status_code = 503


class ExpiredToken(AuthError):  # noqa: N818
    """The token's ``exp`` is in the past, beyond the clock-skew leeway."""

    reason = ReasonCode.TOKEN_EXPIRED


class InvalidToken(AuthError):  # noqa: N818
    """Signature, issuer, audience, algorithm or key resolution failed."""

    reason = ReasonCode.SIGNATURE_INVALID


class AudienceMismatch(InvalidToken):
    """Verification failed on the audience claim (absent or not matching).

    The validator retries without an audience constraint when it sees this.
    """


class SubjectMissing(AuthError):  # noqa: N818
    """The token verified but carries no usable ``sub`` claim."""

    reason = ReasonCode.SUBJECT_MISSING
