"""Verdict types returned by token validation.

`TokenValidator.validate` never raises; it returns one of these two frozen
dataclasses. Branch on ``result.ok`` (or ``isinstance``) to tell them apart:

.. code-block:: python

    result = validator.validate(token, config)
    if result.ok:
        print(result.user_id, result.owner)
    else:
        print(result.reason)  # e.g. ReasonCode.TOKEN_EXPIRED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

from .protocols import Claims


class ReasonCode(StrEnum):
    """Why a token was rejected.

    Values are stable wire strings; callers may log them or return them to
    clients as-is.
    """

    TOKEN_MISSING = "iam_token_missing"
    DISCOVERY_FAILED = "iam_discovery_failed"
    TOKEN_EXPIRED = "iam_token_expired"
    SIGNATURE_INVALID = "iam_signature_invalid"
    SUBJECT_MISSING = "iam_subject_missing"


@dataclass(frozen=True, slots=True)
class AuthSuccess:
    """A verified identity.

    Attributes:
        user_id: The token's ``sub`` claim, verbatim (``"org/username"``).
        owner: Organization that owns the user.
        claims: The full verified payload, unmodified.
        email: ``email`` claim when it is a string.
        name: ``name`` claim, falling back to ``preferred_username``.
        avatar: ``picture`` claim when it is a string.
    """

    user_id: str
    owner: str
    claims: Claims = field(repr=False)
    email: str | None = None
    name: str | None = None
    avatar: str | None = None
    ok: Literal[True] = field(default=True, init=False)


@dataclass(frozen=True, slots=True)
class AuthFailure:
    """A rejected token and the reason for it."""

    reason: ReasonCode
    ok: Literal[False] = field(default=False, init=False)


type AuthResult = AuthSuccess | AuthFailure
"""Tagged union returned by `TokenValidator.validate`."""
