"""Maps verified claims onto the public identity result."""

from __future__ import annotations

from typing import Any, Final

from .protocols import Claims
from .results import AuthSuccess

UNKNOWN_OWNER: Final[str] = "unknown"
SUBJECT_SEPARATOR: Final[str] = "/"


def owner_from_subject(subject: str, org_hint: str | None = None) -> str:
    """Organization that owns ``subject``.

    IAM subjects look like ``"org/username"``; the owner is the first
    segment. Bare usernames belong to ``org_hint``, or to ``"unknown"``.
    """
    if SUBJECT_SEPARATOR in subject:
        return subject.split(SUBJECT_SEPARATOR, 1)[0]
    return org_hint if org_hint is not None else UNKNOWN_OWNER


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def normalize_claims(claims: Claims, owner: str) -> AuthSuccess:
    """Build the success verdict for already-verified ``claims``.

    Profile fields are copied only when they are strings. ``name`` falls back
    to ``preferred_username``. ``claims`` itself is attached untouched.
    """
    name = _str_or_none(claims.get("name"))
    if name is None:
        name = _str_or_none(claims.get("preferred_username"))

    return AuthSuccess(
        user_id=claims["sub"],
        owner=owner,
        claims=claims,
        email=_str_or_none(claims.get("email")),
        name=name,
        avatar=_str_or_none(claims.get("picture")),
    )
