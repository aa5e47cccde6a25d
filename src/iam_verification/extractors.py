"""Token extraction from Flask requests.

- `BearerExtractor`: ``Authorization: Bearer <token>`` (APIs)
- `CookieExtractor`: a named cookie (browser sessions; pair with CSRF
  protection)

Tokens are never read from query parameters: URLs end up in logs.
"""

from __future__ import annotations

from flask import request

from .errors import MissingToken


class BearerExtractor:
    """Reads the token from the Authorization header.

    The scheme is matched case-insensitively; surrounding whitespace is
    ignored.
    """

    def extract(self) -> str:
        header = request.headers.get("Authorization", "").strip()
        if not header:
            raise MissingToken("Missing Authorization header")

        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer":
            raise MissingToken("Invalid authorization scheme (expected 'Bearer')")

        token = token.strip()
        if not token:
            raise MissingToken("Bearer token is empty")
        return token


class CookieExtractor:
    """Reads the token from the cookie ``cookie_name``.

    Raises:
        ValueError: ``cookie_name`` is blank.
    """

    def __init__(self, cookie_name: str = "access_token") -> None:
        if not cookie_name or not cookie_name.strip():
            raise ValueError("cookie_name cannot be empty")
        self._name = cookie_name

    @property
    def cookie_name(self) -> str:
        return self._name

    def extract(self) -> str:
        token = request.cookies.get(self._name)
        if not token:
            raise MissingToken(f"Missing cookie '{self._name}'")
        return token
