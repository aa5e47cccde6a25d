"""Flask integration for IAM token validation.

`AuthExtension.require()` protects a view: it extracts the token, runs
`TokenValidator.validate`, and either stores the `AuthSuccess` in
``flask.g.iam_user`` or aborts.

Status mapping
--------------
- ``iam_discovery_failed`` -> 503 (the IAM server is unreachable or broken)
- every other reason      -> 401

The abort description is the reason code, so an app-level error handler can
return it to the client without exposing library messages.
"""

from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, abort, g

from .errors import AuthError
from .extractors import BearerExtractor
from .results import AuthFailure, AuthSuccess, ReasonCode

if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import IamConfig
    from .protocols import Extractor, ViewFunc
    from .validator import TokenValidator

_EXT_KEY: Final[str] = "iam_auth"
"""Flask extensions registry key for AuthExtension."""

_STATUS_BY_REASON: Final[dict[ReasonCode, int]] = {
    ReasonCode.DISCOVERY_FAILED: 503,
}


def status_for(reason: ReasonCode) -> int:
    return _STATUS_BY_REASON.get(reason, 401)


class AuthExtension:
    """
    Flask decorator glue for IAM token validation.

    Pattern:
        auth = AuthExtension()
        auth.init_app(app, validator=validator, config=config)

    Usage:
        auth = AuthExtension(validator, config)

        @app.get("/me")
        @auth.require()
        def me():
            user = current_user()
            return {"id": user.user_id, "org": user.owner}
    """

    def __init__(
        self,
        validator: TokenValidator | None = None,
        config: IamConfig | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        self._validator = validator
        self._config = config
        self._extractor: Extractor = extractor or BearerExtractor()

    def init_app(
        self,
        app: Flask,
        *,
        validator: TokenValidator | None = None,
        config: IamConfig | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        """Register on ``app``; any argument given replaces the constructor's."""
        if validator is not None:
            self._validator = validator
        if config is not None:
            self._config = config
        if extractor is not None:
            self._extractor = extractor

        app.extensions[_EXT_KEY] = self

    def authenticate(self) -> AuthSuccess:
        """Validate the current request's token or abort.

        Side Effects:
            - Sets ``flask.g.iam_user`` on success.
            - Calls ``flask.abort`` on failure.
        """
        if self._validator is None or self._config is None:
            raise RuntimeError("AuthExtension needs a validator and a config; call init_app()")

        try:
            token = self._extractor.extract()
        except AuthError as e:
            abort(e.status_code, description=e.description)

        result = self._validator.validate(token, self._config)
        if isinstance(result, AuthFailure):
            abort(status_for(result.reason), description=result.reason.value)

        g.iam_user = result
        return result

    def require(self) -> Callable[[ViewFunc], ViewFunc]:
        """Decorator that runs `authenticate` before the view."""

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                self.authenticate()
                return view(*args, **kwargs)

            return wrapper

        return decorator


def current_user() -> AuthSuccess:
    """The verified identity of the current request.

    Raises:
        RuntimeError: Called outside a view protected by `AuthExtension`.
    """
    user = g.get("iam_user")
    if user is None:
        raise RuntimeError("current_user() called outside a protected view")
    return user
