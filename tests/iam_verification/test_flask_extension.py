import pytest
from flask import Flask, g

from iam_verification import AuthExtension, AuthSuccess, CookieExtractor, current_user


@pytest.fixture
def auth(app: Flask, validator, config) -> AuthExtension:
    ext = AuthExtension()
    ext.init_app(app, validator=validator, config=config)

    @app.get("/me")
    @ext.require()
    def me():
        user = current_user()
        return {"id": user.user_id, "org": user.owner}

    @app.errorhandler(401)
    @app.errorhandler(503)
    def auth_error(e):
        return {"error": e.description}, e.code

    return ext


def test_init_app_registers_extension(app: Flask, auth: AuthExtension):
    assert app.extensions["iam_auth"] is auth


def test_missing_token_is_401(app: Flask, auth):
    resp = app.test_client().get("/me")

    assert resp.status_code == 401
    assert resp.get_json() == {"error": "iam_token_missing"}


def test_invalid_token_is_401(app: Flask, auth, make_token, other_key):
    token = make_token(key=other_key)

    resp = app.test_client().get("/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.get_json() == {"error": "iam_signature_invalid"}


def test_expired_token_is_401(app: Flask, auth, make_token):
    token = make_token(exp=1)

    resp = app.test_client().get("/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.get_json() == {"error": "iam_token_expired"}


def test_valid_token_reaches_view(app: Flask, auth, make_token):
    token = make_token()

    resp = app.test_client().get("/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200
    assert resp.get_json() == {"id": "acme/alice", "org": "acme"}


def test_discovery_failure_is_503(app: Flask, auth, idp, make_token):
    idp.status["/.well-known/openid-configuration"] = 500
    token = make_token()

    resp = app.test_client().get("/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 503
    assert resp.get_json() == {"error": "iam_discovery_failed"}


def test_authenticate_sets_g(app: Flask, validator, config, make_token):
    ext = AuthExtension(validator, config, extractor=CookieExtractor("id_token"))

    with app.test_request_context("/", headers={"Cookie": f"id_token={make_token()}"}):
        user = ext.authenticate()
        assert isinstance(user, AuthSuccess)
        assert g.iam_user is user
        assert current_user() is user


def test_unconfigured_extension_raises(app: Flask):
    ext = AuthExtension()

    with app.test_request_context("/"):
        with pytest.raises(RuntimeError):
            ext.authenticate()


def test_current_user_outside_protected_view(app: Flask):
    with app.test_request_context("/"):
        with pytest.raises(RuntimeError):
            current_user()


def test_require_returns_a_view_decorator(validator, config):
    ext = AuthExtension(validator, config)

    def profile():
        """Profile view."""
        return "ok"

    decorated = ext.require()(profile)

    assert callable(decorated)
    assert decorated.__name__ == "profile"
    assert decorated.__doc__ == "Profile view."
    assert decorated.__wrapped__ is profile
