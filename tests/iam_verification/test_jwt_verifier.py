from types import SimpleNamespace
from typing import Any, cast

import jwt
import pytest
from _pytest.monkeypatch import MonkeyPatch
from jwt import PyJWK

import iam_verification as m
from iam_verification.verifier import FailureKind


class DummyProvider:
    """Duck-typed KeyProvider for tests."""

    def __init__(self, key: Any):
        self._key = key
        self.kid: str | None = "unset"

    def get_key_for_token(self, kid: str | None) -> PyJWK:
        self.kid = kid
        return self._key


def make_verifier(provider: DummyProvider, **options: Any) -> m.JWTVerifier:
    opts = {"issuer": "iss", "audience": "aud"} | options
    return m.JWTVerifier(cast(m.KeyProvider, provider), m.JWTVerifyOptions(**opts))


def test_jwtverifier_reads_kid_and_calls_keyprovider(monkeypatch: MonkeyPatch):
    dummy_key = SimpleNamespace(key=object())
    provider = DummyProvider(dummy_key)
    verifier = make_verifier(provider)

    monkeypatch.setattr(jwt, "get_unverified_header", lambda _t: {"kid": "kid123"})  # type: ignore

    def fake_decode(*args: Any, **kwargs: Any):
        assert args[0] == "TOKEN"
        assert args[1] is dummy_key.key
        assert kwargs["algorithms"] == ["RS256"]
        assert kwargs["audience"] == "aud"
        assert kwargs["issuer"] == "iss"
        assert kwargs["leeway"] == 30
        assert kwargs["options"] == {"verify_aud": True, "verify_sub": False}
        return {"sub": "acme/u1"}

    monkeypatch.setattr(jwt, "decode", fake_decode)

    claims = verifier.verify("TOKEN")
    assert claims["sub"] == "acme/u1"
    assert provider.kid == "kid123"


def test_jwtverifier_without_audience_disables_aud_check(monkeypatch: MonkeyPatch):
    provider = DummyProvider(SimpleNamespace(key=object()))
    verifier = make_verifier(provider)
    assert verifier.options.without_audience().audience is None

    monkeypatch.setattr(jwt, "get_unverified_header", lambda _t: {"kid": "k1"})  # type: ignore

    seen: dict[str, Any] = {}

    def fake_decode(*args: Any, **kwargs: Any):
        seen.update(kwargs)
        return {"sub": "u1"}

    monkeypatch.setattr(jwt, "decode", fake_decode)

    m.JWTVerifier(cast(m.KeyProvider, provider), verifier.options.without_audience()).verify("T")
    assert seen["audience"] is None
    assert seen["options"] == {"verify_aud": False, "verify_sub": False}
    assert seen["issuer"] == "iss"


def test_jwtverifier_passes_missing_kid_as_none(monkeypatch: MonkeyPatch):
    provider = DummyProvider(SimpleNamespace(key=object()))
    monkeypatch.setattr(jwt, "get_unverified_header", lambda _t: {"alg": "RS256"})  # type: ignore
    monkeypatch.setattr(jwt, "decode", lambda *a, **k: {"sub": "u1"})  # type: ignore

    make_verifier(provider).verify("TOKEN")

    assert provider.kid is None


def test_jwtverifier_rejects_non_string_kid(monkeypatch: MonkeyPatch):
    provider = DummyProvider(SimpleNamespace(key=object()))
    monkeypatch.setattr(jwt, "get_unverified_header", lambda _t: {"kid": 7})  # type: ignore

    with pytest.raises(m.InvalidToken):
        make_verifier(provider).verify("TOKEN")


def test_jwtverifier_malformed_header():
    provider = DummyProvider(SimpleNamespace(key=object()))

    with pytest.raises(m.InvalidToken, match="Malformed"):
        make_verifier(provider).verify("not.a.jwt")


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (jwt.ExpiredSignatureError("Signature has expired"), m.ExpiredToken),
        (jwt.InvalidAudienceError("Invalid audience"), m.AudienceMismatch),
        (jwt.InvalidAudienceError("Audience doesn't match"), m.AudienceMismatch),
        (jwt.MissingRequiredClaimError("aud"), m.AudienceMismatch),
        (jwt.InvalidIssuerError("Invalid issuer"), m.InvalidToken),
        (jwt.InvalidSignatureError("Signature verification failed"), m.InvalidToken),
    ],
)
def test_jwtverifier_maps_failures(monkeypatch: MonkeyPatch, error: Exception, expected: type):
    provider = DummyProvider(SimpleNamespace(key=object()))
    monkeypatch.setattr(jwt, "get_unverified_header", lambda _t: {"kid": "k1"})  # type: ignore

    def fake_decode(*args: Any, **kwargs: Any):
        raise error

    monkeypatch.setattr(jwt, "decode", fake_decode)

    with pytest.raises(expected) as excinfo:
        make_verifier(provider).verify("TOKEN")
    assert type(excinfo.value) is expected
    assert excinfo.value.__cause__ is error


@pytest.mark.parametrize(
    ("message", "kind"),
    [
        ("Signature has expired", FailureKind.EXPIRED),
        ("token EXPIRED and invalid audience", FailureKind.EXPIRED),
        ("Invalid audience", FailureKind.AUDIENCE),
        ('Token is missing the "aud" claim', FailureKind.AUDIENCE),
        ('Token is missing the "iss" claim', FailureKind.OTHER),
        ("Signature verification failed", FailureKind.OTHER),
    ],
)
def test_classify_failure_reads_message(message: str, kind: FailureKind):
    assert m.classify_failure(Exception(message)) is kind
