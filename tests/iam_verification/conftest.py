import json
import time
from collections import Counter
from collections.abc import Callable
from typing import Any

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from jwt.algorithms import RSAAlgorithm

from iam_verification import IamConfig, TokenValidator

BASE_URL = "https://iam.example.com"
DISCOVERY_PATH = "/.well-known/openid-configuration"
JWKS_PATH = "/.well-known/jwks"
JWKS_URI = f"{BASE_URL}{JWKS_PATH}"
CLIENT_ID = "app1"


def public_jwk(private_key: rsa.RSAPrivateKey, kid: str) -> dict[str, Any]:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return jwk


class FakeIdP:
    """
    Minimal IAM server behind httpx.MockTransport.
    Serves discovery + JWKS and counts requests per path.
    """

    base_url = BASE_URL
    jwks_uri = JWKS_URI

    def __init__(self, keys: list[dict[str, Any]]):
        self.discovery: dict[str, Any] = {
            "issuer": BASE_URL,
            "jwks_uri": JWKS_URI,
            "authorization_endpoint": f"{BASE_URL}/login/oauth/authorize",
            "token_endpoint": f"{BASE_URL}/api/login/oauth/access_token",
            "userinfo_endpoint": f"{BASE_URL}/api/userinfo",
        }
        self.jwks: dict[str, Any] = {"keys": keys}
        self.calls: Counter[str] = Counter()
        self.status: dict[str, int] = {}
        self.errors: dict[str, Exception] = {}

    @property
    def discovery_calls(self) -> int:
        return self.calls[DISCOVERY_PATH]

    @property
    def jwks_calls(self) -> int:
        return self.calls[JWKS_PATH]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls[path] += 1
        if path in self.errors:
            raise self.errors[path]
        status = self.status.get(path, 200)
        if path == DISCOVERY_PATH:
            return httpx.Response(status, json=self.discovery)
        if path == JWKS_PATH:
            return httpx.Response(status, json=self.jwks)
        return httpx.Response(404)


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key() -> rsa.RSAPrivateKey:
    """A key the IdP never publishes."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_jwk() -> Callable[[rsa.RSAPrivateKey, str], dict[str, Any]]:
    return public_jwk


@pytest.fixture
def idp(signing_key: rsa.RSAPrivateKey) -> FakeIdP:
    return FakeIdP([public_jwk(signing_key, "k1")])


@pytest.fixture
def http_client(idp: FakeIdP):
    client = httpx.Client(transport=httpx.MockTransport(idp.handler))
    yield client
    client.close()


@pytest.fixture
def validator(http_client: httpx.Client) -> TokenValidator:
    return TokenValidator(http_client)


@pytest.fixture
def config() -> IamConfig:
    return IamConfig(server_url=BASE_URL, client_id=CLIENT_ID)


@pytest.fixture
def make_token(signing_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """
    Factory fixture that returns a function.

    Usage in tests:
        token = make_token(sub="acme/bob", omit=("aud",))
    """

    def _make(
        *,
        key: rsa.RSAPrivateKey | None = None,
        kid: str | None = "k1",
        omit: tuple[str, ...] = (),
        **claims: Any,
    ) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": "acme/alice",
            "iss": BASE_URL,
            "aud": CLIENT_ID,
            "iat": now,
            "exp": now + 300,
        }
        payload.update(claims)
        for name in omit:
            payload.pop(name, None)
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(payload, key or signing_key, algorithm="RS256", headers=headers)

    return _make


@pytest.fixture()
def app() -> Flask:
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app
