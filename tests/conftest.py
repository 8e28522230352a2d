"""Pytest configuration and fixtures."""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from flask.testing import FlaskClient

from openidgate.app import create_app
from openidgate.core.oidc.flows import ImplicitFlow
from openidgate.core.oidc.provider import Provider
from openidgate.core.oidc.validation import TokenVerifier
from openidgate.core.openid20.client import OpenID20Client

from support import (
    CLAIMED_ID,
    CLIENT_ID,
    ISSUER,
    OPENID_ENDPOINT,
    RETURN_TO,
    TOKEN_NONCE,
    ProviderStub,
    response_nonce,
)


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for the provider signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_token(rsa_private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Factory for signed ID tokens.

    Keyword arguments override claims; names listed in ``drop`` are removed.
    """

    def _make(drop: tuple[str, ...] = (), key: Any = None, **overrides: Any) -> str:
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "sub": "user123",
            "email": "user@example.com",
            "email_verified": True,
            "nonce": TOKEN_NONCE,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=1)).timestamp()),
        }
        payload.update(overrides)
        for name in drop:
            payload.pop(name, None)
        return jwt.encode(payload, key or rsa_private_key, algorithm="RS256")

    return _make


@pytest.fixture
def expired_claims() -> dict[str, int]:
    """Claims for a token that expired two hours ago."""
    now = datetime.now(UTC)
    return {
        "iat": int((now - timedelta(hours=3)).timestamp()),
        "exp": int((now - timedelta(hours=2)).timestamp()),
    }


@pytest.fixture
def provider() -> Provider:
    """Provider metadata as discovery would return it."""
    return Provider(
        issuer=ISSUER,
        authorization_endpoint=f"{ISSUER}/authorize",
        jwks_uri=f"{ISSUER}/jwks",
    )


@pytest.fixture
def verifier(rsa_private_key: rsa.RSAPrivateKey) -> TokenVerifier:
    """Verifier trusting the test signing key, without clock skew."""
    return TokenVerifier(
        issuer=ISSUER,
        audience=CLIENT_ID,
        signing_key=rsa_private_key.public_key(),
        clock_skew_seconds=0,
    )


@pytest.fixture
def flow(provider: Provider, verifier: TokenVerifier) -> ImplicitFlow:
    """ID token flow wired to the test key."""
    return ImplicitFlow(provider, CLIENT_ID, verifier=verifier)


@pytest.fixture
def provider_stub() -> ProviderStub:
    """Stub provider that confirms every assertion."""
    return ProviderStub()


@pytest.fixture
def openid20_client(provider_stub: ProviderStub) -> Generator[OpenID20Client, None, None]:
    """OpenID 2.0 client talking to the stub provider."""
    client = OpenID20Client(OPENID_ENDPOINT, RETURN_TO, http_client=provider_stub.client())
    yield client
    client.close()


@pytest.fixture
def make_assertion() -> Callable[..., dict[str, str]]:
    """Factory for positive assertion callback parameters."""

    def _make(issued_at: datetime | None = None, **overrides: str) -> dict[str, str]:
        params = {
            "openid.ns": "http://specs.openid.net/auth/2.0",
            "openid.mode": "id_res",
            "openid.op_endpoint": OPENID_ENDPOINT,
            "openid.claimed_id": CLAIMED_ID,
            "openid.identity": CLAIMED_ID,
            "openid.return_to": RETURN_TO,
            "openid.response_nonce": response_nonce(issued_at or datetime.now(UTC)),
            "openid.assoc_handle": "1234567890",
            "openid.signed": "signed,op_endpoint,claimed_id,identity,return_to,response_nonce,assoc_handle",
            "openid.sig": "W0u5DRbtHE1GG0ZKwEOE9Pz+3zY=",
        }
        params.update({k.replace("__", "."): v for k, v in overrides.items()})
        return params

    return _make


@pytest.fixture
def app(flow: ImplicitFlow, openid20_client: OpenID20Client) -> Generator[Flask, None, None]:
    """Create application for testing with both flows enabled."""
    app = create_app(flow=flow, openid20_client=openid20_client, config={"TESTING": True})
    yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create test client."""
    return app.test_client()
