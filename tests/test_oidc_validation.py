"""Tests for ID token verification."""

from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from openidgate.core.errors import (
    ClaimsError,
    ConfigError,
    ErrorKind,
    NonceMismatchError,
    TokenVerificationError,
    UnverifiedEmailError,
)
from openidgate.core.oidc.flows import ImplicitFlow
from openidgate.core.oidc.provider import Provider
from openidgate.core.oidc.validation import TokenVerifier, verify_id_token

from support import CLIENT_ID, ISSUER, TOKEN_NONCE

TokenFactory = Callable[..., str]


class TestTokenVerifier:
    """Tests for signature, issuer, audience and expiry checks."""

    def test_valid_token(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a valid token returns its claims."""
        claims = verifier.verify(make_token())
        assert claims["email"] == "user@example.com"
        assert claims["nonce"] == TOKEN_NONCE

    def test_wrong_signing_key(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a token signed by another key is rejected."""
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(TokenVerificationError) as exc_info:
            verifier.verify(make_token(key=other_key))
        assert "InvalidSignatureError" in exc_info.value.message

    def test_tampered_token(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a token with a modified payload is rejected."""
        header, _, signature = make_token().split(".")
        _, payload, _ = make_token(email="admin@example.com").split(".")
        with pytest.raises(TokenVerificationError):
            verifier.verify(f"{header}.{payload}.{signature}")

    def test_garbage_token(self, verifier: TokenVerifier) -> None:
        """Test a value that is not a JWT."""
        with pytest.raises(TokenVerificationError):
            verifier.verify("not-a-jwt")

    def test_issuer_mismatch(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a token from another issuer."""
        with pytest.raises(TokenVerificationError, match="InvalidIssuerError"):
            verifier.verify(make_token(iss="https://wrong-issuer.com"))

    def test_audience_mismatch(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a token for another client."""
        with pytest.raises(TokenVerificationError, match="InvalidAudienceError"):
            verifier.verify(make_token(aud="other-client"))

    def test_audience_list(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test an audience list containing the client ID."""
        claims = verifier.verify(make_token(aud=["other-client", CLIENT_ID]))
        assert CLIENT_ID in claims["aud"]

    def test_expired_token(
        self, verifier: TokenVerifier, make_token: TokenFactory, expired_claims: dict[str, int]
    ) -> None:
        """Test expiry is enforced by default."""
        with pytest.raises(TokenVerificationError, match="ExpiredSignatureError"):
            verifier.verify(make_token(**expired_claims))

    def test_skip_expiry(
        self, verifier: TokenVerifier, make_token: TokenFactory, expired_claims: dict[str, int]
    ) -> None:
        """Test skip_expiry accepts an expired but otherwise valid token."""
        claims = verifier.verify(make_token(**expired_claims), skip_expiry=True)
        assert claims["exp"] == expired_claims["exp"]

    def test_skip_expiry_keeps_other_checks(
        self, verifier: TokenVerifier, make_token: TokenFactory, expired_claims: dict[str, int]
    ) -> None:
        """Test skip_expiry does not relax the audience check."""
        with pytest.raises(TokenVerificationError):
            verifier.verify(make_token(aud="other-client", **expired_claims), skip_expiry=True)

    def test_missing_exp(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a token without expiry is rejected."""
        with pytest.raises(TokenVerificationError, match="MissingRequiredClaimError"):
            verifier.verify(make_token(drop=("exp",)))

    def test_hmac_token_rejected(self, verifier: TokenVerifier) -> None:
        """Test symmetric algorithms are not accepted."""

        token = jwt.encode({"iss": ISSUER, "aud": CLIENT_ID, "exp": 9999999999}, "secret" * 8, algorithm="HS256")
        with pytest.raises(TokenVerificationError):
            verifier.verify(token)

    @pytest.mark.parametrize("jwks_uri", [None, ""])
    def test_requires_key_source(self, jwks_uri: str | None) -> None:
        """Test a verifier needs a JWKS URI or a key."""
        with pytest.raises(ValueError):
            TokenVerifier(issuer=ISSUER, audience=CLIENT_ID, jwks_uri=jwks_uri)

    def test_static_key_preferred_over_jwks(
        self, rsa_private_key: rsa.RSAPrivateKey, make_token: TokenFactory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a fixed key is used without contacting the JWKS endpoint."""

        def no_network(*args: object, **kwargs: object) -> None:
            raise AssertionError("JWKS endpoint contacted")

        monkeypatch.setattr(jwt.PyJWKClient, "fetch_data", no_network)
        verifier = TokenVerifier(
            issuer=ISSUER,
            audience=CLIENT_ID,
            jwks_uri=f"{ISSUER}/jwks",
            signing_key=rsa_private_key.public_key(),
        )
        assert verifier.verify(make_token())["email"] == "user@example.com"

    def test_for_provider(self, provider: Provider) -> None:
        """Test a verifier built from provider metadata."""
        verifier = TokenVerifier.for_provider(provider, CLIENT_ID)
        assert verifier.issuer == ISSUER
        assert verifier.audience == CLIENT_ID


class TestVerifyIDToken:
    """Tests for email claim extraction."""

    def test_verified_email(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a verified email becomes the identity subject."""
        identity = verify_id_token(verifier, make_token())
        assert identity.subject == "user@example.com"
        assert identity.nonce == TOKEN_NONCE
        assert identity.expires_at is not None
        assert identity.expires_at > datetime.now(UTC)
        assert not identity.is_expired

    def test_unverified_email(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test email_verified=false fails despite a valid signature."""
        with pytest.raises(UnverifiedEmailError) as exc_info:
            verify_id_token(verifier, make_token(email_verified=False))
        assert exc_info.value.email == "user@example.com"
        assert exc_info.value.kind == ErrorKind.UNVERIFIED_EMAIL

    def test_missing_email_verified(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test an absent email_verified claim counts as unverified."""
        with pytest.raises(UnverifiedEmailError):
            verify_id_token(verifier, make_token(drop=("email_verified",)))

    @pytest.mark.parametrize(
        ("claim", "value"),
        [
            ("email_verified", "true"),
            ("email", 42),
            ("email", ""),
            ("nonce", 12345),
        ],
    )
    def test_malformed_claims(
        self, verifier: TokenVerifier, make_token: TokenFactory, claim: str, value: object
    ) -> None:
        """Test claims of the wrong type."""
        with pytest.raises(ClaimsError):
            verify_id_token(verifier, make_token(**{claim: value}))

    def test_missing_email(self, verifier: TokenVerifier, make_token: TokenFactory) -> None:
        """Test a token without an email claim."""
        with pytest.raises(ClaimsError):
            verify_id_token(verifier, make_token(drop=("email",)))

    def test_skip_expiry_identity(
        self, verifier: TokenVerifier, make_token: TokenFactory, expired_claims: dict[str, int]
    ) -> None:
        """Test an expired token still yields an identity when skipping expiry."""
        identity = verify_id_token(verifier, make_token(**expired_claims), skip_expiry=True)
        assert identity.subject == "user@example.com"
        assert identity.is_expired


class TestImplicitFlow:
    """Tests for the ID token flow."""

    def test_start(self, flow: ImplicitFlow) -> None:
        """Test the provider redirect parameters."""
        from urllib.parse import parse_qs, urlsplit

        request = flow.start("app.example")
        assert request.redirect_url.startswith(f"{ISSUER}/authorize?")
        params = parse_qs(urlsplit(request.redirect_url).query)
        assert params["response_type"] == ["id_token"]
        assert params["client_id"] == [CLIENT_ID]
        assert params["redirect_uri"] == ["https://app.example/auth/callback"]
        assert params["scope"] == ["openid email"]
        assert params["nonce"] == [request.nonce]
        assert request.realm == "https://app.example"
        assert request.return_to == "https://app.example/auth/callback"

    def test_start_fresh_nonce(self, flow: ImplicitFlow) -> None:
        """Test each login attempt gets its own nonce."""
        assert flow.start("app.example").nonce != flow.start("app.example").nonce

    def test_start_endpoint_with_query(self, verifier: TokenVerifier) -> None:
        """Test an authorization endpoint that has a query string."""
        provider = Provider(
            issuer=ISSUER,
            authorization_endpoint=f"{ISSUER}/authorize?tenant=acme",
            jwks_uri=f"{ISSUER}/jwks",
        )
        flow = ImplicitFlow(provider, CLIENT_ID, verifier=verifier)
        assert flow.start("app.example").redirect_url.startswith(f"{ISSUER}/authorize?tenant=acme&")

    def test_complete(self, flow: ImplicitFlow, make_token: TokenFactory) -> None:
        """Test a matching nonce completes the login."""
        identity = flow.complete(make_token(), TOKEN_NONCE)
        assert identity.subject == "user@example.com"

    @pytest.mark.parametrize("cookie", [None, "", "other-nonce"])
    def test_nonce_mismatch(self, flow: ImplicitFlow, make_token: TokenFactory, cookie: str | None) -> None:
        """Test a missing or different nonce cookie."""
        with pytest.raises(NonceMismatchError) as exc_info:
            flow.complete(make_token(), cookie)
        assert exc_info.value.kind == ErrorKind.NONCE_MISMATCH

    def test_token_without_nonce(self, flow: ImplicitFlow, make_token: TokenFactory) -> None:
        """Test a token carrying no nonce."""
        with pytest.raises(NonceMismatchError):
            flow.complete(make_token(drop=("nonce",)), TOKEN_NONCE)

    def test_unverified_email_with_matching_nonce(self, flow: ImplicitFlow, make_token: TokenFactory) -> None:
        """Test an unverified email fails even with a matching nonce."""
        with pytest.raises(UnverifiedEmailError):
            flow.complete(make_token(email_verified=False), TOKEN_NONCE)

    def test_expired_token_rejected_at_login(
        self, flow: ImplicitFlow, make_token: TokenFactory, expired_claims: dict[str, int]
    ) -> None:
        """Test expiry is enforced on the login callback."""
        with pytest.raises(TokenVerificationError):
            flow.complete(make_token(**expired_claims), TOKEN_NONCE)

    def test_relay_page(self, flow: ImplicitFlow) -> None:
        """Test the relay page posts the fragment token to the callback."""
        page = flow.relay_page()
        assert "form.action = '/auth/callback'" in page
        assert "input.name = 'id_token'" in page
        assert "window.location.hash" in page


class TestProviderDiscovery:
    """Tests for provider metadata discovery."""

    @staticmethod
    def _client(status_code: int = 200, json_body: object = None, text: str = "") -> httpx.Client:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == f"{ISSUER}/.well-known/openid-configuration"
            if json_body is not None:
                return httpx.Response(status_code, json=json_body)
            return httpx.Response(status_code, text=text)

        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_discover(self) -> None:
        """Test endpoints are read from the discovery document."""
        document = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{ISSUER}/authorize",
            "jwks_uri": f"{ISSUER}/jwks",
        }
        provider = Provider.discover(ISSUER, http_client=self._client(json_body=document))
        assert provider.authorization_endpoint == f"{ISSUER}/authorize"
        assert provider.jwks_uri == f"{ISSUER}/jwks"

    def test_issuer_mismatch(self) -> None:
        """Test a document naming another issuer."""
        document = {
            "issuer": "https://evil.example",
            "authorization_endpoint": f"{ISSUER}/authorize",
            "jwks_uri": f"{ISSUER}/jwks",
        }
        with pytest.raises(ConfigError) as exc_info:
            Provider.discover(ISSUER, http_client=self._client(json_body=document))
        assert exc_info.value.context["actual"] == "https://evil.example"

    def test_missing_endpoints(self) -> None:
        """Test a document without jwks_uri."""
        document = {"issuer": ISSUER, "authorization_endpoint": f"{ISSUER}/authorize"}
        with pytest.raises(ConfigError, match="jwks_uri"):
            Provider.discover(ISSUER, http_client=self._client(json_body=document))

    def test_http_error(self) -> None:
        """Test a failing discovery endpoint."""
        with pytest.raises(ConfigError, match="HTTP 404"):
            Provider.discover(ISSUER, http_client=self._client(status_code=404, text="not found"))

    def test_invalid_json(self) -> None:
        """Test a discovery document that is not JSON."""
        with pytest.raises(ConfigError):
            Provider.discover(ISSUER, http_client=self._client(text="<html>"))

    def test_invalid_issuer_url(self) -> None:
        """Test a relative issuer URL fails fast."""
        with pytest.raises(ConfigError):
            Provider.discover("accounts.example.com")
