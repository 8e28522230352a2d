"""ID token verification.

``TokenVerifier`` checks signature, issuer, audience and expiry with PyJWT.
``verify_id_token`` builds on it and requires a provider-verified email.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import jwt
from jwt import PyJWKClient

from openidgate.core.errors import ClaimsError, TokenVerificationError, UnverifiedEmailError
from openidgate.core.models import VerifiedIdentity
from openidgate.core.oidc.provider import Provider

logger = logging.getLogger(__name__)

# Asymmetric algorithms only - symmetric algorithms would require a shared secret
SUPPORTED_ALGORITHMS = (
    "RS256",
    "RS384",
    "RS512",
    "ES256",
    "ES384",
    "ES512",
    "PS256",
    "PS384",
    "PS512",
    "EdDSA",
)


class JWKSManager:
    """Manages fetching and caching JWKS from a provider."""

    def __init__(self, jwks_uri: str, timeout: float = 10.0) -> None:
        self.jwks_uri = jwks_uri
        self.timeout = timeout
        self._jwks_client: PyJWKClient | None = None

    def get_signing_key(self, token: str) -> Any:
        """Get the signing key for a token from JWKS.

        Raises:
            PyJWKClientError: If key cannot be found.
        """
        if not self._jwks_client:
            self._jwks_client = PyJWKClient(self.jwks_uri, timeout=int(self.timeout))
        return self._jwks_client.get_signing_key_from_jwt(token).key


class TokenVerifier:
    """Verifies signed ID tokens for one issuer and audience."""

    def __init__(
        self,
        issuer: str,
        audience: str,
        jwks_uri: str | None = None,
        signing_key: Any = None,
        clock_skew_seconds: int = 120,
    ) -> None:
        """Initialize the token verifier.

        Args:
            issuer: Expected issuer (iss claim).
            audience: Expected audience (aud claim) - the client ID.
            jwks_uri: URI to fetch signing keys from.
            signing_key: Fixed public key, used instead of JWKS when given.
            clock_skew_seconds: Allowed clock skew for time-based validation.
        """
        if not jwks_uri and signing_key is None:
            raise ValueError("Either jwks_uri or signing_key is required")
        self.issuer = issuer
        self.audience = audience
        self.clock_skew_seconds = clock_skew_seconds
        self._signing_key = signing_key
        self._jwks_manager = JWKSManager(jwks_uri) if jwks_uri and signing_key is None else None

    @classmethod
    def for_provider(cls, provider: Provider, client_id: str, clock_skew_seconds: int = 120) -> TokenVerifier:
        """Create a verifier using the provider's discovered JWKS."""
        return cls(
            issuer=provider.issuer,
            audience=client_id,
            jwks_uri=provider.jwks_uri,
            clock_skew_seconds=clock_skew_seconds,
        )

    def _get_key(self, token: str) -> Any:
        if self._jwks_manager is None:
            return self._signing_key
        return self._jwks_manager.get_signing_key(token)

    def verify(self, token: str, skip_expiry: bool = False) -> dict[str, Any]:
        """Verify a token and return its claims.

        Args:
            token: Compact JWT.
            skip_expiry: Do not reject expired tokens.

        Raises:
            TokenVerificationError: If any check fails.
        """
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self._get_key(token),
                algorithms=list(SUPPORTED_ALGORITHMS),
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.clock_skew_seconds,
                options={
                    "verify_exp": not skip_expiry,
                    "require": ["iss", "aud", "exp"],
                },
            )
        except jwt.PyJWTError as e:
            raise TokenVerificationError(f"{type(e).__name__}: {e}") from e
        return claims


def verify_id_token(verifier: TokenVerifier, token: str, skip_expiry: bool = False) -> VerifiedIdentity:
    """Verify an ID token and extract the verified email.

    The returned identity carries the token nonce for the caller to compare
    against the nonce cookie.

    Args:
        verifier: Token verifier for the provider.
        token: Compact JWT.
        skip_expiry: Skip the expiry check. Used when re-reading a session
            cookie, since expiry was enforced at login.

    Raises:
        TokenVerificationError: If signature, issuer, audience or expiry fail.
        ClaimsError: If the email claims cannot be decoded.
        UnverifiedEmailError: If the provider has not verified the email.
    """
    claims = verifier.verify(token, skip_expiry=skip_expiry)

    email = claims.get("email")
    email_verified = claims.get("email_verified", False)
    exp = claims.get("exp")
    nonce = claims.get("nonce")
    if not isinstance(email, str) or not email:
        raise ClaimsError("claims: email missing or not a string", claim="email")
    if not isinstance(email_verified, bool):
        raise ClaimsError("claims: email_verified is not a boolean", claim="email_verified")
    if nonce is not None and not isinstance(nonce, str):
        raise ClaimsError("claims: nonce is not a string", claim="nonce")
    if not isinstance(exp, int | float) or isinstance(exp, bool):
        raise ClaimsError("claims: exp is not a number", claim="exp")

    if not email_verified:
        raise UnverifiedEmailError(email)

    return VerifiedIdentity(
        subject=email,
        verified_at=datetime.now(UTC),
        expires_at=datetime.fromtimestamp(exp, tz=UTC),
        nonce=nonce,
    )
