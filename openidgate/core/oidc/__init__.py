"""OpenID Connect ID token flow."""

from openidgate.core.oidc.flows import CALLBACK_PATH, ImplicitFlow
from openidgate.core.oidc.provider import Provider
from openidgate.core.oidc.session import NONCE_COOKIE, TOKEN_COOKIE, SessionCodec
from openidgate.core.oidc.validation import (
    SUPPORTED_ALGORITHMS,
    JWKSManager,
    TokenVerifier,
    verify_id_token,
)

__all__ = [
    # Flows
    "CALLBACK_PATH",
    "ImplicitFlow",
    # Provider
    "Provider",
    # Session
    "NONCE_COOKIE",
    "SessionCodec",
    "TOKEN_COOKIE",
    # Validation
    "JWKSManager",
    "SUPPORTED_ALGORITHMS",
    "TokenVerifier",
    "verify_id_token",
]
