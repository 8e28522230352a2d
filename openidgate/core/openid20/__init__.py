"""OpenID 2.0 indirect flow."""

from openidgate.core.openid20.client import IDENTIFIER_SELECT, NONCE_PARAM, OpenID20Client, build_redirect
from openidgate.core.openid20.verification import (
    CHECK_AUTHENTICATION_MODE,
    OPENID_NS,
    verify_nonce,
    verify_return_to,
    verify_signature,
    verify_signed_fields,
)

__all__ = [
    "CHECK_AUTHENTICATION_MODE",
    "IDENTIFIER_SELECT",
    "NONCE_PARAM",
    "OPENID_NS",
    "OpenID20Client",
    "build_redirect",
    "verify_nonce",
    "verify_return_to",
    "verify_signature",
    "verify_signed_fields",
]
