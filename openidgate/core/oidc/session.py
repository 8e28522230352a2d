"""Session cookies for the ID token flow.

The verified ID token is stored as-is in a long-lived cookie and nothing is
kept server-side. Every read verifies the token again, except for expiry:
ID tokens typically expire after an hour, so expiry is only enforced at login
and the cookie lifetime bounds the session afterwards.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from openidgate.core.errors import AuthError, InvalidSessionError, NoSessionError
from openidgate.core.models import VerifiedIdentity
from openidgate.core.oidc.validation import TokenVerifier, verify_id_token

if TYPE_CHECKING:
    from werkzeug.wrappers import Request, Response

logger = logging.getLogger(__name__)

NONCE_COOKIE = "__Host-AuthNonce"
TOKEN_COOKIE = "__Host-AuthToken"

ONE_HOUR = 60 * 60
ONE_YEAR = 365 * 24 * 60 * 60


def set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    """Set a host-only, script-inaccessible, same-site cookie."""
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="Strict",
    )


def delete_cookie(response: Response, name: str) -> None:
    """Expire a cookie immediately in the browser."""
    response.delete_cookie(name, path="/", secure=True, httponly=True, samesite="Strict")


class SessionCodec:
    """Stores, loads and clears the session cookie."""

    def __init__(
        self,
        verifier: TokenVerifier,
        cookie_name: str = TOKEN_COOKIE,
        max_age: int = ONE_YEAR,
    ) -> None:
        self.verifier = verifier
        self.cookie_name = cookie_name
        self.max_age = max_age

    def store(self, response: Response, token: str) -> None:
        """Write the verified ID token to the session cookie."""
        set_cookie(response, self.cookie_name, token, self.max_age)

    def load(self, request: Request) -> VerifiedIdentity:
        """Read and verify the session cookie.

        Raises:
            NoSessionError: If there is no session cookie.
            InvalidSessionError: If the stored token does not verify.
        """
        token = request.cookies.get(self.cookie_name)
        if not token:
            raise NoSessionError("no auth token cookie")
        try:
            return verify_id_token(self.verifier, token, skip_expiry=True)
        except AuthError as e:
            raise InvalidSessionError(e) from e

    def clear(self, response: Response) -> None:
        """Delete the session cookie."""
        delete_cookie(response, self.cookie_name)
