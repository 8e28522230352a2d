"""OpenID 2.0 relying party.

OpenID 2.0 is obsolete and replaced by OpenID Connect, but some providers
still use it (e.g. Steam). See ``openidgate.core.openid20.verification`` for
the checks applied to positive assertions and the simplifications made.

Login CSRF: every redirect appends a fresh nonce to ``return_to``. The caller
keeps the same nonce in a cookie and ``complete`` compares the two after the
return URL check has bound the echoed parameter to the signed ``return_to``.
"""

from __future__ import annotations

import hmac
import logging
from datetime import UTC, datetime

import httpx

from openidgate.core.errors import AuthError, NonceMismatchError
from openidgate.core.logging import LoggingClient, ProtocolLogger, get_protocol_logger
from openidgate.core.models import AuthRequest, VerifiedIdentity
from openidgate.core.nonce import append_query, compute_realm, generate_nonce
from openidgate.core.openid20.verification import (
    OPENID_NS,
    AssertionParams,
    get_param,
    verify_nonce,
    verify_return_to,
    verify_signature,
    verify_signed_fields,
)

logger = logging.getLogger(__name__)

IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"
SREG_NS = "http://openid.net/extensions/sreg/1.1"

# Query parameter of return_to carrying the login nonce
NONCE_PARAM = "nonce"


def build_redirect(endpoint: str, return_to: str, nonce: str | None = None) -> AuthRequest:
    """Build the OpenID 2.0 login redirect for a provider endpoint.

    A fresh nonce is appended to ``return_to`` as the ``nonce`` query
    parameter; the provider echoes it back on the callback.

    Args:
        endpoint: Provider login endpoint.
        return_to: Absolute callback URL on this application.
        nonce: Nonce to bind, generated when not given.

    Raises:
        ConfigError: If ``return_to`` is not an absolute URL.
    """
    realm = compute_realm(return_to)
    nonce = nonce or generate_nonce()
    return_to = append_query(return_to, {NONCE_PARAM: nonce})
    params = [
        ("openid.ns", OPENID_NS),
        ("openid.mode", "checkid_setup"),
        ("openid.return_to", return_to),
        ("openid.realm", realm),
        ("openid.claimed_id", IDENTIFIER_SELECT),
        ("openid.identity", IDENTIFIER_SELECT),
        ("openid.ns.sreg", SREG_NS),
    ]
    return AuthRequest(
        endpoint=endpoint,
        return_to=return_to,
        realm=realm,
        redirect_url=append_query(endpoint, params),
        nonce=nonce,
    )


class OpenID20Client:
    """Builds login redirects and verifies assertions for one provider."""

    def __init__(
        self,
        endpoint: str,
        return_to: str,
        http_client: httpx.Client | None = None,
        protocol_logger: ProtocolLogger | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Provider login endpoint.
            return_to: Absolute callback URL on this application.
            http_client: Client used for check_authentication requests.
            protocol_logger: Protocol logger for the default HTTP client.
            timeout: Default timeout for check_authentication requests.

        Raises:
            ConfigError: If either URL is not absolute.
        """
        compute_realm(endpoint)
        self.endpoint = endpoint
        self.return_to = return_to
        self.realm = compute_realm(return_to)
        self.timeout = timeout
        self._protocol_logger = protocol_logger or get_protocol_logger()
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.Client:
        """Get or create HTTP client with logging."""
        if self._http_client is None:
            self._http_client = LoggingClient(
                protocol_logger=self._protocol_logger,
                timeout=self.timeout,
            )
        return self._http_client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def create_request(self) -> AuthRequest:
        """Build the redirect to the provider login page."""
        return build_redirect(self.endpoint, self.return_to)

    def redirect_url(self) -> str:
        """Return the URL to send the browser to for login."""
        return self.create_request().redirect_url

    def verify(
        self,
        params: AssertionParams,
        request_uri: str,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> VerifiedIdentity:
        """Verify a positive assertion and return the claimed identifier.

        Args:
            params: Callback query parameters.
            request_uri: Path and query string the browser requested.
            now: Current time, for nonce freshness.
            timeout: Deadline for the check_authentication request.

        Returns:
            VerifiedIdentity whose subject is ``openid.claimed_id``.

        Raises:
            AuthError: The first failing check, see verification module.
        """
        try:
            verify_signed_fields(params)
            verify_signature(params, self.http_client, timeout=timeout)
            verify_return_to(self.realm + request_uri, params)
            verify_nonce(params, now=now)
        except AuthError as e:
            logger.warning(f"OpenID 2.0 assertion rejected ({e.kind}): {e.message}")
            raise

        claimed_id = get_param(params, "openid.claimed_id")
        logger.info(f"OpenID 2.0 assertion verified for {claimed_id}")
        return VerifiedIdentity(subject=claimed_id, verified_at=now or datetime.now(UTC))

    def complete(
        self,
        params: AssertionParams,
        request_uri: str,
        nonce_cookie: str | None,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> VerifiedIdentity:
        """Verify a callback and check it belongs to this browser's login.

        Args:
            params: Callback query parameters.
            request_uri: Path and query string the browser requested.
            nonce_cookie: Value of the nonce cookie set at login.
            now: Current time, for nonce freshness.
            timeout: Deadline for the check_authentication request.

        Raises:
            AuthError: The first failing check of ``verify``.
            NonceMismatchError: If the echoed nonce differs from the cookie.
        """
        identity = self.verify(params, request_uri, now=now, timeout=timeout)

        echoed = get_param(params, NONCE_PARAM)
        if not nonce_cookie or not echoed or not hmac.compare_digest(
            echoed.encode(), nonce_cookie.encode()
        ):
            error = NonceMismatchError(
                "Invalid nonce", cookie_present=bool(nonce_cookie), echoed_present=bool(echoed)
            )
            logger.warning(f"OpenID 2.0 login rejected ({error.kind}): {error.message}")
            raise error
        return identity
