"""OpenID Connect ID token flow.

The ID token flow is used because the token carries the user email in its
claims, so no further requests to the provider are needed.

1. ``start`` builds the provider redirect with a fresh nonce. The caller sets
   the nonce cookie and deletes any previous session cookie.
2. The provider returns the ID token in the URL fragment, which browsers never
   send to servers, so the callback GET serves ``RELAY_PAGE`` to POST it back.
3. ``complete`` verifies the token, including expiry, and compares its nonce
   with the nonce cookie to protect against login CSRF.
4. The caller stores the token in the session cookie (see ``SessionCodec``).
"""

from __future__ import annotations

import hmac
import logging

from openidgate.core.errors import AuthError, NonceMismatchError
from openidgate.core.models import AuthRequest, VerifiedIdentity
from openidgate.core.nonce import append_query, compute_realm, generate_nonce
from openidgate.core.oidc.provider import Provider
from openidgate.core.oidc.validation import TokenVerifier, verify_id_token
from openidgate.core.oidc.session import SessionCodec

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/auth/callback"
DEFAULT_SCOPE = "openid email"

RELAY_PAGE_TEMPLATE = """<html><body><script>
let hash = window.location.hash.substr(1);
let fragments = hash.split('&').reduce((fragments, e) => {
  let parts = e.split('=');
  fragments[parts[0]] = decodeURIComponent(parts[1] || '');
  return fragments;
}, {});
let form = document.createElement('form');
form.method = 'POST';
form.action = '%(action)s';
let input = document.createElement('input');
input.type = 'hidden';
input.name = 'id_token';
input.value = fragments['id_token'] || '';
form.appendChild(input);
document.body.appendChild(form);
form.submit();
</script></body></html>"""


class ImplicitFlow:
    """ID token flow for one provider and client."""

    def __init__(
        self,
        provider: Provider,
        client_id: str,
        verifier: TokenVerifier | None = None,
        callback_path: str = CALLBACK_PATH,
        scope: str = DEFAULT_SCOPE,
    ) -> None:
        """Initialize the flow.

        Args:
            provider: Discovered provider metadata.
            client_id: OAuth client ID registered at the provider.
            verifier: Token verifier (defaults to the provider JWKS).
            callback_path: Path of the callback on this application.
            scope: Requested scopes.
        """
        self.provider = provider
        self.client_id = client_id
        self.verifier = verifier or TokenVerifier.for_provider(provider, client_id)
        self.callback_path = callback_path
        self.scope = scope
        self.session = SessionCodec(self.verifier)

    def callback_url(self, host: str) -> str:
        """Return the absolute HTTPS callback URL for a host."""
        return f"https://{host}{self.callback_path}"

    def start(self, host: str) -> AuthRequest:
        """Build the provider redirect for a login attempt.

        Args:
            host: Host (and port) the browser used to reach this application.

        Raises:
            ConfigError: If the host does not form a valid URL.
        """
        return_to = self.callback_url(host)
        realm = compute_realm(return_to)
        nonce = generate_nonce()
        params = {
            "response_type": "id_token",
            "client_id": self.client_id,
            "redirect_uri": return_to,
            "scope": self.scope,
            "nonce": nonce,
        }
        return AuthRequest(
            endpoint=self.provider.authorization_endpoint,
            return_to=return_to,
            realm=realm,
            redirect_url=append_query(self.provider.authorization_endpoint, params),
            nonce=nonce,
        )

    def relay_page(self) -> str:
        """HTML page that POSTs the ID token from the fragment to the callback."""
        return RELAY_PAGE_TEMPLATE % {"action": self.callback_path}

    def complete(self, id_token: str, nonce_cookie: str | None) -> VerifiedIdentity:
        """Verify the ID token posted to the callback.

        Args:
            id_token: Token relayed from the URL fragment.
            nonce_cookie: Value of the nonce cookie set by ``start``.

        Raises:
            TokenVerificationError, ClaimsError, UnverifiedEmailError: If the
                token does not verify.
            NonceMismatchError: If the token nonce differs from the cookie.
        """
        try:
            identity = verify_id_token(self.verifier, id_token, skip_expiry=False)
            if not nonce_cookie or not identity.nonce or not hmac.compare_digest(
                identity.nonce.encode(), nonce_cookie.encode()
            ):
                raise NonceMismatchError(
                    "Invalid nonce", cookie_present=bool(nonce_cookie), token_nonce_present=bool(identity.nonce)
                )
        except AuthError as e:
            logger.warning(f"ID token rejected ({e.kind}): {e.message}")
            raise

        logger.info(f"ID token verified for {identity.subject}")
        return identity
