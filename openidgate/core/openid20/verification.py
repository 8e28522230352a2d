"""OpenID 2.0 positive assertion verification.

An assertion is accepted only when all of these checks pass, in order:

1. Signed fields: the fields that protect the assertion are covered by
   ``openid.signed``.
2. Signature: the provider confirms the assertion through a direct
   ``check_authentication`` request.
3. Return URL: the URL the browser hit matches ``openid.return_to``.
4. Nonce: ``openid.response_nonce`` is at most one minute old.

Simplifications:

- Discovered information is not verified. The ``check_authentication``
  request goes to ``openid.op_endpoint`` as found in the response, and only
  ``openid.claimed_id`` is used. A malicious provider could lie during
  discovery anyway, and this avoids extra discovery requests and caching.
- Nonce reuse is not tracked. That requires server-side storage; nonces expire
  after one minute and replaying an assertion only matters if the return URL
  leaks.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from urllib.parse import parse_qs, unquote, urlsplit

import httpx

from openidgate.core.errors import (
    AssertionRejectedError,
    ReturnURLMismatchError,
    UnsignedFieldError,
    VerificationRequestError,
)
from openidgate.core.nonce import check_response_nonce

logger = logging.getLogger(__name__)

OPENID_NS = "http://specs.openid.net/auth/2.0"
CHECK_AUTHENTICATION_MODE = "check_authentication"

# Fields that must always be covered by the signature
REQUIRED_SIGNED_FIELDS = ("op_endpoint", "return_to", "response_nonce", "assoc_handle")
# Fields that must be covered by the signature when present
OPTIONAL_SIGNED_FIELDS = ("claimed_id", "identity")

# Callback parameters: every key maps to one value or a list of values
AssertionParams = Mapping[str, str | Sequence[str]]


def iter_params(params: AssertionParams) -> Iterable[tuple[str, str]]:
    """Yield every (key, value) pair of a possibly multi-valued mapping."""
    for key, value in params.items():
        if isinstance(value, str):
            yield key, value
        else:
            for item in value:
                yield key, item


def get_param(params: AssertionParams, key: str) -> str:
    """Return the first value of a parameter, or an empty string."""
    value = params.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value[0] if value else ""


def verify_signed_fields(params: AssertionParams) -> None:
    """Check that every security-relevant field is signed.

    Raises:
        UnsignedFieldError: Naming the first field that is not signed.
    """
    signed = set(get_param(params, "openid.signed").split(","))
    required = list(REQUIRED_SIGNED_FIELDS)
    required.extend(f for f in OPTIONAL_SIGNED_FIELDS if get_param(params, f"openid.{f}"))
    for name in required:
        if name not in signed:
            raise UnsignedFieldError(name)


def verify_signature(
    params: AssertionParams,
    client: httpx.Client,
    timeout: float | None = None,
) -> None:
    """Ask the provider to confirm the assertion signature.

    All parameters are sent back with ``openid.mode`` switched to
    ``check_authentication``.

    Raises:
        VerificationRequestError: If the request fails or times out.
        AssertionRejectedError: If the provider does not confirm the assertion.
    """
    endpoint = get_param(params, "openid.op_endpoint")
    if not endpoint:
        raise VerificationRequestError("openid.op_endpoint is missing")

    data: dict[str, list[str]] = {"openid.mode": [CHECK_AUTHENTICATION_MODE]}
    for key, value in iter_params(params):
        if key != "openid.mode":
            data.setdefault(key, []).append(value)

    kwargs = {"timeout": timeout} if timeout is not None else {}
    try:
        response = client.post(endpoint, data=data, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise VerificationRequestError(
            f"check_authentication returned HTTP {e.response.status_code}",
            endpoint=endpoint,
            status=e.response.status_code,
        ) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise VerificationRequestError(
            f"check_authentication request failed: {e}", endpoint=endpoint
        ) from e

    lines = {line.rstrip("\r") for line in response.text.split("\n")}
    is_valid = "is_valid:true" in lines
    ns_valid = f"ns:{OPENID_NS}" in lines
    if not is_valid or not ns_valid:
        raise AssertionRejectedError(
            "could not verify assertion", endpoint=endpoint, is_valid=is_valid, ns_valid=ns_valid
        )


def verify_return_to(current_url: str, params: AssertionParams) -> None:
    """Check the observed callback URL against ``openid.return_to``.

    Scheme, host and path must match, and every query parameter of
    ``return_to`` must be present with the same value in ``params``. Paths are
    compared percent-decoded.

    Raises:
        ReturnURLMismatchError: On the first mismatching component.
    """
    try:
        current = urlsplit(current_url)
        return_to = urlsplit(get_param(params, "openid.return_to"))
    except ValueError as e:
        raise ReturnURLMismatchError("url", get_param(params, "openid.return_to"), current_url) from e

    for component in ("scheme", "netloc"):
        want = getattr(return_to, component)
        got = getattr(current, component)
        if want != got:
            raise ReturnURLMismatchError(component, want, got)

    if unquote(return_to.path) != unquote(current.path):
        raise ReturnURLMismatchError("path", return_to.path, current.path)

    for key, values in parse_qs(return_to.query, keep_blank_values=True).items():
        want = values[0]
        got = get_param(params, key)
        if got != want:
            raise ReturnURLMismatchError(f"query parameter {key}", want, got)


def verify_nonce(params: AssertionParams, now: datetime | None = None) -> datetime:
    """Check freshness of ``openid.response_nonce``.

    Raises:
        NonceError: If the nonce is malformed or older than one minute.
    """
    return check_response_nonce(get_param(params, "openid.response_nonce"), now=now)
