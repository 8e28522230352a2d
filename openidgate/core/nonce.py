"""Nonce generation and URL helpers shared by both protocol variants."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode, urlsplit, urlunsplit

from openidgate.core.errors import ConfigError, NonceError

# Anti-replay nonce size (160 bits)
NONCE_BYTES = 20

# OpenID 2.0 response nonces start with an RFC 3339 UTC timestamp
RESPONSE_NONCE_TIMESTAMP_LENGTH = 20
RESPONSE_NONCE_MAX_LENGTH = 256
RESPONSE_NONCE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
RESPONSE_NONCE_MAX_AGE = timedelta(minutes=1)


def generate_nonce(num_bytes: int = NONCE_BYTES) -> str:
    """Generate a hex-encoded nonce from a cryptographically secure source.

    Args:
        num_bytes: Number of random bytes (default 20).

    Returns:
        Hex string of ``2 * num_bytes`` characters.
    """
    return secrets.token_hex(num_bytes)


def compute_realm(url: str) -> str:
    """Return the scheme and host (with port) of a URL.

    Raises:
        ConfigError: If the URL has no scheme or host.
    """
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise ConfigError(f"Invalid URL {url!r}: {e}", url=url) from e
    if not parts.scheme or not parts.netloc:
        raise ConfigError(f"URL must be absolute: {url!r}", url=url)
    return urlunsplit((parts.scheme, parts.netloc, "", "", ""))


def append_query(endpoint: str, params: list[tuple[str, str]] | dict[str, str]) -> str:
    """Append encoded query parameters to an endpoint.

    Uses ``&`` when the endpoint already carries a query string.
    """
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode(params)}"


def parse_response_nonce(nonce: str) -> datetime:
    """Parse the timestamp prefix of an OpenID 2.0 response nonce.

    Raises:
        NonceError: If the nonce has an invalid length or timestamp.
    """
    if not RESPONSE_NONCE_TIMESTAMP_LENGTH <= len(nonce) <= RESPONSE_NONCE_MAX_LENGTH:
        raise NonceError("invalid nonce", nonce=nonce)
    stamp = nonce[:RESPONSE_NONCE_TIMESTAMP_LENGTH]
    try:
        parsed = datetime.strptime(stamp, RESPONSE_NONCE_TIMESTAMP_FORMAT)
    except ValueError as e:
        raise NonceError(f"invalid nonce timestamp: {stamp!r}", nonce=nonce) from e
    return parsed.replace(tzinfo=UTC)


def check_response_nonce(
    nonce: str,
    now: datetime | None = None,
    max_age: timedelta = RESPONSE_NONCE_MAX_AGE,
) -> datetime:
    """Require a response nonce to be no older than ``max_age``.

    Reuse within the window is not tracked.

    Returns:
        The parsed nonce timestamp.

    Raises:
        NonceError: If the nonce is malformed or too old.
    """
    issued_at = parse_response_nonce(nonce)
    now = now or datetime.now(UTC)
    if issued_at + max_age < now:
        raise NonceError(f"nonce too old: {issued_at.isoformat()}", nonce=nonce)
    return issued_at
