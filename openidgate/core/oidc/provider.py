"""OpenID Connect provider metadata discovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from openidgate.core.errors import ConfigError
from openidgate.core.logging import LoggingClient, get_protocol_logger
from openidgate.core.nonce import compute_realm

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


@dataclass(frozen=True)
class Provider:
    """Provider endpoints needed by the ID token flow.

    Build one with ``Provider.discover`` at application start and pass it to
    the flow and token verifier that need it.
    """

    issuer: str
    authorization_endpoint: str
    jwks_uri: str
    raw_config: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def discover(
        cls,
        issuer: str,
        http_client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> Provider:
        """Fetch provider metadata from the issuer's well-known endpoint.

        Args:
            issuer: Issuer URL, e.g. ``https://accounts.google.com``.
            http_client: Optional client (defaults to a logging client).
            timeout: Request timeout in seconds.

        Returns:
            Provider with discovered endpoints.

        Raises:
            ConfigError: If discovery fails or the metadata is inconsistent.
        """
        compute_realm(issuer)
        url = issuer.rstrip("/") + WELL_KNOWN_PATH
        logger.debug(f"Fetching OIDC discovery document from {url}")

        client = http_client or LoggingClient(protocol_logger=get_protocol_logger(), timeout=timeout)
        try:
            response = client.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ConfigError(
                f"HTTP {e.response.status_code} fetching discovery document", url=url
            ) from e
        except httpx.HTTPError as e:
            raise ConfigError(f"Error fetching discovery document: {e}", url=url) from e
        except ValueError as e:
            raise ConfigError(f"Discovery document is not valid JSON: {e}", url=url) from e
        finally:
            if http_client is None:
                client.close()

        return cls.from_metadata(issuer, data)

    @classmethod
    def from_metadata(cls, issuer: str, data: Any) -> Provider:
        """Build a Provider from a parsed discovery document.

        Raises:
            ConfigError: If required fields are missing or the issuer differs.
        """
        if not isinstance(data, dict):
            raise ConfigError("Discovery document must be a JSON object")

        if data.get("issuer") != issuer:
            raise ConfigError(
                "Issuer did not match the issuer returned by provider",
                expected=issuer,
                actual=data.get("issuer"),
            )

        missing = [k for k in ("authorization_endpoint", "jwks_uri") if not data.get(k)]
        if missing:
            raise ConfigError(f"Discovery document missing: {', '.join(missing)}")

        return cls(
            issuer=issuer,
            authorization_endpoint=data["authorization_endpoint"],
            jwks_uri=data["jwks_uri"],
            raw_config=data,
        )
