"""Flask application factory."""

from __future__ import annotations

import logging
import ssl
from pathlib import Path
from typing import Any

from flask import Flask, g

from openidgate.core.config import AppConfig
from openidgate.core.oidc.flows import ImplicitFlow
from openidgate.core.oidc.provider import Provider
from openidgate.core.oidc.validation import TokenVerifier
from openidgate.core.openid20.client import OpenID20Client
from openidgate.web.handlers import create_oidc_blueprint, create_openid20_blueprint, require_session

logger = logging.getLogger(__name__)


def build_flow(app_config: AppConfig) -> ImplicitFlow | None:
    """Discover the OIDC provider and build the ID token flow, if configured.

    Raises:
        ConfigError: If discovery fails.
    """
    settings = app_config.oidc
    if not settings.enabled:
        return None
    provider = Provider.discover(settings.issuer)
    logger.info(f"Discovered OIDC provider {provider.issuer}")
    verifier = TokenVerifier.for_provider(
        provider, settings.client_id, clock_skew_seconds=settings.clock_skew_seconds
    )
    return ImplicitFlow(provider, settings.client_id, verifier=verifier)


def build_openid20_client(app_config: AppConfig) -> OpenID20Client | None:
    """Build the OpenID 2.0 client, if configured."""
    settings = app_config.openid20
    if not settings.enabled:
        return None
    return OpenID20Client(settings.endpoint, settings.return_to, timeout=settings.timeout)


def create_app(
    app_config: AppConfig | None = None,
    flow: ImplicitFlow | None = None,
    openid20_client: OpenID20Client | None = None,
    config: dict[str, Any] | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        app_config: Application configuration. Used to build the flow and
            client when they are not passed in.
        flow: ID token flow to serve.
        openid20_client: OpenID 2.0 client to serve.
        config: Optional Flask configuration overrides.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)
    if config:
        app.config.from_mapping(config)

    if app_config is not None:
        app_config.validate()
        flow = flow or build_flow(app_config)
        openid20_client = openid20_client or build_openid20_client(app_config)

    if flow is not None:
        app.register_blueprint(create_oidc_blueprint(flow))

        @app.route("/")
        @require_session(flow)
        def index() -> str:
            """Greet the signed-in user."""
            return f"Hello {g.identity.subject}"

    if openid20_client is not None:
        app.register_blueprint(create_openid20_blueprint(openid20_client))

    @app.route("/health")
    def health() -> dict[str, str]:
        """Health check endpoint (unauthenticated)."""
        return {"status": "healthy"}

    return app


def create_ssl_context(cert_path: Path, key_path: Path) -> ssl.SSLContext:
    """Create an SSL context for HTTPS.

    Args:
        cert_path: Path to the certificate file (PEM format).
        key_path: Path to the private key file (PEM format).
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_path), str(key_path))
    return context


def run_server(
    app_config: AppConfig,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the Flask development server over HTTPS.

    Uses a throwaway self-signed certificate when none is configured, since
    the auth cookies are only sent over HTTPS.
    """
    server = app_config.server
    app = create_app(app_config)
    app.debug = server.debug

    ssl_context: ssl.SSLContext | str
    if server.cert_path and server.key_path:
        ssl_context = create_ssl_context(server.cert_path, server.key_path)
    else:
        ssl_context = "adhoc"
        print("Using an ad-hoc self-signed TLS certificate.")

    server_host = host or server.host
    server_port = port or server.port
    print("Starting openidgate server...")
    print(f"  URL: https://{server_host}:{server_port}")

    app.run(host=server_host, port=server_port, ssl_context=ssl_context)
