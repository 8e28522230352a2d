"""Server CLI commands."""

from pathlib import Path

import click


@click.command()
@click.option(
    "--host",
    "-h",
    default=None,
    help="Host to bind to (default: from config or 127.0.0.1)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (default: from config or 8443)",
)
@click.option(
    "--cert",
    type=click.Path(exists=True, path_type=Path),  # type: ignore[type-var]
    help="Path to TLS certificate (PEM format)",
)
@click.option(
    "--key",
    type=click.Path(exists=True, path_type=Path),  # type: ignore[type-var]
    help="Path to TLS private key (PEM format)",
)
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "INFO", "DEBUG", "TRACE"], case_sensitive=False),
    default=None,
    help="Protocol log level (default: from config or INFO)",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode",
)
def serve(
    host: str | None,
    port: int | None,
    cert: Path | None,
    key: Path | None,
    log_level: str | None,
    debug: bool,
) -> None:
    """Start the demo web server.

    The server always runs over HTTPS, because the auth cookies are Secure.
    Without --cert/--key an ad-hoc self-signed certificate is used.

    Examples:

        # Start with settings from ~/.openidgate/config.yaml
        openidgate serve

        # Use custom certificate
        openidgate serve --cert /path/to/cert.pem --key /path/to/key.pem
    """
    from openidgate.app import run_server
    from openidgate.core.config import load_config
    from openidgate.core.errors import ConfigError
    from openidgate.core.logging import configure_logging

    if cert and not key:
        raise click.ClickException("--key is required when --cert is provided")
    if key and not cert:
        raise click.ClickException("--cert is required when --key is provided")

    try:
        config = load_config()
    except ConfigError as e:
        raise click.ClickException(e.message) from None

    if cert and key:
        config.server.cert_path = cert
        config.server.key_path = key
    if debug:
        config.server.debug = True
    if log_level:
        config.log_level = log_level

    configure_logging(config.log_level)

    if not config.oidc.enabled and not config.openid20.enabled:
        raise click.ClickException(
            "No provider configured. Set oidc.issuer/oidc.client_id or "
            "openid20.endpoint/openid20.return_to in the config file."
        )

    try:
        run_server(app_config=config, host=host, port=port)
    except ConfigError as e:
        raise click.ClickException(e.message) from None
