"""CLI entry point for openidgate."""

import click

from openidgate import __version__
from openidgate.cli import config as config_commands
from openidgate.cli import serve as serve_commands


@click.group()
@click.version_option(version=__version__, prog_name="openidgate")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """openidgate - OpenID login without storing passwords."""
    ctx.ensure_object(dict)


@cli.command("redirect-url")
@click.option("--endpoint", "-e", required=True, help="OpenID 2.0 provider login endpoint")
@click.option("--return-to", "-r", required=True, help="Absolute callback URL of the application")
def redirect_url(endpoint: str, return_to: str) -> None:
    """Print the OpenID 2.0 login redirect URL.

    Example:

        openidgate redirect-url -e https://steamcommunity.com/openid/login \\
            -r https://localhost:8443/openid/callback
    """
    from openidgate.core.errors import ConfigError
    from openidgate.core.openid20.client import OpenID20Client

    try:
        client = OpenID20Client(endpoint, return_to)
    except ConfigError as e:
        raise click.ClickException(e.message) from None
    click.echo(client.redirect_url())


cli.add_command(config_commands.config)
cli.add_command(serve_commands.serve)
