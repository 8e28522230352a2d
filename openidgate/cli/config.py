"""Configuration CLI commands."""

import json
from pathlib import Path

import click
import yaml


@click.group()
def config() -> None:
    """Manage openidgate configuration."""
    pass


@config.command("show")
@click.option(
    "--config-file",
    "-c",
    type=click.Path(path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Config file to read (default: ~/.openidgate/config.yaml)",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def show(config_file: Path | None, output_json: bool) -> None:
    """Show the effective configuration (file + environment)."""
    from openidgate.core.config import load_config
    from openidgate.core.errors import ConfigError

    try:
        app_config = load_config(config_file)
        app_config.validate()
    except ConfigError as e:
        raise click.ClickException(e.message) from None

    data = app_config.to_dict()
    if output_json:
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, default_flow_style=False).rstrip())


@config.command("init")
@click.option(
    "--config-file",
    "-c",
    type=click.Path(path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Where to write the file (default: ~/.openidgate/config.yaml)",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def init(config_file: Path | None, force: bool) -> None:
    """Write a commented default config file."""
    from openidgate.core.config import DEFAULT_CONFIG_FILE, get_default_config_yaml

    path = config_file or DEFAULT_CONFIG_FILE
    if path.exists() and not force:
        click.echo(f"Config file already exists: {path}")
        click.echo("Use --force to overwrite it.")
        return

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_default_config_yaml())
    click.echo(f"Config file written to: {path}")
