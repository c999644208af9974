"""Main CLI entry point for sqlaccess."""

from __future__ import annotations

import click

from sqlaccess import __version__
from sqlaccess.cli.commands import register_commands
from sqlaccess.cli.commands.configuration import config_group
from sqlaccess.cli.commands.database import db_group
from sqlaccess.cli.utils import configure_logging, console
from sqlaccess.config import EnvironmentSettings


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, config: str, verbose: bool) -> None:
    """sqlaccess - master/slave connection groups and transactions."""
    ctx.ensure_object(dict)
    ctx.obj.update({"config": config, "verbose": verbose})

    settings = EnvironmentSettings()
    configure_logging("DEBUG" if verbose or settings.debug else settings.log_level)

    if version:
        console.print(f"sqlaccess v{__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


COMMAND_REGISTRY = [
    config_group,
    db_group,
]

register_commands(cli, COMMAND_REGISTRY)


if __name__ == "__main__":
    cli()
