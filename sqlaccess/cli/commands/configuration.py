"""Configuration management CLI commands."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from sqlaccess.cli.utils import console
from sqlaccess.config import create_sample_config, get_config
from sqlaccess.exceptions import ConfigurationError


@click.group(name="config")
def config_group() -> None:
    """Connection configuration management."""
    pass


@config_group.command(name="validate")
@click.argument("config_file", type=click.Path(exists=True))
def validate_command(config_file: str) -> None:
    """Validate configuration file."""
    try:
        configs = get_config(config_file, reload=True)
        console.print(f"[green]Configuration file '{config_file}' is valid[/green]")
        console.print(f"Found {len(configs)} connection(s): {', '.join(configs.keys())}")
    except ConfigurationError as exc:
        console.print(f"[red]Configuration validation failed: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    except Exception as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc


@config_group.command(name="sample")
@click.argument("output_file", type=click.Path())
def sample_command(output_file: str) -> None:
    """Create sample configuration file."""
    try:
        output_path = Path(output_file)
        if output_path.exists():
            click.confirm(f"File '{output_file}' exists. Overwrite?", abort=True)

        create_sample_config(output_path)
        console.print(f"[green]Sample configuration created: {output_file}[/green]")
        console.print("\n[yellow]Next steps:[/yellow]")
        console.print("1. Edit the data source names to match your databases")
        console.print("2. Set required environment variables (e.g., DB_PASSWORD)")
        console.print(f"3. Validate: [cyan]sqlaccess config validate {output_file}[/cyan]")
    except click.Abort:
        raise
    except Exception as exc:
        console.print(f"[red]Error creating sample configuration: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc


@config_group.command(name="show")
@click.pass_context
def show_command(ctx: click.Context) -> None:
    """Show normalized connection configurations with passwords masked."""
    try:
        configs = get_config(ctx.obj.get('config'), reload=True)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if not configs:
        console.print("[yellow]No connections configured; every name uses the default group[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Driver", style="green")
    table.add_column("Data Sources")
    table.add_column("Mapper", style="blue")
    table.add_column("Pool (idle/open)")
    table.add_column("Lifetime")
    table.add_column("Show SQL")
    table.add_column("Session ID")

    for name, config in configs.items():
        table.add_row(
            name,
            config.driver,
            "\n".join(config.masked()),
            config.mapper,
            f"{config.max_idle}/{config.max_open}",
            f"{config.max_lifetime}s",
            "yes" if config.show_sql else "no",
            "yes" if config.enable_session_id else "no",
        )

    console.print(table)
