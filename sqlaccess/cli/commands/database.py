"""Database connection CLI commands."""

from __future__ import annotations

from typing import Optional

import click
from rich.markup import escape
from rich.table import Table
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sqlaccess.cli.utils import console
from sqlaccess.config import get_config
from sqlaccess.context import ExecutionContext
from sqlaccess.db import ConnectionRegistry
from sqlaccess.exceptions import ConfigurationError, SQLAccessError


@click.group(name="db")
@click.pass_context
def db_group(ctx: click.Context) -> None:
    """Database connection groups."""
    pass


@db_group.command(name="status")
@click.option("--resolve", is_flag=True, help="Build each group first to check it can be created")
@click.pass_context
def status_command(ctx: click.Context, resolve: bool) -> None:
    """Show configured connection groups."""
    try:
        configs = get_config(ctx.obj.get('config'), reload=True)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    registry = ConnectionRegistry(configs)
    try:
        if resolve:
            for name in configs:
                registry.resolve(name)

        console.print("[bold blue]Connection Group Status[/bold blue]\n")

        status_info = registry.get_connection_status()
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Driver", style="green")
        table.add_column("User")
        table.add_column("Host")
        table.add_column("Schema")
        table.add_column("Slaves", style="yellow")
        table.add_column("Resolved")
        table.add_column("Default", style="blue")

        for name, conn_info in status_info['connections'].items():
            is_default = "✓" if name == status_info['default_name'] else ""
            table.add_row(
                name,
                conn_info['driver'],
                conn_info['username'],
                conn_info['host'],
                conn_info['schema'],
                str(conn_info['slaves']),
                "yes" if conn_info['resolved'] else "no",
                is_default,
            )

        console.print(table)
        console.print(f"\nTotal: {status_info['total_configured']} configured")
    except Exception as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    finally:
        registry.close_all_connections()


@db_group.command(name="query")
@click.argument("sql")
@click.option("--name", "-n", help="Connection name (default: db)")
@click.option("--slave", is_flag=True, help="Route the query to a slave")
@click.option("--timeout", type=float, help="Abort the query after this many seconds")
@click.pass_context
def query_command(
    ctx: click.Context,
    sql: str,
    name: Optional[str],
    slave: bool,
    timeout: Optional[float],
) -> None:
    """Run a single SQL statement and print the result."""
    try:
        configs = get_config(ctx.obj.get('config'), reload=True)
        registry = ConnectionRegistry(configs)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    exec_ctx = ExecutionContext.background()
    if timeout:
        exec_ctx = exec_ctx.with_timeout(timeout)

    session = registry.slave(exec_ctx, name) if slave else registry.master(exec_ctx, name)
    try:
        result = session.execute(text(sql))
        if result.returns_rows:
            _show_rows(result.keys(), result.fetchall())
        else:
            session.commit()
            console.print(f"[green]{result.rowcount} row(s) affected[/green]")
    except (SQLAlchemyError, SQLAccessError) as exc:
        session.rollback()
        console.print(f"[red]Query failed: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    finally:
        session.close()
        registry.close_all_connections()


def _show_rows(columns, rows) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    for column in columns:
        table.add_column(str(column), style="cyan")
    for row in rows:
        table.add_row(*["NULL" if value is None else str(value) for value in row])
    console.print(table)
    console.print(f"\n{len(rows)} row(s)")
