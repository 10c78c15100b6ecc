"""
CLI commands for global port reservations.

Provides 'dev-prism ports reserve', 'unreserve' and 'list'. Reserved
ports are never handed out by the allocator.
"""

from typing import Optional

import typer

from devprism.cli.common import console, exit_with_error
from devprism.cli.formatters import format_reservations_table
from devprism.core.registry import SessionRegistry
from devprism.db import open_registry
from devprism.lib.logging import get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="ports",
    help="Reserve ports so sessions never get them",
    no_args_is_help=True,
)


@app.command("reserve")
def reserve_port(
    port: int = typer.Argument(..., help="Port number to reserve"),
    reason: Optional[str] = typer.Option(
        None,
        "--reason",
        "-r",
        help="Why the port is reserved",
    ),
) -> None:
    """Reserve a port system-wide."""
    logger.info("ports_reserve_command", port=port, reason=reason)

    try:
        with open_registry() as db_session:
            SessionRegistry(db_session).reserve(port, reason)
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "ports_reserve_failed")

    console.print(f"[green]Port {port} reserved[/green]")


@app.command("unreserve")
def unreserve_port(
    port: int = typer.Argument(..., help="Port number to release"),
) -> None:
    """Release a reserved port."""
    logger.info("ports_unreserve_command", port=port)

    try:
        with open_registry() as db_session:
            removed = SessionRegistry(db_session).unreserve(port)
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "ports_unreserve_failed")

    if removed:
        console.print(f"[green]Port {port} released[/green]")
    else:
        console.print(f"[yellow]Port {port} was not reserved[/yellow]")


@app.command("list")
def list_reservations() -> None:
    """List reserved ports."""
    try:
        with open_registry() as db_session:
            rows = [
                {
                    "port": reservation.port,
                    "reason": reservation.reason,
                    "created_at": reservation.created_at,
                }
                for reservation in SessionRegistry(db_session).list_reservations()
            ]
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "ports_list_failed")

    format_reservations_table(rows, console)
