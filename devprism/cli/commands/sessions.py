"""
CLI commands for the session lifecycle.

Provides 'dev-prism create', 'list', 'info', 'destroy' and 'prune'.
"""

from pathlib import Path
from typing import Optional

import typer

from devprism.cli.common import (
    config_or_default,
    console,
    exit_with_error,
    print_warnings,
    project_context,
    session_row,
    split_apps,
    target_session,
)
from devprism.cli.formatters import (
    format_ports_table,
    format_prune_candidates,
    format_session_info,
    format_session_table,
)
from devprism.core.lifecycle import SessionLifecycle
from devprism.core.registry import SessionRegistry
from devprism.db import open_registry
from devprism.lib.logging import get_logger
from devprism.lib.project_config import ProjectConfig
from devprism.lib.ports import is_port_free

logger = get_logger(__name__)


def create(
    session_id: Optional[str] = typer.Argument(
        None,
        help="Session ID (1-999); the next free one if omitted",
    ),
    branch: Optional[str] = typer.Option(
        None,
        "--branch",
        "-b",
        help="Branch for the worktree (default: session/<date>/<id>)",
    ),
    in_place: bool = typer.Option(
        False,
        "--in-place",
        "-i",
        help="Use the current project directory instead of a new worktree",
    ),
    mode: str = typer.Option(
        "docker",
        "--mode",
        "-m",
        help="Session mode (docker, native)",
    ),
    start: bool = typer.Option(
        False,
        "--up",
        help="Start the compose services after setup (docker mode)",
    ),
    without: Optional[str] = typer.Option(
        None,
        "--without",
        "-W",
        help="Comma-separated apps to leave out when starting services",
    ),
) -> None:
    """Create a session with its own ports and environment."""
    logger.info("create_command", session_id=session_id, branch=branch, in_place=in_place, mode=mode)

    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            ctx = project_context(registry)
            lifecycle = SessionLifecycle(registry, ctx.project_root, ctx.config)
            created = lifecycle.create(
                session_id=session_id,
                branch=branch,
                mode=mode,
                in_place=in_place,
                start_services=start,
                without=split_apps(without),
            )
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "create_failed")

    record = created.record
    console.print(f"[green]Session {record.session_id} created[/green]")
    console.print(f"[dim]Directory:[/dim] {record.session_dir}")
    if record.branch:
        console.print(f"[dim]Branch:[/dim]    {record.branch}")
    console.print(f"[dim]Env file:[/dim]  {created.env_file}")
    format_ports_table(created.ports, console)
    print_warnings([f"Setup command failed: {command}" for command in created.failed_setup])

    if not record.in_place:
        console.print(f"\nNext: [cyan]cd {record.session_dir}[/cyan]")


def list_sessions(
    all_projects: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="List active sessions of every project",
    ),
) -> None:
    """List active sessions."""
    logger.info("list_command", all_projects=all_projects)

    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            if all_projects:
                records = registry.list_all_active()
                configs: dict[str, ProjectConfig] = {}
                rows = []
                for record in records:
                    if record.project_root not in configs:
                        configs[record.project_root] = config_or_default(Path(record.project_root))
                    rows.append(session_row(registry, record, configs[record.project_root]))
            else:
                ctx = project_context(registry)
                rows = [
                    session_row(registry, record, ctx.config)
                    for record in registry.list_active(str(ctx.project_root))
                ]
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "list_failed")

    format_session_table(rows, console, show_project=all_projects)


def info() -> None:
    """Show the session of the current directory."""
    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            ctx = project_context(registry)
            record = target_session(registry, ctx, None)
            details = session_row(registry, record, ctx.config)
            details["listening"] = {
                name: not is_port_free(port) for name, port in details["ports"].items()
            }
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "info_failed")

    format_session_info(details, console)


def destroy(
    session_id: Optional[str] = typer.Argument(
        None,
        help="Session ID; the session of the current directory if omitted",
    ),
    destroy_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Destroy every active session of the project",
    ),
) -> None:
    """Stop services, remove the worktree and release the ports of a session."""
    logger.info("destroy_command", session_id=session_id, destroy_all=destroy_all)

    destroyed: list[str] = []
    warnings: list[str] = []
    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            ctx = project_context(registry)
            if destroy_all:
                records = registry.list_active(str(ctx.project_root))
            else:
                records = [target_session(registry, ctx, session_id)]

            lifecycle = SessionLifecycle(registry, ctx.project_root, ctx.config)
            for record in records:
                warnings.extend(lifecycle.destroy(record))
                destroyed.append(record.session_id)
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "destroy_failed")

    print_warnings(warnings)
    if not destroyed:
        console.print("[yellow]No active sessions.[/yellow]")
    for sid in destroyed:
        console.print(f"[green]Session {sid} destroyed[/green]")


def prune(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt",
    ),
) -> None:
    """Delete destroyed sessions and sessions whose directory is gone."""
    logger.info("prune_command", yes=yes)

    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            ctx = project_context(registry)
            candidates = registry.list_prunable(str(ctx.project_root))

            if not candidates:
                console.print("[green]Nothing to prune.[/green]")
                return

            format_prune_candidates(
                [
                    {
                        "session_id": record.session_id,
                        "session_dir": record.session_dir,
                        "destroyed": not record.is_active,
                    }
                    for record in candidates
                ],
                console,
            )

            if not yes and not typer.confirm(f"Remove {len(candidates)} session record(s)?"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

            removed = SessionLifecycle(registry, ctx.project_root, ctx.config).prune(candidates)
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "prune_failed")

    console.print(f"[green]Pruned {removed} session record(s).[/green]")
