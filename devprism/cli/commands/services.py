"""
CLI commands for a session's Docker Compose services.

Provides 'dev-prism start', 'stop', 'logs' and 'stop-all'.
"""

from pathlib import Path
from typing import Optional

import typer

from devprism.cli.common import (
    console,
    exit_with_error,
    print_warnings,
    project_context,
    split_apps,
    target_session,
)
from devprism.core.lifecycle import SessionLifecycle, app_profiles
from devprism.core.registry import SessionRegistry
from devprism.db import open_registry
from devprism.db.models import SessionMode, SessionRecord
from devprism.lib import docker
from devprism.lib.errors import ValidationError
from devprism.lib.logging import get_logger
from devprism.lib.project_config import ProjectConfig

logger = get_logger(__name__)


def _docker_session(session_id: str | None) -> tuple[SessionRecord, ProjectConfig]:
    with open_registry() as db_session:
        registry = SessionRegistry(db_session)
        ctx = project_context(registry)
        record = target_session(registry, ctx, session_id)

    if record.mode != SessionMode.DOCKER.value:
        raise ValidationError(
            f"Session {record.session_id} runs in {record.mode} mode; "
            "start its apps with `dev-prism with-env <app> -- <command>`",
            field="mode",
        )
    return record, ctx.config


def start(
    session_id: Optional[str] = typer.Argument(None, help="Session ID (default: current)"),
    without: Optional[str] = typer.Option(
        None,
        "--without",
        "-W",
        help="Comma-separated apps to leave out",
    ),
) -> None:
    """Start the session's compose services in the background."""
    logger.info("start_command", session_id=session_id, without=without)

    try:
        record, config = _docker_session(session_id)
        docker.up(
            Path(record.session_dir),
            config.compose_file,
            config.env_file,
            profiles=app_profiles(config, split_apps(without)),
        )
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "start_failed")

    console.print(f"[green]Session {record.session_id} started[/green]")


def stop(
    session_id: Optional[str] = typer.Argument(None, help="Session ID (default: current)"),
) -> None:
    """Stop the session's compose services, keeping containers and volumes."""
    logger.info("stop_command", session_id=session_id)

    try:
        record, config = _docker_session(session_id)
        docker.stop(
            Path(record.session_dir),
            config.compose_file,
            config.env_file,
            profiles=app_profiles(config),
        )
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "stop_failed")

    console.print(f"[green]Session {record.session_id} stopped[/green]")


def logs(
    session_id: Optional[str] = typer.Argument(None, help="Session ID (default: current)"),
    tail: int = typer.Option(50, "--tail", "-n", help="Lines to show before following"),
    without: Optional[str] = typer.Option(
        None,
        "--without",
        "-W",
        help="Comma-separated apps to leave out",
    ),
) -> None:
    """Follow the logs of the session's compose services."""
    try:
        record, config = _docker_session(session_id)
        docker.logs(
            Path(record.session_dir),
            config.compose_file,
            config.env_file,
            tail=tail,
            profiles=app_profiles(config, split_apps(without)),
        )
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "logs_failed")


def stop_all() -> None:
    """Stop every running session of the current project."""
    logger.info("stop_all_command")

    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            ctx = project_context(registry)
            stopped, warnings = SessionLifecycle(registry, ctx.project_root, ctx.config).stop_all()
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "stop_all_failed")

    print_warnings(warnings)
    if not stopped:
        console.print("[yellow]No running sessions.[/yellow]")
    for sid in stopped:
        console.print(f"[green]Session {sid} stopped[/green]")
