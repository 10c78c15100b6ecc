"""Shared helpers for CLI commands."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from devprism.cli.exit_codes import ExitCode
from devprism.core.injector import session_ports
from devprism.core.lifecycle import effective_project_root
from devprism.core.registry import SessionRegistry, normalize_session_id
from devprism.core.resolver import ResolvedSession, resolve
from devprism.db.models import SessionMode, SessionRecord
from devprism.lib import docker
from devprism.lib.errors import DevPrismError, NotFoundError
from devprism.lib.logging import bind_context, get_logger
from devprism.lib.project_config import ProjectConfig, load_project_config

logger = get_logger(__name__)
console = Console()
# Diagnostics go to stderr so that `env` output stays machine-readable
err_console = Console(stderr=True)


def exit_with_error(error: Exception, event: str) -> NoReturn:
    """Report ``error`` to the user and the log, then exit with code 1."""
    if isinstance(error, DevPrismError):
        err_console.print(f"[red]Error:[/red] {error.message}", highlight=False)
        logger.error(event, error=error.message, error_code=error.error_code, context=error.context)
    else:
        err_console.print(f"[red]Error:[/red] {error}", highlight=False)
        logger.error(event, error=str(error), error_type=type(error).__name__)
    raise typer.Exit(ExitCode.ERROR) from None


def print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}", highlight=False)


@dataclass
class ProjectContext:
    """Project a command operates on, as seen from the working directory."""

    project_root: Path
    config: ProjectConfig
    resolved: ResolvedSession

    @property
    def session(self) -> SessionRecord | None:
        return self.resolved.session


def project_context(registry: SessionRegistry, cwd: Path | None = None) -> ProjectContext:
    """
    Resolve the working directory to its registered project and config.

    Raises:
        NoProjectRootError: Outside any project
        ConfigError: If the project configuration is invalid
    """
    resolved = resolve(cwd or Path.cwd(), registry)
    project_root = effective_project_root(resolved)
    bind_context(project_root=str(project_root))
    return ProjectContext(
        project_root=project_root,
        config=load_project_config(project_root),
        resolved=resolved,
    )


def config_or_default(project_root: Path) -> ProjectConfig:
    """Configuration of another project; defaults if it can no longer be read."""
    try:
        return load_project_config(project_root)
    except DevPrismError as e:
        logger.debug("project_config_unavailable", project_root=str(project_root), error=e.message)
        return ProjectConfig()


def service_status(record: SessionRecord, config: ProjectConfig) -> str:
    """``running``/``stopped`` for docker sessions with a compose file, else empty."""
    session_dir = Path(record.session_dir)
    if record.mode != SessionMode.DOCKER.value or not (session_dir / config.compose_file).exists():
        return ""
    running = docker.is_running(session_dir, config.compose_file, config.env_file)
    return "running" if running else "stopped"


def session_row(
    registry: SessionRegistry,
    record: SessionRecord,
    config: ProjectConfig,
) -> dict[str, Any]:
    """Display dictionary for one session."""
    return {
        "session_id": record.session_id,
        "project": config.name_for(Path(record.project_root)),
        "project_root": record.project_root,
        "session_dir": record.session_dir,
        "branch": record.branch,
        "mode": record.mode,
        "in_place": record.in_place,
        "created_at": record.created_at,
        "ports": session_ports(registry, record, config),
        "status": service_status(record, config),
    }


def target_session(
    registry: SessionRegistry,
    ctx: ProjectContext,
    session_id: str | None,
) -> SessionRecord:
    """
    Session named by ``session_id``, or the session of the working directory.

    Raises:
        ValidationError: If ``session_id`` is malformed
        NotFoundError: If there is no such active session
    """
    if session_id:
        sid = normalize_session_id(session_id)
        record = registry.find_active(str(ctx.project_root), sid)
        if record is None:
            raise NotFoundError(
                "session", sid, message=f"Session {sid} not found in {ctx.project_root}"
            )
        return record

    if ctx.session is None:
        raise NotFoundError(
            "session",
            str(Path.cwd()),
            message=(
                f"No session found for {Path.cwd()}. Pass a session ID, "
                "or run `dev-prism create --in-place` to create one here."
            ),
        )
    return ctx.session


def split_apps(value: str | None) -> list[str]:
    """Parse a comma-separated ``--without`` value."""
    return [app.strip() for app in (value or "").split(",") if app.strip()]
