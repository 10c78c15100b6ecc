"""
CLI commands that expose a session's environment.

Provides 'dev-prism env' and 'dev-prism with-env'.
"""

from pathlib import Path
from typing import Optional

import click
import typer
from typer.core import TyperCommand

from devprism.cli.common import err_console, exit_with_error, project_context, target_session
from devprism.cli.exit_codes import ExitCode, get_exit_code_description
from devprism.core.injector import run_with_env, session_environment
from devprism.core.registry import SessionRegistry
from devprism.db import open_registry
from devprism.lib.envfile import format_env_file, write_env_file
from devprism.lib.logging import get_logger

logger = get_logger(__name__)

CHILD_COMMAND_KEY = "devprism.child_command"


class WithEnvCommand(TyperCommand):
    """Command that keeps everything after ``--`` for the child process.

    Click consumes the ``--`` separator itself, so the child's argv is
    split off before option parsing and handed over via ``ctx.meta``.
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if "--" in args:
            split = args.index("--")
            ctx.meta[CHILD_COMMAND_KEY] = args[split + 1 :]
            args = args[:split]
        else:
            ctx.meta[CHILD_COMMAND_KEY] = []
        return super().parse_args(ctx, args)


def with_env(
    ctx: typer.Context,
    app_name: Optional[str] = typer.Argument(
        None,
        metavar="[APP]",
        help="App whose env templates are added to the global ones",
    ),
) -> None:
    """
    Run a command with the current session's environment.

    Usage: dev-prism with-env [APP] -- <command...>

    Outside a project or session the command runs with the inherited
    environment unchanged. Exits with the command's own exit status.
    """
    command: list[str] = ctx.meta.get(CHILD_COMMAND_KEY, [])
    logger.debug("with_env_command", app=app_name, command=command)

    try:
        status = run_with_env(command, app=app_name)
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "with_env_failed")

    if status != ExitCode.SUCCESS:
        logger.debug("with_env_exit", exit_code=status, meaning=get_exit_code_description(status))
    raise typer.Exit(status)


def env(
    app: Optional[str] = typer.Option(
        None,
        "--app",
        "-a",
        help="Include the templates of this app",
    ),
    write: Optional[Path] = typer.Option(
        None,
        "--write",
        "-w",
        help="Write KEY=VALUE lines to this file instead of printing them",
    ),
) -> None:
    """Print (or write) the current session's environment."""
    logger.info("env_command", app=app, write=str(write) if write else None)

    try:
        with open_registry() as db_session:
            registry = SessionRegistry(db_session)
            ctx = project_context(registry)
            record = target_session(registry, ctx, None)
            values = session_environment(registry, record, ctx.config, app)
            session_id = record.session_id

        if write is not None:
            path = write_env_file(
                write,
                values,
                header=[f"Auto-generated for session {session_id}. Do not edit."],
            )
            err_console.print(f"[green]Wrote {len(values)} variables to {path}[/green]", highlight=False)
            return
    except typer.Exit:
        raise
    except Exception as e:
        exit_with_error(e, "env_failed")

    typer.echo(format_env_file(values), nl=False)


__all__ = ["CHILD_COMMAND_KEY", "WithEnvCommand", "with_env", "env"]
