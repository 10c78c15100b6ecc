"""Typer CLI application for dev-prism."""

import typer

from devprism import __version__
from devprism.cli.commands import env, services, sessions
from devprism.cli.commands.ports import app as ports_app
from devprism.lib.logging import bind_context, clear_context, configure_logging, get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="dev-prism",
    help="Isolated development sessions with their own ports and environment",
    no_args_is_help=True,
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"dev-prism version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """dev-prism - run parallel sessions of one project without port clashes."""
    configure_logging()
    clear_context()
    bind_context(command=ctx.invoked_subcommand)


app.command("create")(sessions.create)
app.command("list")(sessions.list_sessions)
app.command("info")(sessions.info)
app.command("destroy")(sessions.destroy)
app.command("prune")(sessions.prune)

app.command("env")(env.env)
app.command("with-env", cls=env.WithEnvCommand)(env.with_env)

app.command("start")(services.start)
app.command("stop")(services.stop)
app.command("logs")(services.logs)
app.command("stop-all")(services.stop_all)

app.add_typer(ports_app, name="ports")

if __name__ == "__main__":
    app()
