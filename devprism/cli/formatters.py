"""Rich formatters for CLI output."""

from datetime import datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table


def format_session_table(
    sessions: list[dict[str, Any]],
    console: Console,
    show_project: bool = False,
) -> None:
    """Display sessions in a Rich table.

    Args:
        sessions: List of session dictionaries
        console: Rich console instance
        show_project: Add a project column (listing across projects)
    """
    if not sessions:
        console.print("[yellow]No active sessions.[/yellow]")
        return

    table = Table(title="Sessions")
    table.add_column("ID", style="cyan", no_wrap=True)
    if show_project:
        table.add_column("Project", style="dim")
    table.add_column("Branch", style="magenta")
    table.add_column("Mode")
    table.add_column("Status", style="bold")
    table.add_column("Ports")
    table.add_column("Directory", style="dim")

    for session in sessions:
        row = [session.get("session_id", "")]
        if show_project:
            row.append(session.get("project", ""))
        ports = session.get("ports", {})
        row.extend(
            [
                session.get("branch") or "-",
                session.get("mode", ""),
                _style_status(session.get("status", "")),
                ", ".join(f"{name}:{port}" for name, port in ports.items()) or "-",
                session.get("session_dir", ""),
            ]
        )
        table.add_row(*row)

    console.print(table)


def format_ports_table(
    ports: dict[str, int],
    console: Console,
    title: str = "Ports",
    listening: dict[str, bool] | None = None,
) -> None:
    """Display a service-to-port mapping, optionally with whether each port is bound."""
    if not ports:
        console.print("[dim]No ports configured.[/dim]")
        return

    table = Table(title=title)
    table.add_column("Service", style="cyan")
    table.add_column("Port", justify="right")
    if listening is not None:
        table.add_column("Listening")
    for name, port in ports.items():
        row = [name, str(port)]
        if listening is not None:
            row.append("[green]yes[/green]" if listening.get(name) else "[dim]no[/dim]")
        table.add_row(*row)

    console.print(table)


def format_reservations_table(reservations: list[dict[str, Any]], console: Console) -> None:
    """Display reserved ports in a Rich table.

    Args:
        reservations: List of reservation dictionaries
        console: Rich console instance
    """
    if not reservations:
        console.print("[yellow]No reserved ports.[/yellow]")
        return

    table = Table(title="Reserved Ports")
    table.add_column("Port", style="cyan", justify="right")
    table.add_column("Reason")
    table.add_column("Reserved", style="dim")

    for reservation in reservations:
        table.add_row(
            str(reservation.get("port", "")),
            reservation.get("reason") or "-",
            _format_timestamp(reservation.get("created_at")),
        )

    console.print(table)


def format_session_info(info: dict[str, Any], console: Console) -> None:
    """Display one session's details followed by its ports."""
    lines = [
        f"[dim]Project:[/dim]   {info.get('project', '')}",
        f"[dim]Directory:[/dim] {info.get('session_dir', '')}",
        f"[dim]Branch:[/dim]    {info.get('branch') or '-'}",
        f"[dim]Mode:[/dim]      {info.get('mode', '')}",
        f"[dim]In place:[/dim]  {'yes' if info.get('in_place') else 'no'}",
        f"[dim]Created:[/dim]   {_format_timestamp(info.get('created_at'))}",
    ]
    console.print(
        Panel(
            "\n".join(lines),
            title=f"Session [cyan]{info.get('session_id', '')}[/cyan]",
            border_style="blue",
        )
    )
    format_ports_table(info.get("ports", {}), console, listening=info.get("listening"))


def format_prune_candidates(candidates: list[dict[str, Any]], console: Console) -> None:
    """List registry rows that prune would delete."""
    table = Table(title="Prunable Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("State")
    table.add_column("Directory", style="dim")

    for candidate in candidates:
        state = "[dim]destroyed[/dim]" if candidate.get("destroyed") else "[red]missing dir[/red]"
        table.add_row(candidate.get("session_id", ""), state, candidate.get("session_dir", ""))

    console.print(table)


def _style_status(status: str) -> str:
    """Apply Rich styling to status string."""
    status_colors = {
        "running": "[green]running[/green]",
        "stopped": "[yellow]stopped[/yellow]",
    }
    return status_colors.get(status.lower(), status or "-")


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")
