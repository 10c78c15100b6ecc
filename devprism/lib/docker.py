"""Docker Compose wrapper for session services."""

import subprocess
from pathlib import Path

from devprism.lib.errors import ExternalProcessError
from devprism.lib.logging import get_logger

logger = get_logger(__name__)


def compose_command(
    compose_file: str,
    env_file: str,
    *args: str,
    profiles: list[str] | None = None,
) -> list[str]:
    """Build a ``docker compose`` invocation for a session directory."""
    profile_flags = [flag for profile in profiles or [] for flag in ("--profile", profile)]
    return ["docker", "compose", "-f", compose_file, "--env-file", env_file, *profile_flags, *args]


def _run(command: list[str], cwd: Path, capture: bool = False) -> subprocess.CompletedProcess[str]:
    logger.debug("docker_command", command=command, cwd=str(cwd))
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=capture,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise ExternalProcessError(command, None, "docker executable not found") from e

    if result.returncode != 0:
        raise ExternalProcessError(command, result.returncode, result.stderr if capture else None)
    return result


def up(
    session_dir: Path,
    compose_file: str,
    env_file: str,
    profiles: list[str] | None = None,
) -> None:
    _run(compose_command(compose_file, env_file, "up", "-d", profiles=profiles), session_dir)


def stop(
    session_dir: Path,
    compose_file: str,
    env_file: str,
    profiles: list[str] | None = None,
) -> None:
    """Stop services without removing containers or volumes."""
    _run(compose_command(compose_file, env_file, "stop", profiles=profiles), session_dir)


def logs(
    session_dir: Path,
    compose_file: str,
    env_file: str,
    tail: int = 50,
    profiles: list[str] | None = None,
) -> None:
    _run(
        compose_command(compose_file, env_file, "logs", "-f", "--tail", str(tail), profiles=profiles),
        session_dir,
    )


def is_running(session_dir: Path, compose_file: str, env_file: str) -> bool:
    """Whether any service of the session's compose stack is running."""
    if not (session_dir / compose_file).exists() or not (session_dir / env_file).exists():
        return False
    try:
        result = _run(
            compose_command(compose_file, env_file, "ps", "--status", "running", "-q"),
            session_dir,
            capture=True,
        )
    except ExternalProcessError:
        return False
    return bool(result.stdout.strip())


__all__ = ["compose_command", "up", "stop", "logs", "is_running"]
