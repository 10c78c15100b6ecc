"""Session environment building and the ``with-env`` command runner."""

import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from devprism.core.registry import SessionRegistry
from devprism.core.resolver import find_session_for_dir
from devprism.db import open_registry, registry_exists
from devprism.db.models import SessionRecord
from devprism.lib.errors import ExternalProcessError, NoProjectRootError, ValidationError
from devprism.lib.logging import get_logger
from devprism.lib.project_config import ProjectConfig, find_project_root, load_project_config
from devprism.lib.templates import build_session_env, calculate_ports

logger = get_logger(__name__)


def session_ports(
    registry: SessionRegistry,
    record: SessionRecord,
    config: ProjectConfig,
) -> dict[str, int]:
    """
    Ports of a session, in config order.

    Offset-style configs derive them from the session id; list-style
    configs read the allocations stored in the registry.
    """
    if isinstance(config.ports, dict):
        return calculate_ports(record.session_id, config.ports, config.port_base)

    allocated = registry.ports_for(record)
    ordered = {name: allocated[name] for name in config.ports if name in allocated}
    # Services dropped from the config since creation keep their ports
    ordered.update({name: port for name, port in allocated.items() if name not in ordered})
    return ordered


def session_environment(
    registry: SessionRegistry,
    record: SessionRecord,
    config: ProjectConfig,
    app: str | None = None,
) -> dict[str, str]:
    """Rendered environment for ``record``, optionally with one app's templates."""
    project_name = config.name_for(Path(record.project_root))
    return build_session_env(
        config,
        project_name,
        record.session_id,
        session_ports(registry, record, config),
        app,
    )


def collect_session_env(
    start_dir: str | Path,
    app: str | None = None,
    registry_path: Path | None = None,
) -> dict[str, str] | None:
    """
    Environment for the session of ``start_dir``, or None to pass through.

    Returns None when there is no project root, no registry yet, or no
    active session for the directory. Never writes to the registry.

    Raises:
        ConfigError: If the project configuration of a found session is invalid
        ValidationError: If ``app`` is not configured
    """
    try:
        project_root = find_project_root(start_dir)
    except NoProjectRootError:
        logger.debug("with_env_passthrough", reason="no_project", start_dir=str(start_dir))
        return None

    if not registry_exists(registry_path):
        logger.debug("with_env_passthrough", reason="no_registry")
        return None

    with open_registry(registry_path) as db_session:
        registry = SessionRegistry(db_session)
        record = find_session_for_dir(registry, start_dir, project_root)
        if record is None:
            logger.debug("with_env_passthrough", reason="no_session", project_root=str(project_root))
            return None
        config = load_project_config(project_root)
        return session_environment(registry, record, config, app)


def exit_status(returncode: int) -> int:
    """Shell-style exit status: a child killed by signal N reports 128 + N."""
    if returncode < 0:
        return 128 - returncode
    return returncode


def run_with_env(
    command: Sequence[str],
    app: str | None = None,
    cwd: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """
    Run ``command`` with the session environment merged over ``environ``.

    Session values win on key collision. Outside a project or session the
    inherited environment is passed through unchanged.

    Args:
        command: Program and arguments
        app: App whose templates are rendered on top of the global ones
        cwd: Directory to resolve the session from and run in
        environ: Inherited environment (defaults to ``os.environ``)

    Returns:
        The child's exit status

    Raises:
        ValidationError: If ``command`` is empty
        ExternalProcessError: If the child could not be started
    """
    if not command:
        raise ValidationError(
            "No command given. Usage: dev-prism with-env [app] -- <command...>",
            field="command",
        )

    workdir = Path(cwd) if cwd is not None else Path.cwd()
    env = dict(os.environ if environ is None else environ)

    session_env = collect_session_env(workdir, app)
    if session_env:
        env.update(session_env)
        logger.debug("with_env_injected", keys=sorted(session_env))

    try:
        completed = subprocess.run(list(command), cwd=workdir, env=env, check=False)
    except OSError as e:
        raise ExternalProcessError(list(command), None, str(e)) from e

    status = exit_status(completed.returncode)
    if status != 0:
        logger.info("with_env_child_failed", command=command[0], exit_code=status)
    return status


__all__ = [
    "session_ports",
    "session_environment",
    "collect_session_env",
    "exit_status",
    "run_with_env",
]
