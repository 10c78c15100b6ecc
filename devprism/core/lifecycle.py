"""Session creation and teardown across the registry, git and Docker."""

import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from devprism.core.allocator import PortAllocator
from devprism.core.injector import session_environment, session_ports
from devprism.core.registry import SessionRegistry, normalize_session_id
from devprism.core.resolver import ResolvedSession
from devprism.db.models import SessionMode, SessionRecord
from devprism.lib import docker, git
from devprism.lib.envfile import write_env_file
from devprism.lib.errors import ConflictError, DevPrismError, ExternalProcessError
from devprism.lib.logging import get_logger
from devprism.lib.project_config import ProjectConfig

logger = get_logger(__name__)


@dataclass
class CreatedSession:
    """Outcome of a successful ``create``."""

    record: SessionRecord
    ports: dict[str, int]
    env: dict[str, str]
    env_file: Path
    failed_setup: list[str] = field(default_factory=list)
    services_started: bool = False


def effective_project_root(resolved: ResolvedSession) -> Path:
    """Registry project root for a resolved directory.

    Inside a worktree the config marker is found in the worktree itself,
    but the session is registered under the repository it came from.
    """
    if resolved.session is not None:
        return Path(resolved.session.project_root)
    return resolved.project_root


def app_profiles(config: ProjectConfig, without: list[str] | None = None) -> list[str]:
    """Compose profiles for every configured app except ``without``."""
    excluded = set(without or [])
    return [app for app in config.apps if app not in excluded]


class SessionLifecycle:
    """Create and destroy sessions for one project.

    Creation spans non-transactional systems (git, the filesystem, Docker)
    around the registry. If any step after the worktree exists fails, the
    steps already done are undone best-effort and the original error is
    re-raised.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        project_root: Path,
        config: ProjectConfig,
        allocator: PortAllocator | None = None,
    ):
        self.registry = registry
        self.project_root = project_root
        self.config = config
        self.allocator = allocator or PortAllocator(registry)

    def create(
        self,
        session_id: str | None = None,
        branch: str | None = None,
        mode: str = SessionMode.DOCKER.value,
        in_place: bool = False,
        start_services: bool = False,
        without: list[str] | None = None,
    ) -> CreatedSession:
        """
        Create a session: worktree, registry row, ports, env file, setup.

        Args:
            session_id: Explicit id ("7" or "007"); next free id if None
            branch: Worktree branch (default ``session/<date>/<id>``)
            mode: ``docker`` or ``native``
            in_place: Use the project root instead of a new worktree
            start_services: Run ``docker compose up`` after setup (docker mode)
            without: Apps to leave out when starting services

        Raises:
            ValidationError: Malformed id or mode, or the directory exists
            ConflictError: The id or directory already has an active session
            IdentifierExhaustedError: No free id is left
        """
        root = str(self.project_root)
        sid = normalize_session_id(session_id) if session_id else self.registry.next_session_id(root)

        if self.registry.find_active(root, sid) is not None:
            raise ConflictError(
                f"Session {sid} already exists. Destroy it first with: dev-prism destroy {sid}",
                context={"session_id": sid, "project_root": root},
            )

        if in_place:
            session_dir = self.project_root
            branch_name = ""
            existing = self.registry.find_by_dir(str(session_dir))
            if existing is not None:
                raise ConflictError(
                    f"Session {existing.session_id} already uses {session_dir}",
                    context={"session_dir": str(session_dir)},
                )
        else:
            branch_name = branch or git.default_branch_name(sid)
            session_dir = self.config.sessions_path(self.project_root) / f"session-{sid}"

        logger.info(
            "session_create_started",
            session_id=sid,
            session_dir=str(session_dir),
            branch=branch_name,
            in_place=in_place,
        )

        record: SessionRecord | None = None
        worktree_created = False
        services_attempted = False
        try:
            if not in_place:
                git.create_worktree(self.project_root, session_dir, branch_name)
                worktree_created = True

            record = self.registry.insert(
                session_id=sid,
                project_root=root,
                session_dir=str(session_dir),
                branch=branch_name,
                mode=mode,
                in_place=in_place,
            )

            if not self.config.uses_offsets:
                self.allocator.allocate(record, self.config.ports)

            ports = session_ports(self.registry, record, self.config)
            env = session_environment(self.registry, record, self.config)
            env_file = write_env_file(
                session_dir / self.config.env_file,
                env,
                header=[f"Auto-generated for session {sid}. Do not edit."],
            )

            failed_setup = self._run_setup(session_dir, env)

            if start_services and record.mode == SessionMode.DOCKER.value:
                services_attempted = True
                docker.up(
                    session_dir,
                    self.config.compose_file,
                    self.config.env_file,
                    profiles=app_profiles(self.config, without),
                )
        except Exception as e:
            logger.error("session_create_failed", session_id=sid, error=str(e))
            self._compensate(sid, record, session_dir, branch_name, worktree_created, services_attempted)
            raise

        logger.info("session_created", session_id=sid, ports=ports)
        return CreatedSession(
            record=record,
            ports=ports,
            env=env,
            env_file=env_file,
            failed_setup=failed_setup,
            services_started=services_attempted,
        )

    def _run_setup(self, session_dir: Path, env: dict[str, str]) -> list[str]:
        """Run setup commands with the session env; failures are reported, not raised."""
        failed: list[str] = []
        merged = {**os.environ, **env}
        for command in self.config.setup:
            logger.info("setup_command_started", command=command)
            try:
                result = subprocess.run(shlex.split(command), cwd=session_dir, env=merged, check=False)
                ok = result.returncode == 0
            except OSError as e:
                logger.warning("setup_command_error", command=command, error=str(e))
                ok = False
            if not ok:
                logger.warning("setup_command_failed", command=command)
                failed.append(command)
        return failed

    def _compensate(
        self,
        session_id: str,
        record: SessionRecord | None,
        session_dir: Path,
        branch: str,
        worktree_created: bool,
        services_attempted: bool,
    ) -> None:
        """Undo a half-finished create; each step is best-effort."""
        if services_attempted:
            try:
                docker.stop(session_dir, self.config.compose_file, self.config.env_file)
            except ExternalProcessError as e:
                logger.warning("compensate_stop_failed", session_id=session_id, error=e.message)

        if record is not None:
            try:
                self.registry.db_session.rollback()
                self.registry.remove_records([record])
            except SQLAlchemyError as e:
                logger.warning("compensate_registry_failed", session_id=session_id, error=str(e))

        if worktree_created:
            try:
                git.remove_worktree(self.project_root, session_dir, branch or None)
            except ExternalProcessError as e:
                logger.warning("compensate_worktree_failed", session_id=session_id, error=e.message)
        elif record is not None:
            (session_dir / self.config.env_file).unlink(missing_ok=True)

    def destroy(self, record: SessionRecord) -> list[str]:
        """
        Stop services, remove the worktree and mark the session destroyed.

        External failures do not stop the registry update, so a broken
        worktree never leaves a row that blocks re-creating the id.

        Returns:
            Warning messages for steps that failed
        """
        warnings: list[str] = []
        session_dir = Path(record.session_dir)

        if record.mode == SessionMode.DOCKER.value and (session_dir / self.config.compose_file).exists():
            try:
                docker.stop(session_dir, self.config.compose_file, self.config.env_file)
            except ExternalProcessError as e:
                logger.warning("destroy_stop_failed", session_id=record.session_id, error=e.message)
                warnings.append(f"Could not stop services: {e.message}")

        if record.in_place:
            (session_dir / self.config.env_file).unlink(missing_ok=True)
        elif session_dir.exists():
            try:
                git.remove_worktree(Path(record.project_root), session_dir, record.branch or None)
            except ExternalProcessError as e:
                logger.warning("worktree_removal_failed", session_id=record.session_id, error=e.message)
                warnings.append(f"Could not remove worktree: {e.message}")

        self.registry.mark_destroyed(record.project_root, record.session_id)
        return warnings

    def stop_all(self) -> tuple[list[str], list[str]]:
        """
        Stop every running docker-mode session of the project.

        Returns:
            (stopped session ids, warning messages)
        """
        stopped: list[str] = []
        warnings: list[str] = []
        for record in self.registry.list_active(str(self.project_root)):
            session_dir = Path(record.session_dir)
            if not docker.is_running(session_dir, self.config.compose_file, self.config.env_file):
                continue
            try:
                docker.stop(
                    session_dir,
                    self.config.compose_file,
                    self.config.env_file,
                    profiles=app_profiles(self.config),
                )
                stopped.append(record.session_id)
            except DevPrismError as e:
                logger.warning("stop_all_failed", session_id=record.session_id, error=e.message)
                warnings.append(f"Could not stop session {record.session_id}: {e.message}")
        return stopped, warnings

    def prune(self, records: list[SessionRecord]) -> int:
        """Hard-delete the given rows (allocations cascade)."""
        removed = self.registry.remove_records(records)
        logger.info("sessions_pruned", count=removed, project_root=str(self.project_root))
        return removed


__all__ = ["CreatedSession", "SessionLifecycle", "app_profiles", "effective_project_root"]
