"""Git worktree management for dedicated session directories."""

import shutil
import subprocess
from datetime import date
from pathlib import Path

from devprism.lib.errors import ExternalProcessError, ValidationError
from devprism.lib.logging import get_logger

logger = get_logger(__name__)


def _run_git(
    args: list[str], cwd: Path, capture: bool = True
) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=capture,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise ExternalProcessError(command, None, "git executable not found") from e

    if result.returncode != 0:
        raise ExternalProcessError(command, result.returncode, result.stderr)
    return result


def default_branch_name(session_id: str, today: date | None = None) -> str:
    """Branch used when none is given: ``session/<YYYY-MM-DD>/<id>``."""
    day = today or date.today()
    return f"session/{day.isoformat()}/{session_id}"


def branch_exists(project_root: Path, branch: str) -> bool:
    try:
        _run_git(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"], project_root)
        return True
    except ExternalProcessError:
        return False


def create_worktree(project_root: Path, worktree_path: Path, branch: str) -> Path:
    """
    Create a worktree for ``branch``, creating the branch from HEAD if needed.

    Args:
        project_root: Repository the worktree belongs to
        worktree_path: Directory to create
        branch: Branch to check out

    Returns:
        The worktree path

    Raises:
        ValidationError: If the directory already exists
        ExternalProcessError: If git fails
    """
    if worktree_path.exists():
        raise ValidationError(
            f"Session directory already exists: {worktree_path}",
            field="session_dir",
        )

    worktree_path.parent.mkdir(parents=True, exist_ok=True)

    if branch_exists(project_root, branch):
        # Attach to the existing branch
        _run_git(["worktree", "add", str(worktree_path), branch], project_root)
    else:
        _run_git(["worktree", "add", "-b", branch, str(worktree_path), "HEAD"], project_root)

    logger.info("worktree_created", path=str(worktree_path), branch=branch)
    return worktree_path


def remove_worktree(project_root: Path, worktree_path: Path, branch: str | None = None) -> None:
    """
    Remove a worktree and, if given, delete its branch.

    Falls back to deleting the directory when ``git worktree remove`` fails.
    A branch that cannot be deleted (e.g. already gone) is only logged.
    """
    if worktree_path.exists():
        try:
            _run_git(["worktree", "remove", "--force", str(worktree_path)], project_root)
        except ExternalProcessError as e:
            logger.warning("worktree_remove_fallback", path=str(worktree_path), error=e.message)
            shutil.rmtree(worktree_path, ignore_errors=True)
            _run_git(["worktree", "prune"], project_root)

    if branch:
        try:
            _run_git(["branch", "-D", branch], project_root)
        except ExternalProcessError as e:
            logger.debug("branch_delete_skipped", branch=branch, error=e.message)

    logger.info("worktree_removed", path=str(worktree_path), branch=branch)


__all__ = [
    "default_branch_name",
    "branch_exists",
    "create_worktree",
    "remove_worktree",
]
