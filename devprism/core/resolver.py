"""Map a working directory to its project and session."""

from dataclasses import dataclass
from pathlib import Path

from devprism.core.registry import SessionRegistry
from devprism.db.models import SessionRecord
from devprism.lib.project_config import find_project_root


@dataclass(frozen=True)
class ResolvedSession:
    """Result of resolving a directory.

    ``project_root`` is the directory holding the config marker; for a
    worktree session that is the worktree itself, while
    ``session.project_root`` names the repository it was created from.
    """

    project_root: Path
    session: SessionRecord | None

    @property
    def found(self) -> bool:
        return self.session is not None


def find_session_for_dir(
    registry: SessionRegistry,
    start_dir: str | Path,
    project_root: Path,
) -> SessionRecord | None:
    """
    Find the active session whose directory is ``start_dir`` or an ancestor of it.

    The search stops at ``project_root``; an exact match on ``start_dir``
    wins over any ancestor.
    """
    start = Path(start_dir).resolve()
    for directory in (start, *start.parents):
        record = registry.find_by_dir(str(directory))
        if record is not None:
            return record
        if directory == project_root:
            break
    return None


def resolve(start_dir: str | Path, registry: SessionRegistry) -> ResolvedSession:
    """
    Resolve ``start_dir`` to its project root and active session.

    Raises:
        NoProjectRootError: If no config marker exists in ``start_dir`` or above

    Returns:
        ResolvedSession whose ``session`` is None when the project has no
        active session for this directory
    """
    project_root = find_project_root(start_dir)
    return ResolvedSession(
        project_root=project_root,
        session=find_session_for_dir(registry, start_dir, project_root),
    )


__all__ = ["ResolvedSession", "find_session_for_dir", "resolve"]
