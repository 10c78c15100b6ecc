"""Project configuration loading and project-root discovery."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from devprism.lib.errors import ConfigError, NoProjectRootError
from devprism.lib.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILENAMES = ("prism.config.yaml", "prism.config.yml")

DEFAULT_PORT_BASE = 47000


class ProjectConfig(BaseModel):
    """Shape of ``prism.config.yaml``.

    ``ports`` is either a list of logical port names, whose numbers are
    allocated from the OS and stored in the registry, or a mapping of names
    to offsets, whose numbers are derived from the session id.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    project_name: str | None = Field(default=None, alias="projectName")
    ports: list[str] | dict[str, int] = Field(default_factory=list)
    port_base: int = Field(default=DEFAULT_PORT_BASE, ge=1024, le=65535, alias="portBase")
    env: dict[str, str] = Field(default_factory=dict)
    apps: dict[str, dict[str, str]] = Field(default_factory=dict)
    setup: list[str] = Field(default_factory=list)
    sessions_dir: str | None = Field(default=None, alias="sessionsDir")
    compose_file: str = Field(default="docker-compose.session.yml", alias="composeFile")
    env_file: str = Field(default=".env.session", alias="envFile")

    @field_validator("ports")
    @classmethod
    def _check_ports(cls, value: list[str] | dict[str, int]) -> list[str] | dict[str, int]:
        names = list(value)
        if any(not name or not name.strip() for name in names):
            raise ValueError("port names must be non-empty")
        if isinstance(value, list) and len(set(names)) != len(names):
            raise ValueError("port names must be unique")
        if isinstance(value, dict) and any(offset < 0 or offset > 99 for offset in value.values()):
            raise ValueError("port offsets must be between 0 and 99")
        return value

    @field_validator("env", "apps", mode="before")
    @classmethod
    def _stringify_templates(cls, value: object) -> object:
        # YAML turns bare numbers and booleans into non-strings
        if not isinstance(value, dict):
            return value
        return {
            key: (
                {k: str(v) for k, v in item.items()} if isinstance(item, dict) else str(item)
            )
            for key, item in value.items()
        }

    @property
    def uses_offsets(self) -> bool:
        """True when ports are derived arithmetically rather than allocated."""
        return isinstance(self.ports, dict)

    @property
    def port_names(self) -> list[str]:
        return list(self.ports)

    def name_for(self, project_root: Path) -> str:
        return self.project_name or project_root.name

    def sessions_path(self, project_root: Path) -> Path:
        """Directory where session worktrees are created."""
        if self.sessions_dir:
            return (project_root / self.sessions_dir).resolve()
        return project_root.parent / f"{project_root.name}-sessions"


def config_file_in(directory: Path) -> Path | None:
    """Return the config marker inside ``directory``, if any."""
    for filename in CONFIG_FILENAMES:
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


def find_project_root(start_dir: str | Path) -> Path:
    """
    Walk up from ``start_dir`` to the first directory holding a config marker.

    Args:
        start_dir: Directory to start from

    Returns:
        Absolute project root

    Raises:
        NoProjectRootError: If the filesystem root is reached without a marker
    """
    start = Path(start_dir).resolve()
    for directory in (start, *start.parents):
        if config_file_in(directory) is not None:
            return directory
    raise NoProjectRootError(str(start))


def load_project_config(project_root: Path) -> ProjectConfig:
    """
    Load and validate the project configuration.

    Args:
        project_root: Directory containing the config marker

    Returns:
        Validated, immutable ProjectConfig

    Raises:
        NoProjectRootError: If no marker exists in ``project_root``
        ConfigError: If the file is not valid YAML or has the wrong shape
    """
    path = config_file_in(project_root)
    if path is None:
        raise NoProjectRootError(str(project_root))

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level", path=str(path))

    try:
        config = ProjectConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid project configuration in {path}:\n{e}", path=str(path)) from e

    logger.debug("project_config_loaded", path=str(path), ports=config.port_names)
    return config


__all__ = [
    "CONFIG_FILENAMES",
    "DEFAULT_PORT_BASE",
    "ProjectConfig",
    "config_file_in",
    "find_project_root",
    "load_project_config",
]
