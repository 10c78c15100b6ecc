"""Reading and writing ``KEY=VALUE`` env files."""

from collections.abc import Mapping
from pathlib import Path


def format_env_file(env: Mapping[str, str], header: list[str] | None = None) -> str:
    """
    Format a mapping as ``KEY=VALUE`` lines.

    Values are written verbatim (no quoting). Each entry, and each optional
    ``#`` header line, ends with a newline.

    Args:
        env: Variables to write, in iteration order
        header: Comment lines written before the variables

    Returns:
        File content
    """
    lines = [f"# {line}" for line in header or []]
    lines.extend(f"{key}={value}" for key, value in env.items())
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def parse_env_file(content: str) -> dict[str, str]:
    """
    Parse ``KEY=VALUE`` lines, splitting on the first ``=``.

    Blank lines, comments and lines without ``=`` are skipped. Values are
    kept exactly as written, surrounding whitespace included.
    """
    env: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = line.split("=", 1)
        env[key.strip()] = value
    return env


def write_env_file(path: Path, env: Mapping[str, str], header: list[str] | None = None) -> Path:
    """Write env content to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_env_file(env, header), encoding="utf-8")
    return path


def read_env_file(path: Path) -> dict[str, str]:
    return parse_env_file(path.read_text(encoding="utf-8"))


__all__ = ["format_env_file", "parse_env_file", "write_env_file", "read_env_file"]
