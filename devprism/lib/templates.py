"""Port-to-environment templating.

Two ways of turning a session into port numbers are supported:

* allocated ports, probed from the OS and stored in the registry, and
* arithmetic ports, ``base + session_index * 100 + offset``, which need no
  storage at all.

Either way the resulting ``{name: port}`` mapping is substituted into
``${NAME}`` placeholders of the project's env templates.
"""

import re
from collections.abc import Mapping

from devprism.lib.errors import ValidationError
from devprism.lib.project_config import ProjectConfig

PLACEHOLDER = re.compile(r"\$\{([^${}]+)\}")

SESSION_STRIDE = 100
MAX_PORT = 65535


def render_template(template: str, values: Mapping[str, int | str]) -> str:
    """Substitute ``${name}`` tokens whose name is in ``values``; leave others verbatim."""

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        return match.group(0)

    return PLACEHOLDER.sub(_substitute, template)


def render(templates: Mapping[str, str], values: Mapping[str, int | str]) -> dict[str, str]:
    """
    Render every template in ``templates``.

    Args:
        templates: Output key to template string
        values: Placeholder name to value (port numbers, usually)

    Returns:
        Output key to rendered string, in template order

    Example:
        >>> render({"URL": "http://localhost:${APP}/${z}"}, {"APP": 3000})
        {'URL': 'http://localhost:3000/${z}'}
    """
    return {key: render_template(template, values) for key, template in templates.items()}


def session_index(session_id: str) -> int:
    """Numeric value of a short session identifier ("007" -> 7)."""
    if not session_id.isdigit():
        raise ValidationError(
            f"Session ID must be numeric to derive ports: {session_id!r}",
            field="session_id",
        )
    return int(session_id)


def calculate_ports(
    session_id: str,
    offsets: Mapping[str, int],
    base: int,
) -> dict[str, int]:
    """
    Derive ports arithmetically from the session id.

    ``port = base + session_index * 100 + offset``. The same inputs always
    give the same ports, so nothing has to be persisted.

    Raises:
        ValidationError: If the id is not numeric or a port exceeds 65535
    """
    index = session_index(session_id)
    ports = {name: base + index * SESSION_STRIDE + offset for name, offset in offsets.items()}

    too_high = {name: port for name, port in ports.items() if port > MAX_PORT}
    if too_high:
        raise ValidationError(
            f"Session {session_id} derives ports above {MAX_PORT}: {too_high}",
            field="session_id",
        )
    return ports


def build_session_env(
    config: ProjectConfig,
    project_name: str,
    session_id: str,
    ports: Mapping[str, int],
    app: str | None = None,
) -> dict[str, str]:
    """
    Build the flat environment for a session.

    Later layers win on key collision: session identity, then one variable
    per port, then the global templates, then the app templates.

    Raises:
        ValidationError: If ``app`` is given but not configured
    """
    if app is not None and app not in config.apps:
        known = ", ".join(sorted(config.apps)) or "none"
        raise ValidationError(f"Unknown app {app!r} (configured apps: {known})", field="app")

    values: dict[str, int | str] = {"SESSION_ID": session_id, **ports}

    env: dict[str, str] = {
        "SESSION_ID": session_id,
        # Compose only accepts lowercase project names
        "COMPOSE_PROJECT_NAME": f"{project_name}-{session_id}".lower(),
    }
    env.update({name: str(port) for name, port in ports.items()})
    env.update(render(config.env, values))
    if app is not None:
        env.update(render(config.apps[app], values))
    return env


__all__ = [
    "render_template",
    "render",
    "session_index",
    "calculate_ports",
    "build_session_env",
]
