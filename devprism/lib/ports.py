"""Free TCP port probing against the OS socket table."""

import socket
from collections.abc import Collection

from devprism.lib.errors import AllocationError
from devprism.lib.logging import get_logger

logger = get_logger(__name__)


def is_port_free(port: int, host: str = "127.0.0.1") -> bool:
    """Check whether ``port`` can currently be bound on ``host``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_free_port(
    exclude: Collection[int] = (),
    host: str = "127.0.0.1",
    attempts: int = 50,
) -> int:
    """
    Ask the OS for a currently-unbound TCP port outside ``exclude``.

    The OS picks the port (bind to port 0) and the socket is closed right
    away, so nothing is held once this returns. Every call probes afresh.

    Args:
        exclude: Ports that must not be returned
        host: Interface to bind on
        attempts: Probes to make before giving up

    Returns:
        A port number not in ``exclude``

    Raises:
        AllocationError: If every probe returned an excluded port
    """
    for attempt in range(1, attempts + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            port: int = sock.getsockname()[1]

        if port not in exclude:
            return port

        logger.debug("port_probe_excluded", port=port, attempt=attempt)

    raise AllocationError(
        f"Could not find a free port after {attempts} attempts",
        context={"excluded": len(exclude)},
    )


__all__ = ["is_port_free", "find_free_port"]
