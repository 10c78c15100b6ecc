"""CLI exit codes for consistent error reporting.

| Code   | Meaning                        |
|--------|--------------------------------|
| 0      | Success                        |
| 1      | Any dev-prism error            |
| 2      | Invalid command-line usage     |
| 128+N  | ``with-env`` child killed by N |

Apart from these, ``with-env`` exits with its child's own status.
"""


class ExitCode:
    """Standard exit codes for the dev-prism CLI."""

    SUCCESS = 0
    """Command completed successfully."""

    ERROR = 1
    """Validation, not-found, conflict, config or external process error."""

    INVALID_ARGS = 2
    """Invalid arguments provided (reported by the argument parser)."""

    SIGNAL_BASE = 128
    """Added to the signal number when a ``with-env`` child is killed."""


def get_exit_code_description(code: int) -> str:
    """
    Get a human-readable description for an exit code.

    Args:
        code: Exit code number

    Returns:
        Description string
    """
    descriptions = {
        0: "Success",
        1: "Error - see the message above or the logs",
        2: "Invalid arguments - check command syntax",
    }
    if code in descriptions:
        return descriptions[code]
    if code > ExitCode.SIGNAL_BASE:
        return f"Child process killed by signal {code - ExitCode.SIGNAL_BASE}"
    return f"Child process exited with {code}"


__all__ = ["ExitCode", "get_exit_code_description"]
