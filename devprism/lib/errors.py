"""Exception hierarchy with contextual error information."""

from typing import Any


class DevPrismError(Exception):
    """Base exception for dev-prism errors with context."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        """
        Initialize dev-prism error.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional context for logging
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.context = context or {}


class ValidationError(DevPrismError):
    """Malformed input rejected before the registry is touched."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, error_code="VALIDATION_ERROR", context=ctx)


class ConfigError(DevPrismError):
    """Project configuration file is unreadable or has the wrong shape."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            context={"path": path} if path else None,
        )


class NotFoundError(DevPrismError):
    """Resource not found error."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        ctx = context or {}
        ctx["resource_type"] = resource_type
        ctx["resource_id"] = resource_id
        super().__init__(
            message=message or f"{resource_type} not found: {resource_id}",
            error_code="NOT_FOUND",
            context=ctx,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class NoProjectRootError(NotFoundError):
    """No project config marker in the start directory or any of its parents."""

    def __init__(self, start_dir: str):
        super().__init__(
            resource_type="project",
            resource_id=start_dir,
            message=f"Could not find prism.config.yaml in {start_dir} or any parent directory",
        )
        self.error_code = "NO_PROJECT_ROOT"


class ConflictError(DevPrismError):
    """Uniqueness violation (e.g., an active session with the same id)."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, error_code="CONFLICT", context=context)


class PortConflictError(ConflictError):
    """A concurrent allocator committed one of the probed ports first."""

    def __init__(self, session_id: str, ports: list[int]):
        super().__init__(
            message=f"Port allocation for session {session_id} lost a race on one of {ports}",
            context={"session_id": session_id, "ports": ports},
        )
        self.error_code = "PORT_CONFLICT"


class AllocationError(DevPrismError):
    """Port allocation could not be completed."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message=message, error_code="ALLOCATION_FAILED", context=context)


class IdentifierExhaustedError(DevPrismError):
    """Every session identifier from 001 to 999 is in use."""

    def __init__(self, project_root: str | None = None):
        super().__init__(
            message="No available session IDs (001-999 all in use)",
            error_code="NO_IDENTIFIERS",
            context={"project_root": project_root} if project_root else None,
        )


class ExternalProcessError(DevPrismError):
    """A git, Docker or setup command failed."""

    def __init__(
        self,
        command: list[str],
        returncode: int | None,
        stderr: str | None = None,
    ):
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(
            message=f"Command failed ({returncode}): {' '.join(command)}{detail}",
            error_code="EXTERNAL_PROCESS_ERROR",
            context={"command": command, "returncode": returncode},
        )
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


__all__ = [
    "DevPrismError",
    "ValidationError",
    "ConfigError",
    "NotFoundError",
    "NoProjectRootError",
    "ConflictError",
    "PortConflictError",
    "AllocationError",
    "IdentifierExhaustedError",
    "ExternalProcessError",
]
