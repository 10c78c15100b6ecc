"""Conflict-safe port allocation."""

from collections.abc import Callable, Collection, Sequence
from functools import partial

from sqlalchemy.exc import IntegrityError

from devprism.core.registry import SessionRegistry, is_unique_violation
from devprism.db.models import PortAllocation, SessionRecord
from devprism.lib.config import get_settings
from devprism.lib.errors import ConflictError, PortConflictError
from devprism.lib.logging import get_logger
from devprism.lib.ports import find_free_port

logger = get_logger(__name__)

PortProber = Callable[[Collection[int]], int]

# First attempt plus exactly one retry
MAX_ATTEMPTS = 2


def _is_port_violation(exc: IntegrityError) -> bool:
    """True for UNIQUE(port), as opposed to the (session, service) primary key."""
    return f"{PortAllocation.__tablename__}.port" in str(exc.orig)


class PortAllocator:
    """Assign OS-free ports to a session's services and commit them atomically.

    Probing the OS happens outside the transaction, so another command may
    commit one of the same ports in between. The schema's ``UNIQUE(port)``
    catches that; the allocator then re-reads the exclusion set and tries
    once more. A second conflict is raised to the caller.
    """

    def __init__(self, registry: SessionRegistry, prober: PortProber | None = None):
        settings = get_settings()
        self.registry = registry
        self.prober = prober or partial(
            find_free_port,
            host=settings.port_probe_host,
            attempts=settings.port_probe_attempts,
        )

    def allocate(self, record: SessionRecord, services: Sequence[str]) -> dict[str, int]:
        """
        Allocate one port per service for ``record``.

        Args:
            record: Session that will own the ports
            services: Logical service names, in order

        Returns:
            Service name to port, in input order

        Raises:
            ConflictError: If the session already has allocations
            PortConflictError: If both attempts lost a race on a port
            AllocationError: If the prober could not find a free port
        """
        if not services:
            return {}

        existing = self.registry.ports_for(record)
        if existing:
            raise ConflictError(
                f"Session {record.session_id} already has ports allocated: {existing}",
                context={"session_id": record.session_id, "ports": existing},
            )

        for attempt in range(1, MAX_ATTEMPTS + 1):
            ports = self._probe(services)
            try:
                self._commit(record, ports)
            except PortConflictError:
                if attempt == MAX_ATTEMPTS:
                    logger.error(
                        "allocation_conflict_fatal",
                        session_id=record.session_id,
                        attempts=attempt,
                    )
                    raise
                logger.warning(
                    "allocation_conflict_retry",
                    session_id=record.session_id,
                    attempt=attempt,
                    ports=ports,
                )
                continue

            logger.info("ports_allocated", session_id=record.session_id, ports=ports)
            return ports

        # Should never reach here, but satisfy type checker
        raise RuntimeError("Unexpected state in allocation loop")

    def _probe(self, services: Sequence[str]) -> dict[str, int]:
        """Probe one port per service against a freshly read exclusion set."""
        excluded = self.registry.excluded_ports()
        ports: dict[str, int] = {}
        for service in services:
            port = self.prober(excluded)
            # Keep services of this call from colliding with each other
            excluded.add(port)
            ports[service] = port
        return ports

    def _commit(self, record: SessionRecord, ports: dict[str, int]) -> None:
        db_session = self.registry.db_session
        try:
            self.registry.allocations.add_all(record.id, ports)
            db_session.commit()
        except IntegrityError as e:
            db_session.rollback()
            if not is_unique_violation(e):
                raise
            if not _is_port_violation(e):
                raise ConflictError(
                    f"Session {record.session_id} already has a port for one of {sorted(ports)}",
                    context={"session_id": record.session_id, "services": sorted(ports)},
                ) from e
            raise PortConflictError(record.session_id, list(ports.values())) from e


__all__ = ["MAX_ATTEMPTS", "PortAllocator", "PortProber"]
