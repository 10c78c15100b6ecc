"""Durable session registry service."""

import re
from pathlib import Path

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from devprism.db.models import Reservation, SessionMode, SessionRecord
from devprism.db.repository import (
    PortAllocationRepository,
    ReservationRepository,
    SessionRepository,
)
from devprism.lib.errors import ConflictError, IdentifierExhaustedError, ValidationError
from devprism.lib.logging import get_logger

logger = get_logger(__name__)

MIN_SESSION_NUMBER = 1
MAX_SESSION_NUMBER = 999

_SESSION_ID_PATTERN = re.compile(r"^\d{1,3}$")


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a UNIQUE (or primary key) violation apart from other integrity errors."""
    return "UNIQUE constraint failed" in str(exc.orig)


def normalize_session_id(raw: str) -> str:
    """
    Validate a user-supplied session id and zero-pad it ("7" -> "007").

    Raises:
        ValidationError: If the id is not a number from 1 to 999
    """
    value = raw.strip()
    if not _SESSION_ID_PATTERN.match(value) or not (
        MIN_SESSION_NUMBER <= int(value) <= MAX_SESSION_NUMBER
    ):
        raise ValidationError(
            f"Invalid session ID {raw!r}: expected a number from 001 to 999",
            field="session_id",
        )
    return f"{int(value):03d}"


def find_next_session_id(used_ids: set[str]) -> str:
    """
    Smallest identifier from "001" to "999" not in ``used_ids``.

    Raises:
        IdentifierExhaustedError: If all 999 identifiers are used
    """
    for number in range(MIN_SESSION_NUMBER, MAX_SESSION_NUMBER + 1):
        session_id = f"{number:03d}"
        if session_id not in used_ids:
            return session_id
    raise IdentifierExhaustedError()


class SessionRegistry:
    """Create/read/destroy sessions and their port allocations.

    Each write method runs in, and commits, its own transaction. Uniqueness
    is enforced by the schema, so a racing writer surfaces as a
    ``ConflictError`` rather than a duplicate row.
    """

    def __init__(self, db_session: Session):
        self.db_session = db_session
        self.sessions = SessionRepository(db_session)
        self.allocations = PortAllocationRepository(db_session)
        self.reservations = ReservationRepository(db_session)

    # Session operations

    def insert(
        self,
        session_id: str,
        project_root: str,
        session_dir: str,
        branch: str = "",
        mode: str = SessionMode.DOCKER.value,
        in_place: bool = False,
    ) -> SessionRecord:
        """
        Insert a new active session.

        Raises:
            ConflictError: If an active session with the same id already
                exists in ``project_root``
        """
        try:
            mode = SessionMode(mode).value
        except ValueError as e:
            raise ValidationError(
                f"Invalid mode {mode!r}: expected docker or native", field="mode"
            ) from e

        try:
            record = self.sessions.create(
                session_id=session_id,
                project_root=project_root,
                session_dir=session_dir,
                branch=branch,
                mode=mode,
                in_place=in_place,
            )
            self.db_session.commit()
        except IntegrityError as e:
            self.db_session.rollback()
            if not is_unique_violation(e):
                raise
            raise ConflictError(
                f"Session {session_id} already exists in {project_root}",
                context={"session_id": session_id, "project_root": project_root},
            ) from e

        logger.info(
            "session_inserted",
            session_id=session_id,
            project_root=project_root,
            session_dir=session_dir,
        )
        return record

    def list_active(self, project_root: str) -> list[SessionRecord]:
        return self.sessions.get_active_by_project(project_root)

    def list_all_active(self) -> list[SessionRecord]:
        return self.sessions.get_all_active()

    def find_active(self, project_root: str, session_id: str) -> SessionRecord | None:
        """Active session by id, never a destroyed one."""
        return self.sessions.get_active(project_root, session_id)

    def find_by_dir(self, session_dir: str) -> SessionRecord | None:
        return self.sessions.get_active_by_dir(session_dir)

    def used_session_ids(self, project_root: str) -> set[str]:
        return self.sessions.get_used_ids(project_root)

    def next_session_id(self, project_root: str) -> str:
        try:
            return find_next_session_id(self.used_session_ids(project_root))
        except IdentifierExhaustedError as e:
            e.context["project_root"] = project_root
            raise

    def mark_destroyed(self, project_root: str, session_id: str) -> bool:
        """
        Soft-delete an active session and release its ports.

        Returns:
            False if the session is absent or already destroyed (no-op)
        """
        record = self.sessions.get_active(project_root, session_id)
        if record is None:
            return False

        released = self.allocations.delete_by_session(record.id)
        changed = self.sessions.mark_destroyed(project_root, session_id)
        self.db_session.commit()

        logger.info(
            "session_destroyed",
            session_id=session_id,
            project_root=project_root,
            ports_released=released,
        )
        return changed > 0

    def remove(self, project_root: str, session_id: str) -> bool:
        """
        Hard-delete every row for this id in ``project_root``, active or not.

        Port allocations are removed by the foreign key cascade.

        Returns:
            False if no row matched
        """
        pks = [record.id for record in self.sessions.get_by_id(project_root, session_id)]
        removed = self.sessions.delete_by_pk(pks)
        self.db_session.commit()

        if removed:
            logger.info("session_removed", session_id=session_id, project_root=project_root)
        return removed > 0

    def remove_records(self, records: list[SessionRecord]) -> int:
        """Hard-delete specific rows in one transaction."""
        removed = self.sessions.delete_by_pk([record.id for record in records])
        self.db_session.commit()
        return removed

    def list_prunable(self, project_root: str) -> list[SessionRecord]:
        """Destroyed rows plus active rows whose directory no longer exists."""
        orphaned = [
            record
            for record in self.sessions.get_active_by_project(project_root)
            if not Path(record.session_dir).exists()
        ]
        return [*self.sessions.get_destroyed_by_project(project_root), *orphaned]

    # Port operations

    def ports_for(self, record: SessionRecord) -> dict[str, int]:
        return {
            allocation.service: allocation.port
            for allocation in self.allocations.get_by_session(record.id)
        }

    def excluded_ports(self) -> set[int]:
        """Allocated ports system-wide plus reserved ports."""
        return self.allocations.get_allocated_ports() | self.reservations.get_reserved_ports()

    # Reservation operations

    def reserve(self, port: int, reason: str | None = None) -> Reservation:
        """
        Keep ``port`` out of future allocations.

        Raises:
            ValidationError: If the port is outside 1..65535
            ConflictError: If the port is already reserved or allocated
        """
        if not 1 <= port <= 65535:
            raise ValidationError(f"Invalid port: {port}", field="port")
        if port in self.allocations.get_allocated_ports():
            raise ConflictError(f"Port {port} is allocated to a session", context={"port": port})
        if self.reservations.get(port) is not None:
            raise ConflictError(f"Port {port} is already reserved", context={"port": port})

        try:
            reservation = self.reservations.create(port=port, reason=reason)
            self.db_session.commit()
        except IntegrityError as e:
            self.db_session.rollback()
            if not is_unique_violation(e):
                raise
            raise ConflictError(f"Port {port} is already reserved", context={"port": port}) from e

        logger.info("port_reserved", port=port, reason=reason)
        return reservation

    def unreserve(self, port: int) -> bool:
        removed = self.reservations.delete_port(port)
        self.db_session.commit()
        if removed:
            logger.info("port_unreserved", port=port)
        return removed > 0

    def list_reservations(self) -> list[Reservation]:
        return self.reservations.get_all_ordered()


__all__ = [
    "MIN_SESSION_NUMBER",
    "MAX_SESSION_NUMBER",
    "is_unique_violation",
    "normalize_session_id",
    "find_next_session_id",
    "SessionRegistry",
]
