"""Repository pattern for registry operations."""

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from devprism.db.base import Base, utcnow
from devprism.db.models import PortAllocation, Reservation, SessionRecord

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations.

    Repositories only flush; committing is left to the caller so that
    several writes can share one transaction.
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def create(self, **kwargs: Any) -> T:
        """Create a new entity."""
        entity = self.model(**kwargs)
        self.session.add(entity)
        self.session.flush()
        return entity

    def get(self, id: Any) -> T | None:
        """Get entity by primary key."""
        return self.session.get(self.model, id)

    def get_all(self) -> list[T]:
        """Get all entities."""
        result = self.session.execute(select(self.model))
        return list(result.scalars().all())


class SessionRepository(BaseRepository[SessionRecord]):
    """Repository for SessionRecord operations."""

    def __init__(self, session: Session):
        super().__init__(session, SessionRecord)

    def get_active(self, project_root: str, session_id: str) -> SessionRecord | None:
        result = self.session.execute(
            select(SessionRecord).where(
                SessionRecord.project_root == project_root,
                SessionRecord.session_id == session_id,
                SessionRecord.destroyed_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    def get_by_id(self, project_root: str, session_id: str) -> list[SessionRecord]:
        """Get every row, active or destroyed, for an id within a project."""
        result = self.session.execute(
            select(SessionRecord).where(
                SessionRecord.project_root == project_root,
                SessionRecord.session_id == session_id,
            )
        )
        return list(result.scalars().all())

    def get_active_by_dir(self, session_dir: str) -> SessionRecord | None:
        """Get the active session living in ``session_dir`` (newest first)."""
        result = self.session.execute(
            select(SessionRecord)
            .where(
                SessionRecord.session_dir == session_dir,
                SessionRecord.destroyed_at.is_(None),
            )
            .order_by(SessionRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    def get_active_by_project(self, project_root: str) -> list[SessionRecord]:
        """Get active sessions of a project ordered by session id."""
        result = self.session.execute(
            select(SessionRecord)
            .where(
                SessionRecord.project_root == project_root,
                SessionRecord.destroyed_at.is_(None),
            )
            .order_by(SessionRecord.session_id)
        )
        return list(result.scalars().all())

    def get_all_active(self) -> list[SessionRecord]:
        result = self.session.execute(
            select(SessionRecord)
            .where(SessionRecord.destroyed_at.is_(None))
            .order_by(SessionRecord.project_root, SessionRecord.session_id)
        )
        return list(result.scalars().all())

    def get_destroyed_by_project(self, project_root: str) -> list[SessionRecord]:
        result = self.session.execute(
            select(SessionRecord)
            .where(
                SessionRecord.project_root == project_root,
                SessionRecord.destroyed_at.is_not(None),
            )
            .order_by(SessionRecord.session_id, SessionRecord.id)
        )
        return list(result.scalars().all())

    def get_used_ids(self, project_root: str) -> set[str]:
        result = self.session.execute(
            select(SessionRecord.session_id).where(
                SessionRecord.project_root == project_root,
                SessionRecord.destroyed_at.is_(None),
            )
        )
        return set(result.scalars().all())

    def mark_destroyed(self, project_root: str, session_id: str) -> int:
        """Set ``destroyed_at`` on the active row; return the number of rows changed."""
        result = self.session.execute(
            update(SessionRecord)
            .where(
                SessionRecord.project_root == project_root,
                SessionRecord.session_id == session_id,
                SessionRecord.destroyed_at.is_(None),
            )
            .values(destroyed_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def delete_by_pk(self, pks: list[int]) -> int:
        """Hard-delete rows; port allocations go with them through the FK cascade."""
        if not pks:
            return 0
        result = self.session.execute(
            delete(SessionRecord)
            .where(SessionRecord.id.in_(pks))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


class PortAllocationRepository(BaseRepository[PortAllocation]):
    """Repository for PortAllocation operations."""

    def __init__(self, session: Session):
        super().__init__(session, PortAllocation)

    def get_by_session(self, session_pk: int) -> list[PortAllocation]:
        result = self.session.execute(
            select(PortAllocation)
            .where(PortAllocation.session_pk == session_pk)
            .order_by(PortAllocation.service)
        )
        return list(result.scalars().all())

    def get_allocated_ports(self) -> set[int]:
        """Every allocated port, system-wide."""
        result = self.session.execute(select(PortAllocation.port))
        return set(result.scalars().all())

    def add_all(self, session_pk: int, ports: dict[str, int]) -> list[PortAllocation]:
        allocations = [
            PortAllocation(session_pk=session_pk, service=service, port=port)
            for service, port in ports.items()
        ]
        self.session.add_all(allocations)
        self.session.flush()
        return allocations

    def delete_by_session(self, session_pk: int) -> int:
        result = self.session.execute(
            delete(PortAllocation)
            .where(PortAllocation.session_pk == session_pk)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


class ReservationRepository(BaseRepository[Reservation]):
    """Repository for Reservation operations."""

    def __init__(self, session: Session):
        super().__init__(session, Reservation)

    def get_reserved_ports(self) -> set[int]:
        result = self.session.execute(select(Reservation.port))
        return set(result.scalars().all())

    def get_all_ordered(self) -> list[Reservation]:
        result = self.session.execute(select(Reservation).order_by(Reservation.port))
        return list(result.scalars().all())

    def delete_port(self, port: int) -> int:
        result = self.session.execute(delete(Reservation).where(Reservation.port == port))
        return result.rowcount or 0
