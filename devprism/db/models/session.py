"""Session model for isolated working contexts."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from devprism.db.base import Base, utcnow


class SessionMode(str, Enum):
    """Where a session's apps run."""

    DOCKER = "docker"
    NATIVE = "native"


class SessionRecord(Base):
    """A session row.

    ``session_id`` is the short numeric id ("001"); it is unique per project
    among active rows only, so a destroyed id can be reused. ``id`` is a
    surrogate key that port allocations hang off.
    """

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(16), nullable=False)
    project_root: Mapped[str] = mapped_column(Text, nullable=False)
    session_dir: Mapped[str] = mapped_column(Text, nullable=False)
    branch: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mode: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SessionMode.DOCKER.value
    )
    in_place: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    destroyed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    ports: Mapped[list["PortAllocation"]] = relationship(
        "PortAllocation",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PortAllocation.service",
    )

    __table_args__ = (
        Index(
            "uq_sessions_active_session_id",
            "session_id",
            "project_root",
            unique=True,
            sqlite_where=text("destroyed_at IS NULL"),
        ),
        Index("ix_sessions_project_root", "project_root"),
        Index("ix_sessions_session_dir", "session_dir"),
    )

    @property
    def is_active(self) -> bool:
        return self.destroyed_at is None

    def __repr__(self) -> str:
        return (
            f"SessionRecord(session_id={self.session_id!r}, project_root={self.project_root!r}, "
            f"active={self.is_active})"
        )


# Forward references for type hints
from devprism.db.models.port_allocation import PortAllocation  # noqa: E402
