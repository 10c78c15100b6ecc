"""PortAllocation model for exclusively-owned service ports."""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from devprism.db.base import Base


class PortAllocation(Base):
    """One service's port within one session.

    ``port`` is unique across the whole table, i.e. across every session of
    every project sharing the registry file.
    """

    __tablename__ = "port_allocations"

    session_pk: Mapped[int] = mapped_column(
        Integer, ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True
    )
    service: Mapped[str] = mapped_column(String(128), primary_key=True)
    port: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    # Relationships
    session: Mapped["SessionRecord"] = relationship("SessionRecord", back_populates="ports")


# Forward references
from devprism.db.models.session import SessionRecord  # noqa: E402
