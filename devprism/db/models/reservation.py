"""Reservation model for ports excluded from allocation."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from devprism.db.base import Base, utcnow


class Reservation(Base):
    """A port kept out of allocation by policy, independent of any session."""

    __tablename__ = "reservations"

    port: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
