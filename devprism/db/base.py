"""SQLAlchemy declarative base."""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all registry models."""

    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
