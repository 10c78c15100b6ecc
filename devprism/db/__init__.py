"""Registry storage: SQLite via SQLAlchemy, opened fresh per command.

Nothing here is cached across calls. Every command opens the registry file,
works inside its own transactions and closes it again, relying on SQLite's
locking (WAL + busy timeout) for concurrent invocations.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from devprism.db.base import Base
from devprism.db import models  # noqa: F401  (registers tables on Base.metadata)
from devprism.lib.config import get_settings
from devprism.lib.logging import get_logger

logger = get_logger(__name__)


def create_registry_engine(path: Path, busy_timeout_seconds: float) -> Engine:
    """
    Create an engine for the registry file.

    Every new connection enables WAL journaling, foreign keys (needed for the
    port allocation cascade) and a busy timeout so that concurrent commands
    queue instead of failing on a locked database.
    """
    engine = create_engine(
        f"sqlite:///{path}",
        poolclass=NullPool,
        connect_args={"timeout": busy_timeout_seconds},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_seconds * 1000)}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.close()

    return engine


def registry_exists(path: Path | None = None) -> bool:
    """Whether the registry file has been created yet."""
    return (path or get_settings().resolved_registry_path).exists()


@contextmanager
def open_registry(path: Path | None = None) -> Iterator[Session]:
    """
    Open the registry for the duration of one command.

    Creates the file and schema on first use. Uncommitted work is rolled
    back on error; the engine is always disposed on exit.

    Example:
        with open_registry() as db:
            SessionRegistry(db).list_active("/work/app")
    """
    settings = get_settings()
    db_path = (path or settings.resolved_registry_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_registry_engine(db_path, settings.busy_timeout_seconds)
    try:
        Base.metadata.create_all(engine)
        with Session(engine, expire_on_commit=False) as db_session:
            try:
                yield db_session
            except Exception:
                db_session.rollback()
                raise
    finally:
        engine.dispose()


__all__ = ["Base", "create_registry_engine", "registry_exists", "open_registry"]
