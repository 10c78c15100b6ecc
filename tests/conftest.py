"""Pytest configuration and fixtures."""

import textwrap
from collections.abc import Collection, Iterator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from devprism.core.registry import SessionRegistry
from devprism.db import open_registry
from devprism.lib.config import get_settings

PROJECT_CONFIG = textwrap.dedent(
    """\
    projectName: shop
    ports:
      - APP_PORT
      - DB_PORT
    env:
      DATABASE_URL: postgres://localhost:${DB_PORT}/shop
    apps:
      web:
        API_URL: http://localhost:${APP_PORT}
        VITE_PORT: "${APP_PORT}"
    """
)


@pytest.fixture(autouse=True)
def dev_prism_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the registry and logs at a per-test directory."""
    home = tmp_path / "dev-prism-home"
    monkeypatch.setenv("DEV_PRISM_HOME", str(home))
    monkeypatch.delenv("DEV_PRISM_REGISTRY_PATH", raising=False)
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()


@pytest.fixture
def registry_path(dev_prism_home: Path) -> Path:
    return dev_prism_home / "sessions.db"


@pytest.fixture
def db_session(registry_path: Path) -> Iterator[Session]:
    """Open a real SQLite registry in the test's temporary directory."""
    with open_registry(registry_path) as session:
        yield session


@pytest.fixture
def registry(db_session: Session) -> SessionRegistry:
    return SessionRegistry(db_session)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project root holding a prism.config.yaml."""
    root = tmp_path / "shop"
    root.mkdir()
    (root / "prism.config.yaml").write_text(PROJECT_CONFIG, encoding="utf-8")
    return root.resolve()


class SequentialProber:
    """Deterministic stand-in for the OS port prober.

    Hands out increasing ports, skipping anything in the exclusion set, and
    records every exclusion set it was called with.
    """

    def __init__(self, start: int = 50000):
        self.next_port = start
        self.calls: list[set[int]] = []

    def __call__(self, excluded: Collection[int]) -> int:
        self.calls.append(set(excluded))
        while self.next_port in excluded:
            self.next_port += 1
        port = self.next_port
        self.next_port += 1
        return port


@pytest.fixture
def prober() -> SequentialProber:
    return SequentialProber()
