"""Tests for session creation and teardown (git and Docker mocked)."""

import shlex
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from devprism.core.allocator import PortAllocator
from devprism.core.lifecycle import SessionLifecycle, app_profiles, effective_project_root
from devprism.core.resolver import ResolvedSession
from devprism.lib.envfile import read_env_file
from devprism.lib.errors import AllocationError, ConflictError, ExternalProcessError, ValidationError
from devprism.lib.project_config import ProjectConfig, load_project_config


def _fake_create_worktree(project_root, worktree_path, branch):
    worktree_path.mkdir(parents=True)
    return worktree_path


@pytest.fixture
def config(project_dir):
    return load_project_config(project_dir)


@pytest.fixture
def lifecycle(registry, project_dir, config, prober):
    return SessionLifecycle(registry, project_dir, config, PortAllocator(registry, prober))


@pytest.fixture
def mock_git():
    with patch("devprism.lib.git.create_worktree", side_effect=_fake_create_worktree) as create, patch(
        "devprism.lib.git.remove_worktree"
    ) as remove:
        yield create, remove


class TestCreate:
    """Tests for the create flow."""

    def test_worktree_session(self, lifecycle, registry, project_dir, mock_git):
        create_worktree, _ = mock_git

        created = lifecycle.create()

        expected_dir = project_dir.parent / "shop-sessions" / "session-001"
        record = created.record
        assert record.session_id == "001"
        assert Path(record.session_dir) == expected_dir
        assert record.branch.startswith("session/")
        assert record.branch.endswith("/001")
        create_worktree.assert_called_once_with(project_dir, expected_dir, record.branch)
        assert registry.find_active(str(project_dir), "001") is not None

    def test_env_file_is_written(self, lifecycle, mock_git):
        created = lifecycle.create()

        env = read_env_file(created.env_file)
        assert created.env_file.name == ".env.session"
        assert env["SESSION_ID"] == "001"
        assert env["COMPOSE_PROJECT_NAME"] == "shop-001"
        assert env["APP_PORT"] == str(created.ports["APP_PORT"])
        assert env["DATABASE_URL"] == f"postgres://localhost:{created.ports['DB_PORT']}/shop"
        assert created.env_file.read_text().startswith("# Auto-generated for session 001")

    def test_ports_are_allocated_and_distinct(self, lifecycle, registry, mock_git):
        first = lifecycle.create()
        second = lifecycle.create()

        assert second.record.session_id == "002"
        assert set(first.ports.values()).isdisjoint(second.ports.values())
        assert registry.ports_for(second.record) == second.ports

    def test_explicit_id_and_branch(self, lifecycle, mock_git):
        created = lifecycle.create(session_id="7", branch="feature/login")

        assert created.record.session_id == "007"
        assert created.record.branch == "feature/login"

    def test_in_place_session(self, lifecycle, project_dir, mock_git):
        create_worktree, _ = mock_git

        created = lifecycle.create(in_place=True)

        create_worktree.assert_not_called()
        assert created.record.in_place
        assert created.record.session_dir == str(project_dir)
        assert created.record.branch == ""
        assert (project_dir / ".env.session").exists()

    def test_second_in_place_session_is_a_conflict(self, lifecycle, mock_git):
        lifecycle.create(in_place=True)

        with pytest.raises(ConflictError):
            lifecycle.create(in_place=True)

    def test_duplicate_id_is_rejected_before_git(self, lifecycle, mock_git):
        create_worktree, _ = mock_git
        lifecycle.create(session_id="1")
        create_worktree.reset_mock()

        with pytest.raises(ConflictError):
            lifecycle.create(session_id="001")
        create_worktree.assert_not_called()

    def test_malformed_id(self, lifecycle, mock_git):
        with pytest.raises(ValidationError):
            lifecycle.create(session_id="abc")

    def test_offset_ports_are_not_stored(self, registry, project_dir, prober, mock_git):
        config = ProjectConfig(ports={"APP": 0, "DB": 10})
        lifecycle = SessionLifecycle(registry, project_dir, config, PortAllocator(registry, prober))

        created = lifecycle.create(session_id="2")

        assert created.ports == {"APP": 47200, "DB": 47210}
        assert registry.ports_for(created.record) == {}
        assert prober.calls == []


class TestCreateCompensation:
    """Tests for cleanup after a failed create."""

    def test_allocation_failure_undoes_row_and_worktree(self, registry, project_dir, config, mock_git):
        _, remove_worktree = mock_git

        def no_ports(excluded):
            raise AllocationError("no free port")

        lifecycle = SessionLifecycle(registry, project_dir, config, PortAllocator(registry, no_ports))

        with pytest.raises(AllocationError):
            lifecycle.create()

        assert registry.sessions.get_by_id(str(project_dir), "001") == []
        remove_worktree.assert_called_once()
        assert registry.next_session_id(str(project_dir)) == "001"

    def test_failure_keeps_destroyed_rows_of_same_id(self, registry, project_dir, config, mock_git):
        """Only the row inserted by the failed create is deleted."""
        root = str(project_dir)
        old = registry.insert(session_id="001", project_root=root, session_dir="/old/session-001")
        old_pk = old.id
        registry.mark_destroyed(root, "001")

        def no_ports(excluded):
            raise AllocationError("no free port")

        lifecycle = SessionLifecycle(registry, project_dir, config, PortAllocator(registry, no_ports))

        with pytest.raises(AllocationError):
            lifecycle.create(session_id="1")

        rows = registry.sessions.get_by_id(root, "001")
        assert [row.id for row in rows] == [old_pk]
        assert rows[0].destroyed_at is not None
        assert registry.find_active(root, "001") is None

    def test_worktree_failure_leaves_no_row(self, lifecycle, registry, project_dir):
        with patch(
            "devprism.lib.git.create_worktree",
            side_effect=ExternalProcessError(["git", "worktree", "add"], 128, "fatal"),
        ), patch("devprism.lib.git.remove_worktree") as remove_worktree:
            with pytest.raises(ExternalProcessError):
                lifecycle.create()

        remove_worktree.assert_not_called()
        assert registry.list_active(str(project_dir)) == []

    def test_service_start_failure_stops_and_cleans_up(self, lifecycle, registry, project_dir, mock_git):
        _, remove_worktree = mock_git
        with patch(
            "devprism.lib.docker.up",
            side_effect=ExternalProcessError(["docker", "compose", "up"], 1),
        ), patch("devprism.lib.docker.stop") as stop:
            with pytest.raises(ExternalProcessError):
                lifecycle.create(start_services=True)

        stop.assert_called_once()
        remove_worktree.assert_called_once()
        assert registry.excluded_ports() == set()

    def test_in_place_failure_removes_env_file(self, lifecycle, registry, project_dir):
        with patch("devprism.lib.docker.up", side_effect=ExternalProcessError(["docker"], 1)), patch(
            "devprism.lib.docker.stop"
        ):
            with pytest.raises(ExternalProcessError):
                lifecycle.create(in_place=True, start_services=True)

        assert not (project_dir / ".env.session").exists()
        assert registry.list_active(str(project_dir)) == []


class TestSetupAndServices:
    """Tests for setup commands and optional service start."""

    def test_setup_runs_with_session_env(self, registry, project_dir, prober, mock_git):
        script = "import os; open('setup.txt', 'w').write(os.environ['APP_PORT'])"
        config = ProjectConfig(
            ports=["APP_PORT"],
            setup=[f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"],
        )
        lifecycle = SessionLifecycle(registry, project_dir, config, PortAllocator(registry, prober))

        created = lifecycle.create(in_place=True)

        assert created.failed_setup == []
        assert (project_dir / "setup.txt").read_text() == str(created.ports["APP_PORT"])

    def test_failing_setup_is_reported_not_raised(self, registry, project_dir, prober, mock_git):
        failing = f"{shlex.quote(sys.executable)} -c 'raise SystemExit(2)'"
        config = ProjectConfig(ports=["APP_PORT"], setup=[failing, "no-such-binary-xyz --flag"])
        lifecycle = SessionLifecycle(registry, project_dir, config, PortAllocator(registry, prober))

        created = lifecycle.create(in_place=True)

        assert created.failed_setup == [failing, "no-such-binary-xyz --flag"]
        assert created.record.is_active

    def test_start_services_uses_app_profiles(self, lifecycle, mock_git):
        with patch("devprism.lib.docker.up") as up:
            created = lifecycle.create(start_services=True, without=["web"])

        assert created.services_started
        assert up.call_args.kwargs["profiles"] == []

    def test_native_mode_never_starts_services(self, lifecycle, mock_git):
        with patch("devprism.lib.docker.up") as up:
            created = lifecycle.create(mode="native", start_services=True)

        up.assert_not_called()
        assert not created.services_started


class TestDestroy:
    """Tests for teardown."""

    def test_destroy_removes_worktree_and_releases_ports(self, lifecycle, registry, project_dir, mock_git):
        _, remove_worktree = mock_git
        created = lifecycle.create()

        warnings = lifecycle.destroy(created.record)

        assert warnings == []
        remove_worktree.assert_called_once_with(
            project_dir, Path(created.record.session_dir), created.record.branch
        )
        assert registry.find_active(str(project_dir), "001") is None
        assert registry.excluded_ports() == set()

    def test_worktree_failure_is_a_warning(self, lifecycle, registry, project_dir, mock_git):
        """A failed worktree removal still marks the session destroyed."""
        _, remove_worktree = mock_git
        remove_worktree.side_effect = ExternalProcessError(["git", "worktree", "remove"], 1, "locked")
        created = lifecycle.create()

        warnings = lifecycle.destroy(created.record)

        assert len(warnings) == 1
        assert "worktree" in warnings[0]
        assert registry.find_active(str(project_dir), "001") is None

    def test_docker_session_is_stopped(self, lifecycle, config, mock_git):
        created = lifecycle.create()
        (Path(created.record.session_dir) / config.compose_file).write_text("services: {}\n")

        with patch(
            "devprism.lib.docker.stop",
            side_effect=ExternalProcessError(["docker", "compose", "stop"], 1),
        ) as stop:
            warnings = lifecycle.destroy(created.record)

        stop.assert_called_once()
        assert any("stop services" in w for w in warnings)

    def test_in_place_destroy_keeps_directory(self, lifecycle, project_dir, mock_git):
        _, remove_worktree = mock_git
        created = lifecycle.create(in_place=True, mode="native")

        lifecycle.destroy(created.record)

        remove_worktree.assert_not_called()
        assert project_dir.is_dir()
        assert not (project_dir / ".env.session").exists()

    def test_id_can_be_recreated_after_destroy(self, lifecycle, mock_git):
        created = lifecycle.create(session_id="5")
        lifecycle.destroy(created.record)

        with patch("devprism.lib.git.create_worktree"):
            recreated = lifecycle.create(session_id="5")

        assert recreated.record.session_id == "005"
        assert recreated.record.id != created.record.id


class TestStopAllAndPrune:
    def test_stop_all_only_stops_running_sessions(self, lifecycle, mock_git):
        first = lifecycle.create()
        lifecycle.create()

        def running(session_dir, compose_file, env_file):
            return session_dir == Path(first.record.session_dir)

        with patch("devprism.lib.docker.is_running", side_effect=running), patch(
            "devprism.lib.docker.stop"
        ) as stop:
            stopped, warnings = lifecycle.stop_all()

        assert stopped == ["001"]
        assert warnings == []
        stop.assert_called_once()

    def test_prune_removes_rows(self, lifecycle, registry, project_dir, mock_git):
        created = lifecycle.create()
        lifecycle.destroy(created.record)

        removed = lifecycle.prune(registry.list_prunable(str(project_dir)))

        assert removed == 1
        assert registry.list_prunable(str(project_dir)) == []


class TestHelpers:
    def test_effective_root_prefers_session_project(self, registry, project_dir, tmp_path):
        record = registry.insert(
            session_id="001", project_root=str(project_dir), session_dir=str(tmp_path / "wt")
        )

        resolved = ResolvedSession(project_root=tmp_path / "wt", session=record)

        assert effective_project_root(resolved) == project_dir
        assert effective_project_root(ResolvedSession(project_dir, None)) == project_dir

    def test_app_profiles(self):
        config = ProjectConfig(apps={"web": {}, "api": {}, "worker": {}})

        assert app_profiles(config) == ["web", "api", "worker"]
        assert app_profiles(config, ["api"]) == ["web", "worker"]
