"""Tests for 'dev-prism start', 'stop', 'logs' and 'stop-all'."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from devprism.cli.main import app
from devprism.lib.errors import ExternalProcessError


@pytest.fixture
def runner():
    """Create CLI test runner with a wide terminal so messages are not wrapped."""
    return CliRunner(env={"COLUMNS": "250"})


@pytest.fixture
def in_project(project_dir, monkeypatch):
    monkeypatch.chdir(project_dir)
    return project_dir


def _create(runner, *args):
    result = runner.invoke(app, ["create", "--in-place", *args])
    assert result.exit_code == 0, result.output
    return result


class TestStartStop:
    """Tests for starting and stopping a docker session."""

    def test_start_runs_compose_up_with_app_profiles(self, runner, in_project):
        _create(runner)

        with patch("devprism.lib.docker.up") as mock_up:
            result = runner.invoke(app, ["start"])

        assert result.exit_code == 0, result.output
        assert "Session 001 started" in result.output
        mock_up.assert_called_once_with(
            in_project, "docker-compose.session.yml", ".env.session", profiles=["web"]
        )

    def test_start_without_leaves_app_out(self, runner, in_project):
        _create(runner)

        with patch("devprism.lib.docker.up") as mock_up:
            result = runner.invoke(app, ["start", "--without", "web"])

        assert result.exit_code == 0, result.output
        assert mock_up.call_args.kwargs["profiles"] == []

    def test_start_native_session_exits_1(self, runner, in_project):
        _create(runner, "--mode", "native")

        with patch("devprism.lib.docker.up") as mock_up:
            result = runner.invoke(app, ["start"])

        assert result.exit_code == 1
        assert "native mode" in result.output
        mock_up.assert_not_called()

    def test_start_unknown_session_exits_1(self, runner, in_project):
        result = runner.invoke(app, ["start", "7"])

        assert result.exit_code == 1
        assert "Session 007 not found" in result.output

    def test_stop_runs_compose_stop(self, runner, in_project):
        _create(runner)

        with patch("devprism.lib.docker.stop") as mock_stop:
            result = runner.invoke(app, ["stop", "1"])

        assert result.exit_code == 0, result.output
        assert "Session 001 stopped" in result.output
        mock_stop.assert_called_once()

    def test_compose_failure_exits_1(self, runner, in_project):
        _create(runner)
        failure = ExternalProcessError(["docker", "compose", "up"], 1, "no such service")

        with patch("devprism.lib.docker.up", side_effect=failure):
            result = runner.invoke(app, ["start"])

        assert result.exit_code == 1

    def test_logs_passes_tail(self, runner, in_project):
        _create(runner)

        with patch("devprism.lib.docker.logs") as mock_logs:
            result = runner.invoke(app, ["logs", "--tail", "10"])

        assert result.exit_code == 0, result.output
        assert mock_logs.call_args.kwargs["tail"] == 10


class TestStopAll:
    def test_nothing_running(self, runner, in_project):
        _create(runner)

        with patch("devprism.lib.docker.is_running", return_value=False):
            result = runner.invoke(app, ["stop-all"])

        assert result.exit_code == 0, result.output
        assert "No running sessions" in result.output

    def test_stops_running_sessions(self, runner, in_project):
        _create(runner)

        with patch("devprism.lib.docker.is_running", return_value=True), patch(
            "devprism.lib.docker.stop"
        ) as mock_stop:
            result = runner.invoke(app, ["stop-all"])

        assert result.exit_code == 0, result.output
        assert "Session 001 stopped" in result.output
        mock_stop.assert_called_once()
