"""Tests for git worktree helpers (subprocess mocked)."""

import subprocess
from datetime import date
from unittest.mock import patch

import pytest

from devprism.lib import git
from devprism.lib.errors import ExternalProcessError, ValidationError


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestDefaultBranchName:
    def test_uses_date_and_id(self):
        assert git.default_branch_name("007", today=date(2026, 3, 4)) == "session/2026-03-04/007"


class TestCreateWorktree:
    """Tests for worktree creation."""

    def test_new_branch_is_created_from_head(self, tmp_path):
        target = tmp_path / "sessions" / "session-001"
        calls = []

        def fake_run(command, **kwargs):
            calls.append(command)
            if "rev-parse" in command:
                return _completed(returncode=1)
            return _completed()

        with patch("devprism.lib.git.subprocess.run", side_effect=fake_run):
            git.create_worktree(tmp_path, target, "session/x/001")

        assert calls[-1] == [
            "git", "worktree", "add", "-b", "session/x/001", str(target), "HEAD",
        ]
        assert target.parent.is_dir()

    def test_existing_branch_is_checked_out(self, tmp_path):
        target = tmp_path / "session-001"
        calls = []

        def fake_run(command, **kwargs):
            calls.append(command)
            return _completed()

        with patch("devprism.lib.git.subprocess.run", side_effect=fake_run):
            git.create_worktree(tmp_path, target, "feature")

        assert calls[-1] == ["git", "worktree", "add", str(target), "feature"]

    def test_existing_directory_is_rejected(self, tmp_path):
        """An existing target directory is refused before git runs."""
        with patch("devprism.lib.git.subprocess.run") as mock_run:
            with pytest.raises(ValidationError):
                git.create_worktree(tmp_path, tmp_path, "feature")
        mock_run.assert_not_called()

    def test_git_failure_raises_external_process_error(self, tmp_path):
        with patch(
            "devprism.lib.git.subprocess.run",
            return_value=_completed(returncode=128, stderr="fatal: not a git repository"),
        ):
            with pytest.raises(ExternalProcessError) as exc_info:
                git.create_worktree(tmp_path, tmp_path / "wt", "feature")
        assert "not a git repository" in exc_info.value.message

    def test_missing_git_binary(self, tmp_path):
        with patch("devprism.lib.git.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(ExternalProcessError) as exc_info:
                git.create_worktree(tmp_path, tmp_path / "wt", "feature")
        assert exc_info.value.returncode is None


class TestRemoveWorktree:
    """Tests for worktree removal."""

    def test_removes_worktree_and_branch(self, tmp_path):
        target = tmp_path / "wt"
        target.mkdir()
        calls = []

        def fake_run(command, **kwargs):
            calls.append(command)
            return _completed()

        with patch("devprism.lib.git.subprocess.run", side_effect=fake_run):
            git.remove_worktree(tmp_path, target, "session/x/001")

        assert ["git", "worktree", "remove", "--force", str(target)] in calls
        assert ["git", "branch", "-D", "session/x/001"] in calls

    def test_falls_back_to_deleting_directory(self, tmp_path):
        """A failing `worktree remove` deletes the directory and prunes."""
        target = tmp_path / "wt"
        target.mkdir()
        calls = []

        def fake_run(command, **kwargs):
            calls.append(command)
            if "remove" in command:
                return _completed(returncode=1, stderr="locked")
            return _completed()

        with patch("devprism.lib.git.subprocess.run", side_effect=fake_run):
            git.remove_worktree(tmp_path, target)

        assert not target.exists()
        assert ["git", "worktree", "prune"] in calls

    def test_branch_delete_failure_is_ignored(self, tmp_path):
        def fake_run(command, **kwargs):
            if "branch" in command:
                return _completed(returncode=1, stderr="branch not found")
            return _completed()

        with patch("devprism.lib.git.subprocess.run", side_effect=fake_run):
            git.remove_worktree(tmp_path, tmp_path / "gone", "session/x/001")
