"""
Tests for the git command adapter.

These tests run against real temporary repositories.
"""

from pathlib import Path

import pytest

from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.errors import (
    BranchMissingError,
    GitOperationError,
    MergeConflictError,
    NotAGitRepositoryError,
)

from conftest import configure_identity, run_git


class TestGitRunnerBasics:
    """Tests for command execution and queries."""

    def test_not_a_repository(self, temp_directory: Path):
        with pytest.raises(NotAGitRepositoryError):
            GitRunner(temp_directory)

    def test_run_never_raises(self, git: GitRunner):
        result = git.run("rev-parse", "--verify", "no-such-branch")

        assert result.ok is False
        assert result.returncode != 0

    def test_check_raises_with_command(self, git: GitRunner):
        with pytest.raises(GitOperationError) as exc_info:
            git.check("checkout", "no-such-branch")

        assert exc_info.value.command[:2] == ["git", "checkout"]

    def test_current_branch_and_roots(self, git: GitRunner, git_repo: Path):
        assert git.current_branch() == "main"
        assert git.git_root == git_repo
        assert git.main_root == git_repo

    def test_list_branches_with_pattern(self, git: GitRunner):
        git.create_branch("daily/2026-10-17", "main", checkout=False)
        git.create_branch("daily/2026-10-18", "main", checkout=False)
        git.create_branch("v0.20", "main", checkout=False)

        assert git.list_branches("daily/*") == ["daily/2026-10-17", "daily/2026-10-18"]
        assert "v0.20" in git.list_branches()

    def test_changed_files(self, git: GitRunner, git_repo: Path):
        (git_repo / "README.md").write_text("changed\n")
        (git_repo / "new.txt").write_text("new\n")

        assert git.changed_files() == ["README.md", "new.txt"]
        assert git.has_uncommitted_changes() is True

    def test_ensure_excluded_is_idempotent(self, git: GitRunner, git_repo: Path):
        git.ensure_excluded(["/local_deploy/", ".commit-msg"])
        git.ensure_excluded(["/local_deploy/", ".commit-msg"])

        lines = (git_repo / ".git" / "info" / "exclude").read_text().splitlines()
        assert lines.count("/local_deploy/") == 1
        assert lines.count(".commit-msg") == 1

        (git_repo / "local_deploy").mkdir()
        (git_repo / "local_deploy" / "state.json").write_text("{}")
        assert git.has_uncommitted_changes() is False


class TestMerge:
    """Tests for merge semantics."""

    def test_merge_creates_merge_commit(self, git: GitRunner, git_repo: Path, commit_file):
        git.create_branch("feature", "main")
        commit_file(git_repo, "feature.txt", "feature\n")
        git.checkout("main")

        git.merge("feature", "Merge feature")

        parents = run_git(git_repo, "rev-list", "--parents", "-n", "1", "HEAD").stdout.split()
        assert len(parents) == 3
        assert (git_repo / "feature.txt").exists()

    def test_conflict_aborts_and_raises(self, git: GitRunner, git_repo: Path, commit_file):
        git.create_branch("feature", "main")
        commit_file(git_repo, "README.md", "feature side\n")
        git.checkout("main")
        before = commit_file(git_repo, "README.md", "main side\n")

        with pytest.raises(MergeConflictError) as exc_info:
            git.merge("feature", "Merge feature")

        assert exc_info.value.files == ["README.md"]
        assert exc_info.value.target == "main"
        assert git.rev_parse("HEAD") == before
        assert git.has_uncommitted_changes() is False
        assert (git_repo / "README.md").read_text() == "main side\n"

    def test_missing_source(self, git: GitRunner):
        with pytest.raises(BranchMissingError):
            git.merge("nowhere", "Merge nowhere")


class TestRemoteOperations:
    """Tests for push, fetch, checkout and delete against a bare remote."""

    def test_push_without_remote(self, git: GitRunner):
        assert git.push("main") is False

    def test_push_sets_upstream(self, git: GitRunner, remote_repo: Path):
        git.create_branch("topic", "main", checkout=False)

        assert git.push("topic") is True
        assert git.remote_branch_exists("topic") is True

    def test_rejected_push_pulls_and_retries(
        self, git: GitRunner, git_repo: Path, remote_repo: Path, temp_directory: Path, commit_file
    ):
        clone = temp_directory / "clone"
        run_git(temp_directory, "clone", str(remote_repo), str(clone))
        configure_identity(clone)
        commit_file(clone, "other.txt", "from clone\n")
        run_git(clone, "push", "origin", "main")

        commit_file(git_repo, "mine.txt", "from repo\n")

        assert git.push("main") is True

        remote_head = run_git(remote_repo, "rev-parse", "main").stdout.strip()
        assert remote_head == git.rev_parse("HEAD")
        assert (git_repo / "other.txt").exists()

    def test_checkout_creates_tracking_branch(self, git: GitRunner, remote_repo: Path):
        git.create_branch("topic", "main", checkout=False)
        git.push("topic")
        run_git(git.git_root, "branch", "-D", "topic")

        assert git.branch_exists("topic") is False
        assert git.ref_exists("topic") is True

        git.checkout("topic")

        assert git.current_branch() == "topic"

    def test_checkout_missing_branch(self, git: GitRunner):
        with pytest.raises(BranchMissingError):
            git.checkout("nowhere")

    def test_delete_branch_local_and_remote(self, git: GitRunner, remote_repo: Path):
        git.create_branch("topic", "main", checkout=False)
        git.push("topic")

        assert git.delete_branch("topic") is True

        assert git.branch_exists("topic") is False
        assert git.remote_branch_exists("topic") is False
        assert git.ref_exists("topic") is False

    def test_delete_missing_branch_is_noop(self, git: GitRunner):
        assert git.delete_branch("nowhere") is False


class TestWorktrees:
    """Tests for linked worktree management."""

    def test_add_and_remove(self, git: GitRunner, temp_directory: Path):
        path = temp_directory / "wt" / "one"

        git.worktree_add(path, "claude/ab12-cd34/task", "main")

        assert path.exists()
        assert git.current_branch(cwd=path) == "claude/ab12-cd34/task"
        assert GitRunner(path).main_root == git.git_root

        assert git.worktree_remove(path) is True
        assert not path.exists()
        assert git.branch_exists("claude/ab12-cd34/task") is True

    def test_remove_missing_directory_prunes(self, git: GitRunner, temp_directory: Path):
        assert git.worktree_remove(temp_directory / "gone") is False
