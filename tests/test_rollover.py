"""
Tests for the daily and version rollover engine.

These tests run against real temporary repositories with the clock
pinned via the ``now`` argument.
"""

import json
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from branch_orchestrator.config import ProjectConfig
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.rollover import (
    RolloverEngine,
    RolloverState,
    current_daily_branch,
)
from branch_orchestrator.errors import ConfigError, MergeConflictError

from conftest import NOW

TOMORROW = NOW + timedelta(days=1)


def branch_has_file(git: GitRunner, branch: str, name: str) -> bool:
    return git.run("cat-file", "-e", f"{branch}:{name}").ok


class TestDates:
    def test_daily_branch_uses_configured_timezone(self):
        config = ProjectConfig()
        assert current_daily_branch(config, NOW) == "daily/2026-10-18"

        config.rollover_settings.timezone = "Pacific/Auckland"
        assert current_daily_branch(config, NOW) == "daily/2026-10-19"


class TestFirstRollover:
    """Tests for a repository with no hierarchy branches yet."""

    def test_creates_version_and_daily(self, rollover: RolloverEngine, git: GitRunner):
        result = rollover.rollover_if_new_day(now=NOW)

        assert result.state == RolloverState.DAILY_CREATED
        assert result.rolled_over is True
        assert result.plan.last_version is None
        assert result.plan.next_version == "v0.20"
        assert git.branch_exists("v0.20")
        assert git.branch_exists("daily/2026-10-18")
        assert git.current_branch() == "daily/2026-10-18"

    def test_second_call_is_noop(self, rollover: RolloverEngine, git: GitRunner):
        rollover.rollover_if_new_day(now=NOW)
        branches = git.list_branches()

        result = rollover.rollover_if_new_day(now=NOW)

        assert result.state == RolloverState.NO_ROLLOVER_NEEDED
        assert result.rolled_over is False
        assert git.list_branches() == branches

    def test_state_file_records_completion(self, rollover: RolloverEngine):
        rollover.rollover_if_new_day(now=NOW)

        data = json.loads(rollover.state_path.read_text())
        assert data["date"] == "2026-10-18"
        assert data["completed"] == "daily_created"

    def test_pushes_when_remote_exists(self, rollover: RolloverEngine, git: GitRunner, remote_repo: Path):
        rollover.rollover_if_new_day(now=NOW)

        assert git.remote_branch_exists("v0.20")
        assert git.remote_branch_exists("daily/2026-10-18")

    def test_missing_target(self, git: GitRunner, config: ProjectConfig):
        config.branch_management.default_merge_target = "develop"
        engine = RolloverEngine(git, config)

        with pytest.raises(ConfigError):
            engine.rollover_if_new_day(now=NOW)


class TestNextDay:
    """Tests for the full chain on a following day."""

    def test_full_chain(self, rollover: RolloverEngine, git: GitRunner, git_repo: Path, commit_file):
        rollover.rollover_if_new_day(now=NOW)
        commit_file(git_repo, "work.txt", "day one work\n")

        result = rollover.rollover_if_new_day(now=TOMORROW)

        assert result.state == RolloverState.DAILY_CREATED
        assert result.plan.last_version == "v0.20"
        assert result.plan.next_version == "v0.21"
        assert result.plan.last_daily == "daily/2026-10-18"
        assert git.current_branch() == "daily/2026-10-19"
        assert branch_has_file(git, "v0.21", "work.txt")
        assert branch_has_file(git, "daily/2026-10-19", "work.txt")
        assert not branch_has_file(git, "main", "work.txt")
        assert git.is_ancestor("v0.20", "main")

    def test_version_reaches_target_one_day_later(
        self, rollover: RolloverEngine, git: GitRunner, git_repo: Path, commit_file
    ):
        rollover.rollover_if_new_day(now=NOW)
        commit_file(git_repo, "work.txt", "day one work\n")
        rollover.rollover_if_new_day(now=TOMORROW)

        rollover.rollover_if_new_day(now=TOMORROW + timedelta(days=1))

        assert branch_has_file(git, "main", "work.txt")
        assert git.branch_exists("v0.22")

    def test_forced_rollover_keeps_todays_work(
        self, rollover: RolloverEngine, git: GitRunner, git_repo: Path, commit_file
    ):
        rollover.rollover_if_new_day(now=NOW)
        today_commit = commit_file(git_repo, "today.txt", "same day work\n")

        result = rollover.rollover_if_new_day(force=True, now=NOW)

        assert result.state == RolloverState.DAILY_CREATED
        assert result.plan.last_daily == "daily/2026-10-18"
        assert result.plan.next_version == "v0.21"
        assert git.current_branch() == "daily/2026-10-18"
        assert git.is_ancestor(today_commit, "v0.21")
        assert git.is_ancestor(today_commit, "daily/2026-10-18")
        assert branch_has_file(git, "daily/2026-10-18", "today.txt")

    def test_follows_daily_from_stale_checkout(self, rollover: RolloverEngine, git: GitRunner):
        rollover.rollover_if_new_day(now=NOW)
        git.checkout("v0.20")

        result = rollover.rollover_if_new_day(now=NOW)

        assert result.switched is True
        assert git.current_branch() == "daily/2026-10-18"

    def test_does_not_move_target_checkout(self, rollover: RolloverEngine, git: GitRunner):
        rollover.rollover_if_new_day(now=NOW)
        git.checkout("main")

        result = rollover.rollover_if_new_day(now=NOW)

        assert result.switched is False
        assert git.current_branch() == "main"


class TestRolloverGuards:
    """Tests for dirty trees, declined plans and failures."""

    def test_dirty_tree_aborts(self, rollover: RolloverEngine, git: GitRunner, git_repo: Path):
        (git_repo / "scratch.txt").write_text("wip\n")

        result = rollover.rollover_if_new_day(now=NOW)

        assert result.aborted is True
        assert not git.branch_exists("daily/2026-10-18")
        assert (git_repo / "scratch.txt").exists()

    def test_declined_plan_creates_nothing(self, git: GitRunner, config: ProjectConfig):
        config.automation.assume_yes = False
        seen = []

        def decline(plan):
            seen.append(plan)
            return False

        engine = RolloverEngine(git, config, confirm=decline)
        result = engine.rollover_if_new_day(now=NOW)

        assert result.aborted is True
        assert seen[0].daily_branch == "daily/2026-10-18"
        assert not git.branch_exists("v0.20")
        assert not engine.state_path.exists()

    def test_no_prompt_available_declines(self, git: GitRunner, config: ProjectConfig):
        config.automation.assume_yes = False

        result = RolloverEngine(git, config).rollover_if_new_day(now=NOW)

        assert result.aborted is True

    def test_prompt_disabled_proceeds(self, git: GitRunner, config: ProjectConfig):
        config.automation.assume_yes = False
        config.rollover_settings.prompt_before_rollover = False

        result = RolloverEngine(git, config).rollover_if_new_day(now=NOW)

        assert result.rolled_over is True

    def test_failure_resumes_at_failed_step(self, rollover: RolloverEngine, git: GitRunner):
        rollover.rollover_if_new_day(now=NOW)

        with patch.object(
            RolloverEngine,
            "_fold_last_daily",
            side_effect=MergeConflictError("daily/2026-10-18", "v0.21", ["README.md"]),
        ):
            with pytest.raises(MergeConflictError):
                rollover.rollover_if_new_day(now=TOMORROW)

        saved = rollover.load_plan()
        assert saved.state == RolloverState.FAILED
        assert saved.completed == RolloverState.VERSION_CREATED
        assert "conflicts" in saved.error
        assert git.current_branch() == "daily/2026-10-18"

        result = rollover.rollover_if_new_day(now=TOMORROW)

        assert result.resumed is True
        assert result.state == RolloverState.DAILY_CREATED
        assert git.branch_exists("v0.21")
        assert not git.branch_exists("v0.22")
        assert git.branch_exists("daily/2026-10-19")

    def test_real_conflict_restores_branch(
        self, rollover: RolloverEngine, git: GitRunner, git_repo: Path, commit_file
    ):
        rollover.rollover_if_new_day(now=NOW)
        commit_file(git_repo, "README.md", "daily edit\n")
        git.checkout("main")
        commit_file(git_repo, "README.md", "main edit\n")
        git.checkout("daily/2026-10-18")

        with pytest.raises(MergeConflictError) as exc_info:
            rollover.rollover_if_new_day(now=TOMORROW)

        assert exc_info.value.files == ["README.md"]
        assert git.current_branch() == "daily/2026-10-18"
        assert git.has_uncommitted_changes() is False
        assert not git.branch_exists("daily/2026-10-19")
        assert rollover.load_plan().completed == RolloverState.VERSION_CREATED
