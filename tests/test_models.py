"""
Unit tests for Pydantic models and agent detection.
"""

from datetime import date, datetime, timedelta, timezone

from branch_orchestrator.agents import DEFAULT_AGENT, detect_agent_kind
from branch_orchestrator.config import MergeStrategy, ProjectConfig
from branch_orchestrator.models.branches import (
    BranchKind,
    classify_branch,
    daily_branch_name,
    parse_weekly_range,
    weekly_branch_name,
)
from branch_orchestrator.models.declaration import FileDeclaration
from branch_orchestrator.models.session import MergeConfig, SessionRecord, SessionStatus


class TestBranchClassification:
    """Tests for classify_branch."""

    def test_kinds(self):
        config = ProjectConfig()

        assert classify_branch("main", config).kind == BranchKind.TARGET
        assert classify_branch("daily/2026-10-18", config).kind == BranchKind.DAILY
        assert classify_branch("weekly/2026-10-12_to_2026-10-16", config).kind == BranchKind.WEEKLY
        assert classify_branch("v0.21", config).kind == BranchKind.VERSION
        assert classify_branch("claude/ab12-cd34/fix-login", config).kind == BranchKind.SESSION
        assert classify_branch("feature/x", config).kind == BranchKind.OTHER

    def test_daily_and_weekly_dates(self):
        config = ProjectConfig()

        daily = classify_branch("daily/2026-10-18", config)
        weekly = classify_branch("weekly/2026-10-12_to_2026-10-16", config)
        version = classify_branch("v0.21", config)

        assert daily.start_date == date(2026, 10, 18)
        assert weekly.start_date == date(2026, 10, 12)
        assert weekly.end_date == date(2026, 10, 16)
        assert version.version == 21

    def test_invalid_dates_are_not_daily(self):
        config = ProjectConfig()

        assert classify_branch("daily/2026-13-40", config).kind == BranchKind.OTHER
        assert parse_weekly_range("weekly/2026-10-16_to_2026-10-12", "weekly/") is None

    def test_session_prefix(self):
        config = ProjectConfig()
        config.branch_management.session_branch_prefix = "session/"

        assert classify_branch("session/claude/ab12-cd34/x", config).kind == BranchKind.SESSION
        assert classify_branch("claude/ab12-cd34/x", config).kind == BranchKind.OTHER

    def test_branch_names(self):
        config = ProjectConfig()

        assert daily_branch_name(date(2026, 1, 2), config) == "daily/2026-01-02"
        assert (
            weekly_branch_name(date(2026, 1, 2), date(2026, 1, 6), config)
            == "weekly/2026-01-02_to_2026-01-06"
        )


class TestSessionRecord:
    """Tests for the session lock record."""

    def test_lock_dict_uses_wire_names(self):
        record = SessionRecord(
            session_id="ab12-cd34",
            agent_type="claude",
            task="fix login",
            worktree_path="/tmp/wt",
            branch_name="claude/ab12-cd34/fix-login",
            created=datetime(2026, 10, 18, tzinfo=timezone.utc),
            merge_config=MergeConfig(target_branch="main", strategy=MergeStrategy.PARALLEL),
        )

        data = record.to_lock_dict()

        assert data["sessionId"] == "ab12-cd34"
        assert data["agentType"] == "claude"
        assert data["worktreePath"] == "/tmp/wt"
        assert data["branchName"] == "claude/ab12-cd34/fix-login"
        assert data["status"] == "active"
        assert data["mergeConfig"] == {
            "autoMerge": True,
            "targetBranch": "main",
            "strategy": "parallel",
        }
        assert SessionRecord.model_validate(data) == record

    def test_age_days(self):
        now = datetime(2026, 10, 18, tzinfo=timezone.utc)
        record = SessionRecord(
            session_id="x",
            agent_type="claude",
            task="t",
            worktree_path="/tmp/wt",
            branch_name="b",
            created=now - timedelta(days=3, hours=12),
            status=SessionStatus.PAUSED,
        )

        assert record.age_days(now) == 3.5

    def test_declaration_accepts_wire_names(self):
        declaration = FileDeclaration.model_validate(
            {
                "agent": "claude",
                "session": "ab12",
                "files": ["a.txt"],
                "operation": "create",
                "reason": "new file",
                "declaredAt": "2026-10-18T12:00:00Z",
                "estimatedDuration": 60,
            }
        )

        assert declaration.estimated_duration == 60
        assert declaration.declared_at.year == 2026


class TestAgentDetection:
    """Tests for detect_agent_kind."""

    def test_explicit_override(self):
        environ = {"BRANCH_ORCHESTRATOR_AGENT": "my-bot", "CLAUDECODE": "1"}

        assert detect_agent_kind(environ, which=lambda name: None) == "my-bot"

    def test_environment_marker(self):
        assert detect_agent_kind({"CLAUDECODE": "1"}, which=lambda name: None) == "claude"

    def test_single_installed_binary(self):
        which = lambda name: "/usr/bin/aider" if name == "aider" else None

        assert detect_agent_kind({}, which=which) == "aider"

    def test_ambiguous_falls_back(self):
        which = lambda name: f"/usr/bin/{name}"

        assert detect_agent_kind({}, which=which) == DEFAULT_AGENT
