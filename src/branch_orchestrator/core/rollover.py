"""
Daily and version branch rollover.

This module provides functionality to:
- Compute the current date and daily branch in the configured timezone
- Detect a day boundary and plan the forward-merge chain
- Execute the chain as an explicit state machine with persisted progress

The chain for a new day is, in order:

1. merge the last version branch into the target (VERSION_MERGED)
2. cut the next version branch from the target (VERSION_CREATED)
3. merge the last daily branch into the new version (DAILY_FOLDED)
4. cut today's daily branch from the new version (DAILY_CREATED)

Progress is written to local_deploy/rollover-state.json after each step,
so a run that stops on a merge conflict resumes at the failed step once
the conflict has been resolved.
"""

import json
import logging
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from branch_orchestrator.config import LOCAL_DEPLOY_DIR, ProjectConfig, local_excludes
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.errors import BranchOrchestratorError, ConfigError
from branch_orchestrator.models.branches import (
    BranchKind,
    classify_branch,
    daily_branch_name,
    parse_daily_date,
    parse_version,
)
from branch_orchestrator.utils.io import atomic_write_json, read_json

logger = logging.getLogger(__name__)

STATE_FILENAME = "rollover-state.json"


class RolloverState(str, Enum):
    """States of the rollover state machine."""

    NO_ROLLOVER_NEEDED = "no_rollover_needed"
    PLAN_BUILT = "plan_built"
    VERSION_MERGED = "version_merged"
    VERSION_CREATED = "version_created"
    DAILY_FOLDED = "daily_folded"
    DAILY_CREATED = "daily_created"
    FAILED = "failed"


PIPELINE = [
    RolloverState.PLAN_BUILT,
    RolloverState.VERSION_MERGED,
    RolloverState.VERSION_CREATED,
    RolloverState.DAILY_FOLDED,
    RolloverState.DAILY_CREATED,
]


class RolloverPlan(BaseModel):
    """The forward-merge chain for one calendar day."""

    date: str
    daily_branch: str
    target_branch: str
    last_version: Optional[str] = None
    next_version: str
    last_daily: Optional[str] = None
    state: RolloverState = RolloverState.PLAN_BUILT
    completed: RolloverState = RolloverState.PLAN_BUILT
    error: Optional[str] = None
    updated_at: Optional[datetime] = None


class RolloverResult(BaseModel):
    """Outcome of one rollover check."""

    state: RolloverState
    daily_branch: str
    plan: Optional[RolloverPlan] = None
    switched: bool = False
    resumed: bool = False
    aborted: bool = False
    message: str = ""

    @property
    def rolled_over(self) -> bool:
        return self.state == RolloverState.DAILY_CREATED


def today_in_timezone(tz_name: str, now: Optional[datetime] = None) -> date:
    """Return the calendar date in a timezone."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


def current_daily_branch(config: ProjectConfig, now: Optional[datetime] = None) -> str:
    """Name of today's daily branch in the configured timezone."""
    today = today_in_timezone(config.rollover_settings.timezone, now)
    return daily_branch_name(today, config)


def latest_version_branch(git: GitRunner, config: ProjectConfig) -> Optional[str]:
    """Highest numbered version branch, local or remote."""
    prefix = config.rollover_settings.version_prefix
    versions = []
    for name in git.list_branches(f"{prefix}*"):
        number = parse_version(name, prefix)
        if number is not None:
            versions.append((number, name))
    return max(versions)[1] if versions else None


class RolloverEngine:
    """
    Decides when to cut new daily and version branches and performs the cut.

    The check is idempotent: once today's daily branch exists, calling it
    again does nothing beyond switching a stale checkout onto it.
    """

    def __init__(
        self,
        git: GitRunner,
        config: ProjectConfig,
        confirm: Optional[Callable[[RolloverPlan], bool]] = None,
        state_path: Optional[Path] = None,
    ):
        self.git = git
        self.config = config
        self.confirm = confirm
        self.state_path = state_path or git.main_root / LOCAL_DEPLOY_DIR / STATE_FILENAME
        self.git.ensure_excluded(local_excludes(config))

    @property
    def target_branch(self) -> str:
        return self.config.branch_management.default_merge_target

    def today_str(self, now: Optional[datetime] = None) -> str:
        return today_in_timezone(self.config.rollover_settings.timezone, now).isoformat()

    def current_daily_branch(self, now: Optional[datetime] = None) -> str:
        return current_daily_branch(self.config, now)

    def latest_daily(self, before: Optional[date] = None) -> Optional[str]:
        """Most recent daily branch, optionally strictly before a date."""
        prefix = self.config.branch_management.daily_branch_prefix
        dated = []
        for name in self.git.list_branches(f"{prefix}*"):
            day = parse_daily_date(name, prefix)
            if day and (before is None or day < before):
                dated.append((day, name))
        return max(dated)[1] if dated else None

    def latest_version(self) -> Optional[str]:
        return latest_version_branch(self.git, self.config)

    def next_version(self) -> str:
        settings = self.config.rollover_settings
        latest = self.latest_version()
        if latest is None:
            return f"{settings.version_prefix}{settings.version_start_minor}"
        number = parse_version(latest, settings.version_prefix)
        return f"{settings.version_prefix}{number + settings.version_increment}"

    def build_plan(self, now: Optional[datetime] = None, force: bool = False) -> RolloverPlan:
        """
        Assemble the forward-merge chain for today.

        A forced plan on a day whose daily branch already exists folds that
        branch into the new version before it is cut again.

        Raises:
            ConfigError: If the target branch does not exist.
        """
        if not self.git.ref_exists(self.target_branch):
            raise ConfigError(f"Target branch '{self.target_branch}' does not exist")

        today = today_in_timezone(self.config.rollover_settings.timezone, now)
        daily = daily_branch_name(today, self.config)
        last_daily = self.latest_daily(before=today)
        if force and self.git.ref_exists(daily):
            last_daily = daily

        return RolloverPlan(
            date=today.isoformat(),
            daily_branch=daily,
            target_branch=self.target_branch,
            last_version=self.latest_version(),
            next_version=self.next_version(),
            last_daily=last_daily,
            updated_at=datetime.now(timezone.utc),
        )

    def load_plan(self) -> Optional[RolloverPlan]:
        try:
            return RolloverPlan.model_validate(read_json(self.state_path))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable rollover state: {e}")
            return None

    def save_plan(self, plan: RolloverPlan) -> None:
        plan.updated_at = datetime.now(timezone.utc)
        atomic_write_json(self.state_path, plan.model_dump(mode="json"))

    def _approved(self, plan: RolloverPlan) -> bool:
        if self.config.automation.assume_yes:
            return True
        if not self.config.rollover_settings.prompt_before_rollover:
            return True
        if self.confirm is None:
            logger.warning("Rollover needs confirmation but no prompt is available")
            return False
        return self.confirm(plan)

    def _follow_daily(self, daily: str) -> bool:
        """Switch a checkout left on an older hierarchy branch onto today's daily."""
        current = self.git.current_branch()
        if not current or current == daily:
            return False
        kind = classify_branch(current, self.config).kind
        if kind not in (BranchKind.DAILY, BranchKind.VERSION):
            return False
        if self.git.has_uncommitted_changes():
            logger.warning(f"Staying on {current}: uncommitted changes block switching to {daily}")
            return False
        self.git.checkout(daily)
        logger.info(f"Switched from {current} to {daily}")
        return True

    def rollover_if_new_day(
        self, force: bool = False, now: Optional[datetime] = None
    ) -> RolloverResult:
        """
        Run the rollover check.

        Args:
            force: Roll over even if today's daily branch already exists.
            now: Clock override.

        Returns:
            RolloverResult describing what happened.

        Raises:
            MergeConflictError: If a merge in the chain conflicts. Progress
                up to the failed step is kept and the original branch is
                checked out again.
            GitOperationError: If a git step fails.
            ConfigError: If the target branch is missing.
        """
        daily = self.current_daily_branch(now)
        pending = self.load_plan()
        resumable = (
            pending is not None
            and pending.date == self.today_str(now)
            and pending.completed != RolloverState.DAILY_CREATED
        )

        if not force and not resumable and self.git.ref_exists(daily):
            switched = self._follow_daily(daily)
            return RolloverResult(
                state=RolloverState.NO_ROLLOVER_NEEDED,
                daily_branch=daily,
                switched=switched,
            )

        if self.git.has_uncommitted_changes():
            logger.warning("Rollover skipped: working tree has uncommitted changes")
            return RolloverResult(
                state=RolloverState.NO_ROLLOVER_NEEDED,
                daily_branch=daily,
                aborted=True,
                message="working tree has uncommitted changes",
            )

        if resumable and not force:
            plan = pending
            logger.info(f"Resuming rollover for {plan.date} after {plan.completed.value}")
        else:
            plan = self.build_plan(now, force=force)
            if not self._approved(plan):
                return RolloverResult(
                    state=RolloverState.NO_ROLLOVER_NEEDED,
                    daily_branch=daily,
                    plan=plan,
                    aborted=True,
                    message="rollover declined",
                )
            self.save_plan(plan)

        original = self.git.current_branch()
        try:
            self._execute(plan)
        except BranchOrchestratorError as e:
            plan.state = RolloverState.FAILED
            plan.error = str(e)
            self.save_plan(plan)
            logger.error(f"Rollover halted after {plan.completed.value}: {e}")
            if original and self.git.current_branch() != original:
                self.git.checkout(original)
            raise

        return RolloverResult(
            state=plan.state,
            daily_branch=plan.daily_branch,
            plan=plan,
            resumed=bool(resumable and not force),
            message=f"rolled over to {plan.daily_branch} via {plan.next_version}",
        )

    def _execute(self, plan: RolloverPlan) -> None:
        steps = [
            (RolloverState.VERSION_MERGED, self._merge_last_version),
            (RolloverState.VERSION_CREATED, self._create_version),
            (RolloverState.DAILY_FOLDED, self._fold_last_daily),
            (RolloverState.DAILY_CREATED, self._create_daily),
        ]

        self.git.fetch()
        for state, step in steps:
            if PIPELINE.index(plan.completed) >= PIPELINE.index(state):
                continue
            step(plan)
            plan.completed = state
            plan.state = state
            plan.error = None
            self.save_plan(plan)
            logger.info(f"Rollover {plan.date}: {state.value}")

    def _merge_message(self, source: str, target: str) -> str:
        return f"rollup: merge {source} into {target}"

    def _merge_last_version(self, plan: RolloverPlan) -> None:
        if not plan.last_version:
            return
        self.git.checkout(plan.target_branch)
        if self.git.remote_branch_exists(plan.target_branch):
            self.git.pull(plan.target_branch)
        self.git.merge(
            plan.last_version, self._merge_message(plan.last_version, plan.target_branch)
        )
        self.git.push(plan.target_branch)

    def _create_version(self, plan: RolloverPlan) -> None:
        self.git.create_branch(plan.next_version, plan.target_branch)
        self.git.push(plan.next_version)

    def _fold_last_daily(self, plan: RolloverPlan) -> None:
        if not plan.last_daily:
            return
        self.git.checkout(plan.next_version)
        self.git.merge(
            plan.last_daily, self._merge_message(plan.last_daily, plan.next_version)
        )
        self.git.push(plan.next_version)

    def _create_daily(self, plan: RolloverPlan) -> None:
        self.git.create_branch(plan.daily_branch, plan.next_version)
        self.git.push(plan.daily_branch)
