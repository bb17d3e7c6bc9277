"""
Weekly consolidation of daily branches.

This module provides functionality to:
- Find the daily branches of the most recently completed week
- Fold them, oldest first, into one weekly branch cut from the target
- Delete daily branches once their work is in the weekly branch
- Prune weekly branches beyond the retained count
"""

import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from branch_orchestrator.config import WEEKDAYS, ProjectConfig
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.rollover import today_in_timezone
from branch_orchestrator.errors import GitOperationError, MergeConflictError
from branch_orchestrator.models.branches import (
    parse_daily_date,
    parse_weekly_range,
    weekly_branch_name,
)

logger = logging.getLogger(__name__)


class ConsolidationStatus(str, Enum):
    """Status of a consolidation run."""

    CONSOLIDATED = "consolidated"
    PARTIAL = "partial"
    ALREADY_EXISTS = "already_exists"
    OVERLAP = "overlap"
    NO_BRANCHES = "no_branches"
    DISABLED = "disabled"
    DRY_RUN = "dry_run"


class ConsolidationReport(BaseModel):
    """Report generated after a consolidation run."""

    timestamp: datetime
    window_start: date
    window_end: date
    status: ConsolidationStatus
    weekly_branch: Optional[str] = None
    daily_branches: list[str] = []
    folded: list[str] = []
    deleted: list[str] = []
    failed_branch: Optional[str] = None
    conflicted_files: list[str] = []
    merged_to_target: bool = False
    errors: list[str] = []


class PruneReport(BaseModel):
    """Report generated after pruning weekly branches."""

    timestamp: datetime
    dry_run: bool
    retain: int
    weekly_branches: list[str] = []
    deleted: list[str] = []
    errors: list[str] = []


class WeeklyConsolidator:
    """Folds a week of daily branches into one weekly branch."""

    def __init__(self, git: GitRunner, config: ProjectConfig):
        self.git = git
        self.config = config

    @property
    def daily_prefix(self) -> str:
        return self.config.branch_management.daily_branch_prefix

    @property
    def weekly_prefix(self) -> str:
        return self.config.branch_management.weekly_branch_prefix

    def _today(self, today: Optional[date]) -> date:
        return today or today_in_timezone(self.config.rollover_settings.timezone)

    def completed_window(self, today: Optional[date] = None) -> tuple[date, date]:
        """
        The most recently completed 7-day window.

        The window ends the day before the latest weekly cleanup day on or
        before today.

        Returns:
            (start, end), both inclusive.
        """
        today = self._today(today)
        cleanup_index = WEEKDAYS.index(self.config.cleanup.weekly_cleanup_day)
        boundary = today - timedelta(days=(today.weekday() - cleanup_index) % 7)
        return boundary - timedelta(days=7), boundary - timedelta(days=1)

    def _dated_dailies(self, start: date, end: date) -> list[tuple[date, str]]:
        dated = []
        for name in self.git.list_branches(f"{self.daily_prefix}*"):
            day = parse_daily_date(name, self.daily_prefix)
            if day and start <= day <= end:
                dated.append((day, name))
        return sorted(dated)

    def find_daily_branches(self, today: Optional[date] = None) -> list[str]:
        """Daily branches in the completed window, oldest first."""
        start, end = self.completed_window(today)
        return [name for _, name in self._dated_dailies(start, end)]

    def list_weekly_branches(self) -> list[str]:
        return sorted(
            name
            for name in self.git.list_branches(f"{self.weekly_prefix}*")
            if parse_weekly_range(name, self.weekly_prefix)
        )

    def _overlapping(self, start: date, end: date) -> list[str]:
        overlapping = []
        for name in self.list_weekly_branches():
            existing_start, existing_end = parse_weekly_range(name, self.weekly_prefix)
            if existing_start <= end and start <= existing_end:
                overlapping.append(name)
        return overlapping

    def consolidate(self, today: Optional[date] = None, dry_run: bool = False) -> ConsolidationReport:
        """
        Consolidate last week's daily branches.

        Folding stops at the first conflicting daily branch. The weekly
        branch keeps the folds that succeeded and only those daily branches
        are deleted; the rest stay for manual follow-up. Nothing is deleted
        when the weekly branch could not be pushed.

        Args:
            today: Date override.
            dry_run: Detect and report only.

        Returns:
            ConsolidationReport describing the run.
        """
        start, end = self.completed_window(today)
        report = ConsolidationReport(
            timestamp=datetime.now(),
            window_start=start,
            window_end=end,
            status=ConsolidationStatus.NO_BRANCHES,
        )

        if not self.config.branch_management.enable_weekly_consolidation:
            report.status = ConsolidationStatus.DISABLED
            return report

        self.git.fetch()
        dailies = self._dated_dailies(start, end)
        if not dailies:
            logger.info(f"No daily branches between {start} and {end}")
            return report

        report.daily_branches = [name for _, name in dailies]
        weekly = weekly_branch_name(dailies[0][0], dailies[-1][0], self.config)
        report.weekly_branch = weekly

        if self.git.ref_exists(weekly):
            logger.info(f"{weekly} already exists, nothing to consolidate")
            report.status = ConsolidationStatus.ALREADY_EXISTS
            return report

        overlapping = self._overlapping(dailies[0][0], dailies[-1][0])
        if overlapping:
            report.status = ConsolidationStatus.OVERLAP
            report.errors.append(f"Range overlaps existing weekly branch: {', '.join(overlapping)}")
            return report

        if dry_run:
            report.status = ConsolidationStatus.DRY_RUN
            return report

        self._fold(report, dailies)
        return report

    def _fold(self, report: ConsolidationReport, dailies: list[tuple[date, str]]) -> None:
        weekly = report.weekly_branch
        target = self.config.branch_management.default_merge_target
        original = self.git.current_branch()
        pushed = False

        try:
            self.git.create_branch(weekly, target)
            for _, branch in dailies:
                try:
                    self.git.merge(branch, f"Merge daily branch {branch} into weekly consolidation")
                except MergeConflictError as e:
                    logger.warning(f"Stopped consolidating {weekly}: {e}")
                    report.failed_branch = branch
                    report.conflicted_files = e.files
                    break
                report.folded.append(branch)

            try:
                self.git.push(weekly)
                pushed = True
            except (GitOperationError, MergeConflictError) as e:
                report.errors.append(f"Failed to push {weekly}: {e}")

            complete = len(report.folded) == len(dailies)
            if complete and self.config.branch_management.enable_dual_merge:
                report.merged_to_target = self._merge_to_target(report, weekly, target)
        finally:
            if original and self.git.current_branch() != original:
                try:
                    self.git.checkout(original)
                except GitOperationError as e:
                    report.errors.append(f"Could not restore {original}: {e}")

        if pushed:
            for branch in report.folded:
                try:
                    self.git.delete_branch(branch, remote=True)
                    report.deleted.append(branch)
                except GitOperationError as e:
                    report.errors.append(f"Failed to delete {branch}: {e}")
        else:
            logger.warning(f"Keeping daily branches: {weekly} was not pushed")

        report.status = (
            ConsolidationStatus.CONSOLIDATED
            if pushed and len(report.folded) == len(dailies)
            else ConsolidationStatus.PARTIAL
        )
        logger.info(f"{weekly}: folded {len(report.folded)}/{len(dailies)} daily branches")

    def _merge_to_target(self, report: ConsolidationReport, weekly: str, target: str) -> bool:
        try:
            self.git.checkout(target)
            self.git.merge(weekly, f"Merge weekly branch {weekly}")
            self.git.push(target)
        except (MergeConflictError, GitOperationError) as e:
            report.errors.append(f"Failed to merge {weekly} into {target}: {e}")
            return False
        return True

    def prune_weekly_branches(
        self, retain: Optional[int] = None, dry_run: bool = False
    ) -> PruneReport:
        """
        Delete the oldest weekly branches beyond the retained count.

        Args:
            retain: Number to keep; defaults to cleanup.retainWeeklyBranches.
            dry_run: Report what would be deleted without deleting.

        Returns:
            PruneReport listing deleted (or deletable) branches.
        """
        retain = self.config.cleanup.retain_weekly_branches if retain is None else retain
        if retain < 0:
            raise ValueError("retain must not be negative")

        self.git.fetch()
        weekly = self.list_weekly_branches()
        report = PruneReport(
            timestamp=datetime.now(), dry_run=dry_run, retain=retain, weekly_branches=weekly
        )

        for branch in weekly[: max(len(weekly) - retain, 0)]:
            if dry_run:
                report.deleted.append(branch)
                continue
            try:
                self.git.delete_branch(branch, remote=True)
                report.deleted.append(branch)
            except GitOperationError as e:
                report.errors.append(f"Failed to delete {branch}: {e}")

        return report
