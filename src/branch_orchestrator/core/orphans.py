"""
Orphan session reclamation.

This module provides functionality to:
- Detect sessions older than the orphan threshold
- Close orphans through the normal merge path, all at once or a chosen subset
- Remove registry and ledger entries even when the session branch is gone

Detection never mutates anything, so list-only runs are safe for auditing.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional

from pydantic import BaseModel

from branch_orchestrator.config import ProjectConfig
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.merge import MergeOrchestrator, SessionMergeReport
from branch_orchestrator.core.sessions import SessionRegistry
from branch_orchestrator.errors import BranchOrchestratorError
from branch_orchestrator.models.session import SessionRecord, SessionStatus

logger = logging.getLogger(__name__)


class CleanupMode(str, Enum):
    """How detected orphans are handled."""

    ALL = "all"
    SELECT = "select"
    LIST_ONLY = "list-only"


class OrphanSession(BaseModel):
    """A session that outlived the orphan threshold."""

    session: SessionRecord
    days_inactive: int
    branch_missing: bool = False
    reason: str = ""


class OrphanCleanupReport(BaseModel):
    """Report generated after an orphan sweep."""

    timestamp: datetime
    mode: CleanupMode
    threshold_days: int
    orphans: list[OrphanSession] = []
    cleaned: list[str] = []
    preserved: list[str] = []
    untouched: list[str] = []
    merge_reports: list[SessionMergeReport] = []
    errors: list[str] = []


OrphanSelector = Callable[[list[OrphanSession]], Iterable[str]]


class OrphanReclaimer:
    """Finds and cleans sessions that were never closed."""

    def __init__(
        self,
        git: GitRunner,
        config: ProjectConfig,
        registry: SessionRegistry,
        merger: MergeOrchestrator,
    ):
        self.git = git
        self.config = config
        self.registry = registry
        self.merger = merger

    @property
    def threshold_days(self) -> int:
        return self.config.branch_management.orphan_session_threshold_days

    def find_orphans(self, now: Optional[datetime] = None) -> list[OrphanSession]:
        """
        List open sessions at least threshold days old.

        Age is measured from the session's creation time. A deleted branch
        is reported, never used to skip a session.
        """
        now = now or datetime.now(timezone.utc)
        orphans = []

        for record in self.registry.list_sessions():
            if record.status == SessionStatus.CLOSED:
                continue
            age = record.age_days(now)
            if age < self.threshold_days:
                continue

            branch_missing = not self.git.ref_exists(record.branch_name)
            reason = f"created {int(age)} days ago"
            if branch_missing:
                reason += ", branch missing"
            orphans.append(
                OrphanSession(
                    session=record,
                    days_inactive=int(age),
                    branch_missing=branch_missing,
                    reason=reason,
                )
            )

        return orphans

    def cleanup_orphans(
        self,
        mode: CleanupMode = CleanupMode.LIST_ONLY,
        selector: Optional[OrphanSelector] = None,
        now: Optional[datetime] = None,
    ) -> OrphanCleanupReport:
        """
        Clean up detected orphans.

        Args:
            mode: ``all`` cleans every orphan, ``select`` cleans the ids the
                selector returns, ``list-only`` only detects.
            selector: Called with the detected orphans in select mode.
            now: Clock override.

        Returns:
            OrphanCleanupReport listing cleaned, preserved and untouched ids.

        Raises:
            ValueError: If select mode is used without a selector.
        """
        mode = CleanupMode(mode)
        if mode == CleanupMode.SELECT and selector is None:
            raise ValueError("select mode requires a selector")

        orphans = self.find_orphans(now)
        report = OrphanCleanupReport(
            timestamp=datetime.now(),
            mode=mode,
            threshold_days=self.threshold_days,
            orphans=orphans,
        )

        if mode == CleanupMode.LIST_ONLY or not orphans:
            report.untouched = [o.session.session_id for o in orphans]
            return report

        if mode == CleanupMode.SELECT:
            chosen = set(selector(orphans))
        else:
            chosen = {o.session.session_id for o in orphans}

        for orphan in orphans:
            session_id = orphan.session.session_id
            if session_id not in chosen:
                report.untouched.append(session_id)
                continue

            try:
                merge_report = self.merger.close_session(orphan.session, now=now)
            except BranchOrchestratorError as e:
                report.errors.append(f"Failed to clean {session_id}: {e}")
                report.preserved.append(session_id)
                continue

            report.merge_reports.append(merge_report)
            report.errors.extend(merge_report.errors)
            if merge_report.session_removed:
                report.cleaned.append(session_id)
            else:
                report.preserved.append(session_id)

        logger.info(
            f"Orphan cleanup: {len(report.cleaned)} cleaned, "
            f"{len(report.preserved)} preserved, {len(report.untouched)} untouched"
        )
        return report
