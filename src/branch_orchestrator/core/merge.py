"""
Merge orchestrator for closing sessions.

This module provides functionality to:
- Resolve a session's merge targets (daily branch, target branch, or both)
- Merge the session branch into each target in strategy order
- Report per-target outcomes independently
- Remove the session's branch, worktree, declarations and lock once every
  target has the work
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from branch_orchestrator.config import MergeStrategy, ProjectConfig
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.ledger import FileCoordinationLedger
from branch_orchestrator.core.rollover import current_daily_branch, latest_version_branch
from branch_orchestrator.core.sessions import SessionRegistry
from branch_orchestrator.errors import (
    BranchMissingError,
    GitOperationError,
    MergeConflictError,
    SessionNotFoundError,
    SessionStateError,
)
from branch_orchestrator.models.session import SessionRecord, SessionStatus

logger = logging.getLogger(__name__)


class MergeOutcomeStatus(str, Enum):
    """Result of merging a session into one target."""

    MERGED = "merged"
    CONFLICT = "conflict"
    SKIPPED = "skipped"
    ERROR = "error"


class MergeOutcome(BaseModel):
    """Outcome for a single target branch."""

    target: str
    status: MergeOutcomeStatus
    branch_missing: bool = False
    pushed: bool = False
    conflicted_files: list[str] = []
    message: str = ""


class SessionMergeReport(BaseModel):
    """Report generated after closing a session."""

    timestamp: datetime
    session_id: str
    branch_name: str
    strategy: MergeStrategy
    outcomes: list[MergeOutcome] = []
    branch_missing: bool = False
    branch_deleted: bool = False
    worktree_removed: bool = False
    session_removed: bool = False
    declarations_released: int = 0
    errors: list[str] = []

    @property
    def all_merged(self) -> bool:
        return bool(self.outcomes) and all(
            o.status == MergeOutcomeStatus.MERGED for o in self.outcomes
        )

    @property
    def has_conflicts(self) -> bool:
        return any(o.status == MergeOutcomeStatus.CONFLICT for o in self.outcomes)


class MergeOrchestrator:
    """
    Reconciles a finished session into one or two target branches.

    Merges run in the main checkout. The branch checked out there before
    the close is restored afterwards.
    """

    def __init__(
        self,
        git: GitRunner,
        config: ProjectConfig,
        registry: SessionRegistry,
        ledger: Optional[FileCoordinationLedger] = None,
    ):
        self.git = git
        self.config = config
        self.registry = registry
        self.ledger = ledger or registry.ledger

    def resolve_targets(
        self,
        record: SessionRecord,
        strategy: MergeStrategy,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """
        Ordered merge targets for a session.

        Args:
            record: Session being closed.
            strategy: Merge strategy in effect.
            now: Clock override for the daily branch name.

        Returns:
            ``[daily, target]`` for hierarchical-first and parallel dual
            merges, ``[target, daily]`` for target-first, and a single
            target when dual merge is disabled. With no target configured
            the daily branch is the only target.
        """
        target = record.merge_config.target_branch or (
            self.config.branch_management.default_merge_target
        )
        daily = current_daily_branch(self.config, now)

        if not target:
            return [daily]
        if not self.config.branch_management.enable_dual_merge or daily == target:
            return [target]
        if strategy == MergeStrategy.TARGET_FIRST:
            return [target, daily]
        return [daily, target]

    def close_session(
        self,
        session: Union[str, SessionRecord],
        strategy: Optional[MergeStrategy] = None,
        now: Optional[datetime] = None,
    ) -> SessionMergeReport:
        """
        Merge a session into its targets and clean it up.

        The session branch, worktree and lock file are removed only when
        every target merged. A missing session branch marks every target
        skipped and still removes the session's metadata.

        Args:
            session: Session id or record.
            strategy: Override for the stored or configured strategy.
            now: Clock override.

        Returns:
            SessionMergeReport with one outcome per target.

        Raises:
            SessionNotFoundError: If the session id is unknown.
            SessionStateError: If the session is already closed.
        """
        record = session if isinstance(session, SessionRecord) else self.registry.get(session)
        if record.status == SessionStatus.CLOSED:
            raise SessionStateError(f"Session {record.session_id} is already closed")

        strategy = (
            strategy
            or record.merge_config.strategy
            or self.config.branch_management.merge_strategy
        )
        targets = self.resolve_targets(record, strategy, now)
        report = SessionMergeReport(
            timestamp=datetime.now(),
            session_id=record.session_id,
            branch_name=record.branch_name,
            strategy=strategy,
        )

        self.git.fetch()
        if not self.git.ref_exists(record.branch_name):
            logger.warning(f"Session branch {record.branch_name} is missing")
            report.branch_missing = True
            report.outcomes = [
                MergeOutcome(
                    target=t,
                    status=MergeOutcomeStatus.SKIPPED,
                    branch_missing=True,
                    message="branch missing",
                )
                for t in targets
            ]
            self._cleanup(record, report, delete_branch=False)
            return report

        if not record.merge_config.auto_merge:
            report.outcomes = [
                MergeOutcome(target=t, status=MergeOutcomeStatus.SKIPPED, message="auto-merge disabled")
                for t in targets
            ]
            return report

        if record.worktree.exists() and self.git.has_uncommitted_changes(record.worktree):
            report.outcomes = [
                MergeOutcome(
                    target=t,
                    status=MergeOutcomeStatus.SKIPPED,
                    message="session worktree has uncommitted changes",
                )
                for t in targets
            ]
            return report

        daily = current_daily_branch(self.config, now)
        if daily in targets:
            self._ensure_daily(daily, targets, report)

        report.outcomes = self._merge_all(record.branch_name, targets, strategy)

        if report.all_merged:
            self._cleanup(record, report, delete_branch=True)
        else:
            logger.warning(
                f"Session {record.session_id} kept: not every target merged "
                f"({', '.join(f'{o.target}={o.status.value}' for o in report.outcomes)})"
            )
        return report

    def _ensure_daily(self, daily: str, targets: list[str], report: SessionMergeReport) -> None:
        """Cut today's daily branch when no rollover has created it yet."""
        if self.git.ref_exists(daily):
            return

        fallback = next((t for t in targets if t != daily), None) or (
            self.git.current_branch() or "HEAD"
        )
        base = latest_version_branch(self.git, self.config) or fallback
        try:
            self.git.create_branch(daily, base, checkout=False)
            self.git.push(daily)
        except (GitOperationError, MergeConflictError) as e:
            logger.warning(f"Could not create {daily} from {base}: {e}")
            report.errors.append(f"Could not create {daily}: {e}")
            return
        logger.info(f"Created missing daily branch {daily} from {base}")

    def _merge_all(
        self, branch: str, targets: list[str], strategy: MergeStrategy
    ) -> list[MergeOutcome]:
        outcomes = []
        original = self.git.current_branch()
        failed = False

        try:
            for target in targets:
                if failed and strategy != MergeStrategy.PARALLEL:
                    outcomes.append(
                        MergeOutcome(
                            target=target,
                            status=MergeOutcomeStatus.SKIPPED,
                            message="previous target did not merge",
                        )
                    )
                    continue

                outcome = self._merge_into(branch, target)
                outcomes.append(outcome)
                if outcome.status != MergeOutcomeStatus.MERGED:
                    failed = True
        finally:
            if original and self.git.current_branch() != original:
                try:
                    self.git.checkout(original)
                except GitOperationError as e:
                    logger.error(f"Could not restore {original}: {e}")

        return outcomes

    def _merge_into(self, branch: str, target: str) -> MergeOutcome:
        """Merge branch into one target and push it."""
        message = f"Merge session branch {branch}"

        try:
            self.git.checkout(target)
            if self.git.remote_branch_exists(target):
                self.git.pull(target)
            self.git.merge(branch, message)
        except MergeConflictError as e:
            logger.warning(str(e))
            return MergeOutcome(
                target=target,
                status=MergeOutcomeStatus.CONFLICT,
                conflicted_files=e.files,
                message=str(e),
            )
        except BranchMissingError as e:
            return MergeOutcome(target=target, status=MergeOutcomeStatus.ERROR, message=str(e))
        except GitOperationError as e:
            return MergeOutcome(target=target, status=MergeOutcomeStatus.ERROR, message=str(e))

        try:
            pushed = self.git.push(target)
        except (GitOperationError, MergeConflictError) as e:
            logger.warning(f"Merged into {target} but push failed: {e}")
            return MergeOutcome(
                target=target,
                status=MergeOutcomeStatus.MERGED,
                message=f"merged locally, push failed: {e}",
            )

        logger.info(f"Merged {branch} into {target}")
        return MergeOutcome(target=target, status=MergeOutcomeStatus.MERGED, pushed=pushed)

    def _cleanup(
        self, record: SessionRecord, report: SessionMergeReport, delete_branch: bool
    ) -> None:
        """Remove the session's worktree, branch, declarations and lock."""
        try:
            report.worktree_removed = self.git.worktree_remove(record.worktree)
        except GitOperationError as e:
            report.errors.append(f"Failed to remove worktree {record.worktree_path}: {e}")
            if delete_branch:
                return

        if delete_branch:
            try:
                report.branch_deleted = self.git.delete_branch(record.branch_name, remote=True)
            except GitOperationError as e:
                report.errors.append(f"Failed to delete {record.branch_name}: {e}")

        report.declarations_released = len(self.ledger.release_session(record.session_id))
        try:
            self.registry.mark_closed(record.session_id)
        except SessionNotFoundError:
            logger.debug(f"Lock for {record.session_id} already removed")
        self.registry.delete(record.session_id)
        report.session_removed = True
        logger.info(f"Closed session {record.session_id}")

