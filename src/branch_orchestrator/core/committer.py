"""
Auto-commit for agent worktrees.

This module provides functionality to:
- Commit a worktree's pending changes once a change notifier fires
- Gate commits on a conventional-commit message file
- Run the rollover check first when the checkout follows the daily branch

commit_once() is safe to call repeatedly: with nothing staged it is a no-op.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from branch_orchestrator.config import ProjectConfig
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.rollover import RolloverEngine, RolloverResult
from branch_orchestrator.errors import (
    BranchOrchestratorError,
    GitOperationError,
    MergeConflictError,
)
from branch_orchestrator.models.branches import BranchKind, classify_branch

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r"^(feat|fix|refactor|docs|test|chore)(\([^)]+\))?:\s")


class CommitResult(BaseModel):
    """Outcome of one commit attempt."""

    committed: bool
    branch: str = ""
    commit_sha: Optional[str] = None
    files_committed: int = 0
    pushed: bool = False
    message: Optional[str] = None
    reason: str = ""
    rollover: Optional[RolloverResult] = None


class AutoCommitter:
    """Commits a worktree's changes on demand."""

    def __init__(
        self,
        git: GitRunner,
        config: ProjectConfig,
        rollover: Optional[RolloverEngine] = None,
    ):
        self.git = git
        self.config = config
        self.rollover = rollover
        self._running = False

    def read_message(self, path: Path) -> Optional[str]:
        """Return the trimmed message file content, or None if empty or absent."""
        if not path.exists():
            return None
        message = path.read_text(encoding="utf-8").strip()
        return message or None

    def _clear_message(self, path: Path) -> None:
        if path.exists():
            path.write_text("", encoding="utf-8")

    def _maybe_rollover(self, worktree: Path, branch: str) -> Optional[RolloverResult]:
        if self.rollover is None or not self.config.rollover_settings.enable_auto_rollover:
            return None
        if worktree.resolve() != self.git.main_root:
            return None
        if classify_branch(branch, self.config).kind != BranchKind.DAILY:
            return None
        try:
            return self.rollover.rollover_if_new_day()
        except BranchOrchestratorError as e:
            logger.warning(f"Rollover check failed, committing on {branch}: {e}")
            return None

    def commit_once(
        self, worktree: Optional[Path] = None, message_file: Optional[str] = None
    ) -> CommitResult:
        """
        Commit pending changes in a worktree.

        Args:
            worktree: Working tree to commit; defaults to the repository root.
            message_file: Message file name relative to the worktree.

        Returns:
            CommitResult; ``committed`` is False with a reason when nothing
            was committed.
        """
        if self._running:
            return CommitResult(committed=False, reason="commit already in progress")

        self._running = True
        try:
            return self._commit(Path(worktree or self.git.git_root), message_file)
        finally:
            self._running = False

    def _commit(self, worktree: Path, message_file: Optional[str]) -> CommitResult:
        branch = self.git.current_branch(worktree)
        rollover_result = self._maybe_rollover(worktree, branch)
        if rollover_result and rollover_result.rolled_over:
            branch = self.git.current_branch(worktree)

        message_name = message_file or self.config.commit.message_file
        message_path = worktree / message_name
        message = self.read_message(message_path)

        self.git.stage_all(worktree, exclude=[message_name])
        staged = self.git.staged_count(worktree)
        if staged == 0:
            return CommitResult(
                committed=False, branch=branch, reason="no staged changes", rollover=rollover_result
            )

        if message is None:
            if self.config.commit.require_message:
                return CommitResult(
                    committed=False,
                    branch=branch,
                    reason=f"no commit message in {message_name}",
                    rollover=rollover_result,
                )
            message = f"chore: auto-commit {staged} file(s)"
        elif not HEADER_PATTERN.match(message):
            return CommitResult(
                committed=False,
                branch=branch,
                message=message,
                reason="message header must follow type(scope): subject",
                rollover=rollover_result,
            )

        sha = self.git.commit(message, cwd=worktree)
        logger.info(f"Committed {staged} file(s) on {branch}: {message.splitlines()[0]}")
        if self.config.commit.clear_message_when == "commit":
            self._clear_message(message_path)

        pushed = False
        if self.config.commit.push:
            try:
                pushed = self.git.push(branch, cwd=worktree)
            except (GitOperationError, MergeConflictError) as e:
                logger.warning(f"Committed but could not push {branch}: {e}")
        if pushed and self.config.commit.clear_message_when == "push":
            self._clear_message(message_path)

        return CommitResult(
            committed=True,
            branch=branch,
            commit_sha=sha,
            files_committed=staged,
            pushed=pushed,
            message=message,
            rollover=rollover_result,
        )
