"""Exception hierarchy shared by the orchestrator services."""

from typing import Iterable, Optional


class BranchOrchestratorError(Exception):
    """Base exception for branch orchestration failures."""


class ConfigError(BranchOrchestratorError):
    """Raised when project configuration is missing or invalid."""


class GitOperationError(BranchOrchestratorError):
    """Raised when a git subprocess call fails."""

    def __init__(self, message: str, command: Optional[list[str]] = None, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr


class NotAGitRepositoryError(GitOperationError):
    """Raised when the path is not a git repository."""


class MergeConflictError(BranchOrchestratorError):
    """Raised when a non-fast-forward merge stops on conflicts.

    The merge is aborted before this is raised, so the target branch is
    left exactly as it was before the attempt.
    """

    def __init__(self, source: str, target: str, files: Optional[Iterable[str]] = None):
        self.source = source
        self.target = target
        self.files = list(files or [])
        detail = f": {', '.join(self.files)}" if self.files else ""
        super().__init__(f"Merge of '{source}' into '{target}' produced conflicts{detail}")


class CoordinationConflictError(BranchOrchestratorError):
    """Raised when a file declaration overlaps another active declaration."""

    def __init__(self, conflicts: list):
        self.conflicts = conflicts
        lines = [
            f"{c.file} (held by agent '{c.agent}', session {c.session})" for c in conflicts
        ]
        super().__init__("Files already declared by another session: " + "; ".join(lines))


class MissingResourceError(BranchOrchestratorError):
    """Raised when an expected branch, lock file, or record is absent."""


class SessionNotFoundError(MissingResourceError):
    """Raised when a session lock record cannot be found."""


class BranchMissingError(MissingResourceError):
    """Raised when a branch is absent both locally and on the remote."""


class SessionStateError(BranchOrchestratorError):
    """Raised on an illegal session status transition."""
