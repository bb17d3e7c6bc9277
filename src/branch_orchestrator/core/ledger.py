"""
File coordination ledger.

This module provides functionality to:
- Declare the files an agent is about to edit
- Reject declarations that overlap another session's active declaration
- Answer read-only availability queries
- Archive declarations to a completed store when a session ends
- Audit declared files against the files a session actually changed

There is one ledger per repository, shared by every worktree. The
protocol is check-then-write with no cross-process lock: two agents
declaring the same file at the same instant can both succeed. audit()
is the compensating control that detects such races after the fact.
Declarations never expire on their own; they are released only when the
owning session closes or is abandoned.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from branch_orchestrator.config import LOCAL_DEPLOY_DIR
from branch_orchestrator.errors import CoordinationConflictError, MissingResourceError
from branch_orchestrator.models.declaration import (
    CoordinationAudit,
    DeclarationConflict,
    FileDeclaration,
    FileOperation,
)
from branch_orchestrator.utils.io import atomic_write_json, read_json

logger = logging.getLogger(__name__)

LEDGER_DIRNAME = ".file-coordination"


def normalize_path(path: str) -> str:
    """Normalize a repository-relative path for comparison."""
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.rstrip("/")


class FileCoordinationLedger:
    """Filesystem-backed store of per-session file declarations."""

    ACTIVE_DIR = "active-edits"
    COMPLETED_DIR = "completed-edits"

    def __init__(self, repo_root: Path, store_dir: Optional[Path] = None):
        self.root = store_dir or Path(repo_root) / LOCAL_DEPLOY_DIR / LEDGER_DIRNAME
        self.active_dir = self.root / self.ACTIVE_DIR
        self.completed_dir = self.root / self.COMPLETED_DIR

    def _record_path(self, agent: str, session: str) -> Path:
        return self.active_dir / f"{agent}-{session}.json"

    def _load(self, path: Path) -> Optional[FileDeclaration]:
        try:
            return FileDeclaration.model_validate(read_json(path))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable declaration {path.name}: {e}")
            return None

    def active_declarations(self) -> list[FileDeclaration]:
        """Return every active declaration, oldest first."""
        if not self.active_dir.exists():
            return []

        declarations = []
        for path in sorted(self.active_dir.glob("*.json")):
            declaration = self._load(path)
            if declaration:
                declarations.append(declaration)
        return sorted(declarations, key=lambda d: d.declared_at)

    def find(self, agent: str, session: str) -> Optional[FileDeclaration]:
        return self._load(self._record_path(agent, session))

    def conflicts_for(
        self, files: Iterable[str], session: Optional[str] = None
    ) -> list[DeclarationConflict]:
        """
        List files already held by sessions other than ``session``.

        Args:
            files: Paths to check.
            session: The asking session; its own declarations never conflict.

        Returns:
            One DeclarationConflict per (file, holder) pair.
        """
        wanted = {normalize_path(f) for f in files}
        conflicts = []

        for declaration in self.active_declarations():
            if session is not None and declaration.session == session:
                continue
            held = {normalize_path(f) for f in declaration.files}
            for path in sorted(wanted & held):
                conflicts.append(
                    DeclarationConflict(
                        file=path,
                        agent=declaration.agent,
                        session=declaration.session,
                        reason=declaration.reason,
                    )
                )
        return conflicts

    def check_availability(
        self, files: Iterable[str], session: Optional[str] = None
    ) -> dict[str, bool]:
        """Map each path to True when no other session holds it."""
        files = [normalize_path(f) for f in files]
        taken = {c.file for c in self.conflicts_for(files, session)}
        return {path: path not in taken for path in files}

    def declare(
        self,
        agent: str,
        session: str,
        files: Iterable[str],
        reason: str = "",
        operation: FileOperation = FileOperation.EDIT,
        estimated_duration: int = 300,
        append: bool = False,
    ) -> FileDeclaration:
        """
        Declare files before editing them.

        Re-declaring for the same (agent, session) rewrites the record;
        with ``append`` the new files are added to the existing set.

        Args:
            agent: Agent kind making the claim.
            session: Session id owning the claim.
            files: Repository-relative paths.
            reason: Human-readable purpose.
            operation: Kind of change intended.
            estimated_duration: Advisory duration in seconds.
            append: Keep previously declared files.

        Returns:
            The stored declaration.

        Raises:
            CoordinationConflictError: If any file is held by another session.
        """
        requested = list(dict.fromkeys(normalize_path(f) for f in files if f.strip()))
        if not requested:
            raise ValueError("At least one file must be declared")

        conflicts = self.conflicts_for(requested, session)
        if conflicts:
            raise CoordinationConflictError(conflicts)

        if append:
            existing = self.find(agent, session)
            if existing:
                requested = list(dict.fromkeys(existing.files + requested))

        declaration = FileDeclaration(
            agent=agent,
            session=session,
            files=requested,
            operation=operation,
            reason=reason,
            declared_at=datetime.now(timezone.utc),
            estimated_duration=estimated_duration,
        )
        atomic_write_json(
            self._record_path(agent, session),
            declaration.model_dump(by_alias=True, mode="json"),
        )
        logger.info(f"{agent}/{session} declared {len(requested)} file(s)")
        return declaration

    def release(self, agent: str, session: str) -> Path:
        """
        Move a declaration to the completed store.

        Returns:
            Path of the archived record.

        Raises:
            MissingResourceError: If the session holds no declaration.
        """
        source = self._record_path(agent, session)
        declaration = self._load(source)
        if declaration is None:
            raise MissingResourceError(f"No active declaration for {agent}/{session}")

        released_at = datetime.now(timezone.utc)
        declaration.released_at = released_at
        stamp = released_at.strftime("%Y%m%dT%H%M%S%f")
        destination = self.completed_dir / f"{agent}-{session}-{stamp}.json"

        atomic_write_json(destination, declaration.model_dump(by_alias=True, mode="json"))
        source.unlink(missing_ok=True)
        logger.info(f"Released declaration for {agent}/{session}")
        return destination

    def release_session(self, session: str) -> list[Path]:
        """Archive every declaration owned by a session; tolerant of none."""
        archived = []
        for declaration in self.active_declarations():
            if declaration.session == session:
                archived.append(self.release(declaration.agent, declaration.session))
        return archived

    def audit(self, session: str, changed_files: Iterable[str]) -> CoordinationAudit:
        """
        Compare what a session declared with what it actually changed.

        Args:
            session: Session id to audit.
            changed_files: Files changed in the session's worktree.

        Returns:
            CoordinationAudit listing undeclared edits and edits to files
            another session holds.
        """
        changed = sorted({normalize_path(f) for f in changed_files})
        declared: set[str] = set()
        for declaration in self.active_declarations():
            if declaration.session == session:
                declared.update(normalize_path(f) for f in declaration.files)

        return CoordinationAudit(
            session=session,
            declared_files=sorted(declared),
            changed_files=changed,
            undeclared_files=[f for f in changed if f not in declared],
            held_by_others=self.conflicts_for(changed, session),
        )
