"""
Session registry for agent worktrees.

This module provides functionality to:
- Create a session: id, dedicated branch, linked worktree and lock record
- List, update and transition session records
- Sweep lock files left behind by processes that no longer exist

Each session is one JSON lock file under local_deploy/session-locks/ in the
main checkout. Worktrees live under local_deploy/worktrees/.
"""

import json
import logging
import os
import re
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from branch_orchestrator.config import (
    LOCAL_DEPLOY_DIR,
    SESSION_FILENAME,
    ProjectConfig,
    local_excludes,
)
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.ledger import FileCoordinationLedger
from branch_orchestrator.core.rollover import current_daily_branch
from branch_orchestrator.errors import SessionNotFoundError, SessionStateError
from branch_orchestrator.models.session import (
    ALLOWED_TRANSITIONS,
    MergeConfig,
    SessionRecord,
    SessionStatus,
)
from branch_orchestrator.utils.io import atomic_write_json, read_json

logger = logging.getLogger(__name__)

LOCKS_DIRNAME = "session-locks"
WORKTREES_DIRNAME = "worktrees"
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def slugify(value: str, fallback: str = "task") -> str:
    """Make a string safe for branch and directory names."""
    slug = re.sub(r"\s+", "-", value.strip().lower())
    slug = re.sub(r"[^\w.\-]", "", slug)
    slug = re.sub(r"-{2,}", "-", slug).strip("-.")
    return slug.replace("..", ".") or fallback


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_session_id() -> str:
    """Short id: last four base36 digits of the ms clock plus random hex."""
    return f"{_to_base36(int(time.time() * 1000))[-4:]}-{secrets.token_hex(2)}"


def pid_alive(pid: Optional[int]) -> bool:
    """Check whether a process id refers to a running process."""
    if not pid or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class SessionRegistry:
    """Creates and tracks agent sessions."""

    def __init__(
        self,
        git: GitRunner,
        config: ProjectConfig,
        ledger: Optional[FileCoordinationLedger] = None,
    ):
        self.git = git
        self.config = config
        self.root = git.main_root / LOCAL_DEPLOY_DIR
        self.locks_dir = self.root / LOCKS_DIRNAME
        self.worktrees_dir = self.root / WORKTREES_DIRNAME
        self.ledger = ledger or FileCoordinationLedger(git.main_root)
        self.git.ensure_excluded(local_excludes(config))

    def _lock_path(self, session_id: str) -> Path:
        return self.locks_dir / f"{session_id}.lock"

    def branch_name_for(self, agent_kind: str, session_id: str, task: str) -> str:
        prefix = self.config.branch_management.session_branch_prefix
        return f"{prefix}{slugify(agent_kind, 'agent')}/{session_id}/{slugify(task)}"

    def resolve_base_branch(self, now: Optional[datetime] = None) -> str:
        """Today's daily branch, else the target branch, else HEAD."""
        daily = current_daily_branch(self.config, now)
        if self.git.ref_exists(daily):
            return daily
        target = self.config.branch_management.default_merge_target
        if self.git.ref_exists(target):
            logger.info(f"Daily branch {daily} missing, cutting session from {target}")
            return target
        return "HEAD"

    def create_session(
        self,
        task: str,
        agent_kind: str,
        merge_config: Optional[MergeConfig] = None,
        developer_initials: Optional[str] = None,
        base_branch: Optional[str] = None,
        pid: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SessionRecord:
        """
        Create a session with its own branch and worktree.

        Args:
            task: Short task name; becomes part of the branch name.
            agent_kind: Agent identity supplied by the caller.
            merge_config: Session merge settings; project defaults otherwise.
            developer_initials: Identity tag; defaults to the configured one.
            base_branch: Branch to cut from; defaults to today's daily branch.
            pid: Process id of the agent that owns the session; defaults to
                the calling process.
            now: Clock override.

        Returns:
            The persisted SessionRecord.

        Raises:
            ValueError: If task or agent_kind is empty.
            GitOperationError: If the worktree cannot be created.
        """
        if not task.strip():
            raise ValueError("Task name must not be empty")
        if not agent_kind.strip():
            raise ValueError("Agent kind must not be empty")

        session_id = generate_session_id()
        while self._lock_path(session_id).exists():
            session_id = generate_session_id()

        agent = slugify(agent_kind, "agent")
        initials = slugify(developer_initials or self.config.identity.developer_initials, "dev")
        branch = self.branch_name_for(agent_kind, session_id, task)
        worktree = self.worktrees_dir / f"{initials}-{agent}-{session_id}-{slugify(task)}"
        base = base_branch or self.resolve_base_branch(now)

        merge_config = merge_config or MergeConfig()
        if merge_config.target_branch is None:
            merge_config.target_branch = self.config.branch_management.default_merge_target
        if merge_config.strategy is None:
            merge_config.strategy = self.config.branch_management.merge_strategy

        self.git.worktree_add(worktree, branch, base)

        record = SessionRecord(
            session_id=session_id,
            agent_type=agent_kind,
            task=task,
            worktree_path=str(worktree),
            branch_name=branch,
            created=now or datetime.now(timezone.utc),
            status=SessionStatus.ACTIVE,
            pid=pid if pid is not None else os.getpid(),
            developer_initials=initials,
            merge_config=merge_config,
        )
        atomic_write_json(worktree / SESSION_FILENAME, record.to_lock_dict())
        self.update(record)

        logger.info(f"Created session {session_id} on {branch} from {base}")
        return record

    def _read(self, path: Path) -> Optional[SessionRecord]:
        try:
            return SessionRecord.model_validate(read_json(path))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable lock file {path.name}: {e}")
            return None

    def get(self, session_id: str) -> SessionRecord:
        """
        Load one session.

        Raises:
            SessionNotFoundError: If no lock file exists for the id.
        """
        record = self._read(self._lock_path(session_id))
        if record is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return record

    def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        agent: Optional[str] = None,
    ) -> list[SessionRecord]:
        """List sessions, oldest first, optionally filtered."""
        if not self.locks_dir.exists():
            return []

        records = []
        for path in self.locks_dir.glob("*.lock"):
            record = self._read(path)
            if record is None:
                continue
            if status is not None and record.status != status:
                continue
            if agent is not None and record.agent_type != agent:
                continue
            records.append(record)
        return sorted(records, key=lambda r: r.created)

    def update(self, record: SessionRecord) -> None:
        atomic_write_json(self._lock_path(record.session_id), record.to_lock_dict())

    def set_status(self, session_id: str, status: SessionStatus) -> SessionRecord:
        """
        Move a session to a new status.

        Raises:
            SessionStateError: If the transition is not allowed.
        """
        record = self.get(session_id)
        if status == record.status:
            return record
        if status not in ALLOWED_TRANSITIONS[record.status]:
            raise SessionStateError(
                f"Session {session_id} cannot go from {record.status.value} to {status.value}"
            )
        record.status = status
        self.update(record)
        return record

    def mark_closed(self, session_id: str) -> SessionRecord:
        return self.set_status(session_id, SessionStatus.CLOSED)

    def delete(self, session_id: str) -> bool:
        """Remove a session's lock file and in-worktree session file."""
        path = self._lock_path(session_id)
        record = self._read(path)
        if record is not None:
            (record.worktree / SESSION_FILENAME).unlink(missing_ok=True)
        existed = path.exists()
        path.unlink(missing_ok=True)
        return existed

    def _still_checked_out(self, record: SessionRecord) -> bool:
        return record.worktree.exists() and self.git.ref_exists(record.branch_name)

    def sweep_stale(
        self, max_age_minutes: Optional[int] = None, now: Optional[float] = None
    ) -> list[str]:
        """
        Remove lock files whose owner is gone.

        A lock is stale when the file was last written more than
        ``max_age_minutes`` ago and its recorded process is not running.
        A session whose worktree and branch both still exist is never swept;
        closing it or orphan cleanup removes it. Declarations held by swept
        sessions are released.

        Args:
            max_age_minutes: Staleness window; defaults to cleanup.staleLockMinutes.
            now: Epoch seconds override.

        Returns:
            Ids of the swept sessions.
        """
        if not self.locks_dir.exists():
            return []

        window = (max_age_minutes or self.config.cleanup.stale_lock_minutes) * 60
        now = now or time.time()
        swept = []

        for path in sorted(self.locks_dir.glob("*.lock")):
            if now - path.stat().st_mtime <= window:
                continue
            record = self._read(path)
            if record is not None and pid_alive(record.pid):
                continue
            if record is not None and self._still_checked_out(record):
                logger.debug(f"Keeping lock for {record.session_id}: worktree and branch exist")
                continue

            session_id = record.session_id if record else path.stem
            path.unlink(missing_ok=True)
            self.ledger.release_session(session_id)
            swept.append(session_id)
            logger.info(f"Swept stale lock for session {session_id}")

        return swept
