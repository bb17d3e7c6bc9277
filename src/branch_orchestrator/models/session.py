"""Pydantic models for agent session lock records."""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from branch_orchestrator.config import MergeStrategy


class SessionStatus(str, Enum):
    """Lifecycle status of an agent session."""

    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


ALLOWED_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.ACTIVE: {SessionStatus.PAUSED, SessionStatus.CLOSED},
    SessionStatus.PAUSED: {SessionStatus.ACTIVE, SessionStatus.CLOSED},
    SessionStatus.CLOSED: set(),
}


class MergeConfig(BaseModel):
    """Per-session merge settings; unset fields fall back to project defaults."""

    model_config = ConfigDict(populate_by_name=True)

    auto_merge: bool = Field(default=True, alias="autoMerge")
    target_branch: Optional[str] = Field(default=None, alias="targetBranch")
    strategy: Optional[MergeStrategy] = None


class SessionRecord(BaseModel):
    """One agent's isolated unit of work, persisted as a lock file."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", description="Immutable short id")
    agent_type: str = Field(alias="agentType", description="Free-form agent kind")
    task: str
    worktree_path: str = Field(alias="worktreePath")
    branch_name: str = Field(alias="branchName")
    created: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    pid: Optional[int] = Field(default=None, description="Owning process id, if known")
    developer_initials: str = Field(default="dev", alias="developerInitials")
    merge_config: MergeConfig = Field(default_factory=MergeConfig, alias="mergeConfig")

    @property
    def worktree(self) -> Path:
        return Path(self.worktree_path)

    def age_days(self, now: Optional[datetime] = None) -> float:
        """Days elapsed since the session was created."""
        now = now or datetime.now(timezone.utc)
        created = self.created
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return (now - created).total_seconds() / 86400

    def to_lock_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
