"""
Core modules for Branch Orchestrator.

This package contains the core business logic for:
- Git command execution
- Session registry and worktrees
- File coordination ledger
- Daily/version rollover
- Session merges
- Weekly consolidation and orphan reclamation
- Auto-commit
"""

from branch_orchestrator.core.committer import AutoCommitter, CommitResult
from branch_orchestrator.core.git import GitResult, GitRunner
from branch_orchestrator.core.ledger import FileCoordinationLedger
from branch_orchestrator.core.merge import (
    MergeOrchestrator,
    MergeOutcome,
    MergeOutcomeStatus,
    SessionMergeReport,
)
from branch_orchestrator.core.orphans import (
    CleanupMode,
    OrphanCleanupReport,
    OrphanReclaimer,
    OrphanSession,
)
from branch_orchestrator.core.rollover import (
    RolloverEngine,
    RolloverPlan,
    RolloverResult,
    RolloverState,
)
from branch_orchestrator.core.sessions import SessionRegistry
from branch_orchestrator.core.weekly import (
    ConsolidationReport,
    ConsolidationStatus,
    PruneReport,
    WeeklyConsolidator,
)

__all__ = [
    "AutoCommitter",
    "CommitResult",
    "GitResult",
    "GitRunner",
    "FileCoordinationLedger",
    "MergeOrchestrator",
    "MergeOutcome",
    "MergeOutcomeStatus",
    "SessionMergeReport",
    "CleanupMode",
    "OrphanCleanupReport",
    "OrphanReclaimer",
    "OrphanSession",
    "RolloverEngine",
    "RolloverPlan",
    "RolloverResult",
    "RolloverState",
    "SessionRegistry",
    "ConsolidationReport",
    "ConsolidationStatus",
    "PruneReport",
    "WeeklyConsolidator",
]
