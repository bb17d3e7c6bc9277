"""
Pydantic models for Branch Orchestrator.

This package contains data models for:
- Session lock records
- File coordination declarations
- Branch hierarchy classification
"""

from branch_orchestrator.models.branches import (
    BranchKind,
    BranchNode,
    classify_branch,
)
from branch_orchestrator.models.declaration import (
    CoordinationAudit,
    DeclarationConflict,
    FileDeclaration,
    FileOperation,
)
from branch_orchestrator.models.session import (
    MergeConfig,
    SessionRecord,
    SessionStatus,
)

__all__ = [
    "BranchKind",
    "BranchNode",
    "classify_branch",
    "CoordinationAudit",
    "DeclarationConflict",
    "FileDeclaration",
    "FileOperation",
    "MergeConfig",
    "SessionRecord",
    "SessionStatus",
]
