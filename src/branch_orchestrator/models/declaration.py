"""Pydantic models for file coordination declarations."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FileOperation(str, Enum):
    """Kind of change an agent intends to make."""

    EDIT = "edit"
    CREATE = "create"
    DELETE = "delete"


class FileDeclaration(BaseModel):
    """An agent's advisory claim over a set of files.

    ``estimated_duration`` is informational only. A declaration stays
    active until its session releases it, however long that takes.
    """

    model_config = ConfigDict(populate_by_name=True)

    agent: str
    session: str
    files: list[str] = Field(default_factory=list)
    operation: FileOperation = FileOperation.EDIT
    reason: str = ""
    declared_at: datetime = Field(alias="declaredAt")
    estimated_duration: int = Field(default=300, ge=0, alias="estimatedDuration")
    released_at: Optional[datetime] = Field(default=None, alias="releasedAt")


class DeclarationConflict(BaseModel):
    """A file already held by another session."""

    file: str
    agent: str
    session: str
    reason: str = ""


class CoordinationAudit(BaseModel):
    """Comparison of declared files against files actually changed."""

    session: str
    declared_files: list[str] = []
    changed_files: list[str] = []
    undeclared_files: list[str] = []
    held_by_others: list[DeclarationConflict] = []

    @property
    def clean(self) -> bool:
        return not self.undeclared_files and not self.held_by_others
