"""Branch hierarchy classification.

Branch names encode their place in the hierarchy:

- session: ``<prefix><agent>/<sessionId>/<task>``
- daily: ``<dailyPrefix><YYYY-MM-DD>``
- weekly: ``<weeklyPrefix><YYYY-MM-DD>_to_<YYYY-MM-DD>``
- version: ``<versionPrefix><N>``
- target: the configured mainline branch
"""

import re
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from branch_orchestrator.config import ProjectConfig

DATE_FORMAT = "%Y-%m-%d"
_DATE_RE = r"(\d{4}-\d{2}-\d{2})"


class BranchKind(str, Enum):
    """Position of a branch in the hierarchy."""

    SESSION = "session"
    DAILY = "daily"
    WEEKLY = "weekly"
    VERSION = "version"
    TARGET = "target"
    OTHER = "other"


class BranchNode(BaseModel):
    """A classified branch with the dates or counter encoded in its name."""

    name: str
    kind: BranchKind
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    version: Optional[int] = None


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_daily_date(name: str, prefix: str) -> Optional[date]:
    """Return the date of a daily branch, or None if name is not one."""
    match = re.fullmatch(re.escape(prefix) + _DATE_RE, name)
    return _parse_date(match.group(1)) if match else None


def parse_weekly_range(name: str, prefix: str) -> Optional[tuple[date, date]]:
    """Return (start, end) of a weekly branch, or None if name is not one."""
    match = re.fullmatch(re.escape(prefix) + _DATE_RE + "_to_" + _DATE_RE, name)
    if not match:
        return None
    start, end = _parse_date(match.group(1)), _parse_date(match.group(2))
    if start is None or end is None or end < start:
        return None
    return start, end


def parse_version(name: str, prefix: str) -> Optional[int]:
    """Return the counter of a version branch, or None if name is not one."""
    match = re.fullmatch(re.escape(prefix) + r"(\d+)", name)
    return int(match.group(1)) if match else None


def daily_branch_name(day: date, config: ProjectConfig) -> str:
    return f"{config.branch_management.daily_branch_prefix}{day.strftime(DATE_FORMAT)}"


def weekly_branch_name(start: date, end: date, config: ProjectConfig) -> str:
    return (
        f"{config.branch_management.weekly_branch_prefix}"
        f"{start.strftime(DATE_FORMAT)}_to_{end.strftime(DATE_FORMAT)}"
    )


def classify_branch(name: str, config: ProjectConfig) -> BranchNode:
    """
    Classify a branch name by the naming rules above.

    Args:
        name: Branch name without any remote prefix.
        config: Project configuration holding the prefixes.

    Returns:
        BranchNode with kind and the parsed dates or version counter.
    """
    branches = config.branch_management

    if name == branches.default_merge_target:
        return BranchNode(name=name, kind=BranchKind.TARGET)

    day = parse_daily_date(name, branches.daily_branch_prefix)
    if day:
        return BranchNode(name=name, kind=BranchKind.DAILY, start_date=day, end_date=day)

    week = parse_weekly_range(name, branches.weekly_branch_prefix)
    if week:
        return BranchNode(
            name=name, kind=BranchKind.WEEKLY, start_date=week[0], end_date=week[1]
        )

    version = parse_version(name, config.rollover_settings.version_prefix)
    if version is not None:
        return BranchNode(name=name, kind=BranchKind.VERSION, version=version)

    remainder = name
    if branches.session_branch_prefix:
        if not name.startswith(branches.session_branch_prefix):
            return BranchNode(name=name, kind=BranchKind.OTHER)
        remainder = name[len(branches.session_branch_prefix):]
    if len(remainder.split("/")) == 3 and all(remainder.split("/")):
        return BranchNode(name=name, kind=BranchKind.SESSION)

    return BranchNode(name=name, kind=BranchKind.OTHER)
