"""
Configuration management for branch-orchestrator.

Loads the project settings from TOML files in the following priority:
1. Path specified via --config flag
2. local_deploy/project-settings.toml in the repository root
3. ~/.config/branch-orchestrator/config.toml

Keys use the camelCase names stored in the settings file
(``branchManagement.defaultMergeTarget``); attributes are snake_case.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import toml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from branch_orchestrator.errors import ConfigError
from branch_orchestrator.utils.io import atomic_write_text

LOCAL_DEPLOY_DIR = "local_deploy"
CONFIG_FILENAME = "project-settings.toml"
SESSION_FILENAME = ".devops-session.json"

WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]


class MergeStrategy(str, Enum):
    """Order in which a session is merged into its targets."""

    HIERARCHICAL_FIRST = "hierarchical-first"
    TARGET_FIRST = "target-first"
    PARALLEL = "parallel"


class ConflictResolution(str, Enum):
    """How merge conflicts are surfaced to the operator."""

    PROMPT = "prompt"
    MANUAL = "manual"
    ABORT = "abort"


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class BranchManagementConfig(_Section):
    """Branch naming and merge behaviour."""

    default_merge_target: str = Field(
        default="main",
        alias="defaultMergeTarget",
        description="Mainline branch sessions and versions merge into",
    )
    enable_dual_merge: bool = Field(
        default=False,
        alias="enableDualMerge",
        description="Merge closed sessions into both the daily and the target branch",
    )
    enable_weekly_consolidation: bool = Field(
        default=True,
        alias="enableWeeklyConsolidation",
        description="Fold last week's daily branches into one weekly branch",
    )
    orphan_session_threshold_days: int = Field(
        default=7,
        ge=1,
        alias="orphanSessionThresholdDays",
        description="Age in days after which an open session is an orphan",
    )
    merge_strategy: MergeStrategy = Field(
        default=MergeStrategy.HIERARCHICAL_FIRST,
        alias="mergeStrategy",
        description="Dual merge ordering (hierarchical-first, target-first, parallel)",
    )
    conflict_resolution: ConflictResolution = Field(
        default=ConflictResolution.PROMPT,
        alias="conflictResolution",
        description="How unresolved merge conflicts are reported",
    )
    daily_branch_prefix: str = Field(
        default="daily/",
        min_length=1,
        alias="dailyBranchPrefix",
    )
    weekly_branch_prefix: str = Field(
        default="weekly/",
        min_length=1,
        alias="weeklyBranchPrefix",
    )
    session_branch_prefix: str = Field(
        default="",
        alias="sessionBranchPrefix",
        description="Optional prefix prepended to <agent>/<session>/<task>",
    )


class RolloverConfig(_Section):
    """Daily and version branch rollover."""

    enable_auto_rollover: bool = Field(
        default=True,
        alias="enableAutoRollover",
        description="Run the rollover check before every auto-commit",
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to compute the current date",
    )
    prompt_before_rollover: bool = Field(
        default=True,
        alias="promptBeforeRollover",
    )
    version_prefix: str = Field(default="v0.", min_length=1, alias="versionPrefix")
    version_start_minor: int = Field(default=20, ge=0, alias="versionStartMinor")
    version_increment: int = Field(default=1, ge=1, alias="versionIncrement")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{value}'") from e
        return value


class CleanupConfig(_Section):
    """Periodic sweeps: weekly consolidation, orphans and stale locks."""

    auto_cleanup_orphans: bool = Field(
        default=False,
        alias="autoCleanupOrphans",
        description="Clean every orphan without prompting",
    )
    weekly_cleanup_day: str = Field(default="sunday", alias="weeklyCleanupDay")
    retain_weekly_branches: int = Field(default=12, ge=0, alias="retainWeeklyBranches")
    stale_lock_minutes: int = Field(
        default=60,
        ge=1,
        alias="staleLockMinutes",
        description="Lock files older than this with no live process are swept",
    )

    @field_validator("weekly_cleanup_day")
    @classmethod
    def _weekday_name(cls, value: str) -> str:
        day = value.strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"'{value}' is not a weekday name")
        return day


class CommitConfig(_Section):
    """Auto-commit behaviour for agent worktrees."""

    push: bool = Field(default=True, description="Push after each auto-commit")
    require_message: bool = Field(
        default=True,
        alias="requireMessage",
        description="Only commit when the message file holds a conventional header",
    )
    message_file: str = Field(default=".commit-msg", alias="messageFile")
    clear_message_when: str = Field(
        default="push",
        alias="clearMessageWhen",
        pattern=r"^(push|commit|never)$",
    )


class IdentityConfig(_Section):
    developer_initials: str = Field(default="dev", min_length=1, alias="developerInitials")


class AutomationConfig(_Section):
    assume_yes: bool = Field(
        default=False,
        alias="assumeYes",
        description="Auto-answer confirmation prompts for unattended runs",
    )


class RemoteConfig(_Section):
    name: str = Field(default="origin", description="Remote used for fetch and push")


class ProjectConfig(_Section):
    """Main configuration model for branch-orchestrator."""

    branch_management: BranchManagementConfig = Field(
        default_factory=BranchManagementConfig, alias="branchManagement"
    )
    rollover_settings: RolloverConfig = Field(
        default_factory=RolloverConfig, alias="rolloverSettings"
    )
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    commit: CommitConfig = Field(default_factory=CommitConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    def to_dict(self) -> dict[str, Any]:
        """Dump using the on-disk camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


def local_excludes(config: ProjectConfig) -> list[str]:
    """Paths the orchestrator writes that git should never report as changes."""
    return [f"/{LOCAL_DEPLOY_DIR}/", SESSION_FILENAME, config.commit.message_file]


def get_default_config_path(repo_root: Optional[Path] = None) -> Path:
    """Get the project settings path inside a repository."""
    return (repo_root or Path.cwd()) / LOCAL_DEPLOY_DIR / CONFIG_FILENAME


def load_config(
    config_path: Optional[str] = None, repo_root: Optional[Path] = None
) -> ProjectConfig:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Optional explicit path to config file.
        repo_root: Repository root holding local_deploy/. Defaults to cwd.

    Returns:
        ProjectConfig with loaded or default values.

    Raises:
        ConfigError: If the explicit path is missing, or the first config
            file found cannot be parsed or validated.
    """
    if config_path and not Path(config_path).exists():
        raise ConfigError(f"Config file not found: {config_path}")

    search_paths = [
        Path(config_path) if config_path else None,
        get_default_config_path(repo_root),
        Path.home() / ".config" / "branch-orchestrator" / "config.toml",
    ]

    for path in search_paths:
        if path and path.exists():
            try:
                data = toml.load(path)
            except (toml.TomlDecodeError, OSError) as e:
                raise ConfigError(f"Could not read {path}: {e}") from e
            try:
                return ProjectConfig.model_validate(data)
            except ValidationError as e:
                raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e

    return ProjectConfig()


def save_config(config: ProjectConfig, path: Path) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save.
        path: Path to save the config file.
    """
    atomic_write_text(path, toml.dumps(config.to_dict()))


def coerce_value(raw: str) -> Any:
    """Convert a command-line string into a bool, int, float or str."""
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def get_setting(config: ProjectConfig, key: str) -> Any:
    """
    Look up a setting by dot path, e.g. ``branchManagement.mergeStrategy``.

    Raises:
        ConfigError: If the key does not exist.
    """
    node: Any = config.to_dict()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise ConfigError(f"Unknown setting: {key}")
        node = node[part]
    return node


def set_setting(config: ProjectConfig, key: str, raw_value: str) -> ProjectConfig:
    """
    Return a copy of config with one setting changed.

    The string value is coerced first; the whole configuration is then
    re-validated so an invalid value never reaches disk.

    Raises:
        ConfigError: If the key is unknown or the value fails validation.
    """
    data = config.to_dict()
    parts = key.split(".")
    node = data
    for part in parts[:-1]:
        if not isinstance(node.get(part), dict):
            raise ConfigError(f"Unknown setting: {key}")
        node = node[part]
    if parts[-1] not in node or isinstance(node[parts[-1]], dict):
        raise ConfigError(f"Unknown setting: {key}")

    current = node[parts[-1]]
    value = coerce_value(raw_value)
    if isinstance(current, str) and not isinstance(value, str):
        value = raw_value
    node[parts[-1]] = value

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {raw_value}") from e


def validate_config(config: ProjectConfig) -> list[str]:
    """
    Check cross-field rules the schema cannot express.

    Returns:
        List of problems; empty when the configuration is consistent.
    """
    problems = []
    branches = config.branch_management

    if branches.daily_branch_prefix == branches.weekly_branch_prefix:
        problems.append("dailyBranchPrefix and weeklyBranchPrefix must differ")

    for prefix_name, prefix in (
        ("dailyBranchPrefix", branches.daily_branch_prefix),
        ("weeklyBranchPrefix", branches.weekly_branch_prefix),
        ("versionPrefix", config.rollover_settings.version_prefix),
    ):
        if branches.default_merge_target.startswith(prefix):
            problems.append(
                f"defaultMergeTarget '{branches.default_merge_target}' collides with {prefix_name}"
            )

    if branches.session_branch_prefix and branches.session_branch_prefix in (
        branches.daily_branch_prefix,
        branches.weekly_branch_prefix,
    ):
        problems.append("sessionBranchPrefix must not reuse the daily or weekly prefix")

    return problems
