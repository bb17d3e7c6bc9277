"""
Pytest configuration and shared fixtures for Branch Orchestrator tests.
"""

import subprocess
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest

from branch_orchestrator.config import ProjectConfig
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.ledger import FileCoordinationLedger
from branch_orchestrator.core.merge import MergeOrchestrator
from branch_orchestrator.core.rollover import RolloverEngine
from branch_orchestrator.core.sessions import SessionRegistry

# 2026-10-18 is a Sunday.
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def run_git(cwd: Path, *args: str) -> subprocess.CompletedProcess:
    """Run git in cwd and fail the test if it fails."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result


def configure_identity(repo_path: Path) -> None:
    run_git(repo_path, "config", "user.email", "test@example.com")
    run_git(repo_path, "config", "user.name", "Test User")
    run_git(repo_path, "config", "commit.gpgsign", "false")


@pytest.fixture
def temp_directory() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def git_repo(temp_directory: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository on branch main."""
    repo_path = temp_directory / "test-repo"
    repo_path.mkdir()

    run_git(repo_path, "init")
    configure_identity(repo_path)

    (repo_path / "README.md").write_text("# Test Repository\n")
    run_git(repo_path, "add", ".")
    run_git(repo_path, "commit", "-m", "Initial commit")
    run_git(repo_path, "branch", "-M", "main")

    yield repo_path


@pytest.fixture
def remote_repo(git_repo: Path, temp_directory: Path) -> Path:
    """Attach a bare origin to git_repo and push main."""
    remote_path = temp_directory / "remote.git"
    run_git(temp_directory, "init", "--bare", "--initial-branch=main", str(remote_path))
    run_git(git_repo, "remote", "add", "origin", str(remote_path))
    run_git(git_repo, "push", "-u", "origin", "main")
    return remote_path


@pytest.fixture
def commit_file() -> Callable[..., str]:
    """Return a helper that writes a file, commits it and returns the sha."""

    def _commit(repo_path: Path, name: str, content: str, message: str = "") -> str:
        path = repo_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        run_git(repo_path, "add", name)
        run_git(repo_path, "commit", "-m", message or f"Update {name}")
        return run_git(repo_path, "rev-parse", "HEAD").stdout.strip()

    return _commit


@pytest.fixture
def config() -> ProjectConfig:
    """Project configuration for unattended runs."""
    config = ProjectConfig()
    config.automation.assume_yes = True
    config.commit.push = False
    return config


@pytest.fixture
def git(git_repo: Path) -> GitRunner:
    return GitRunner(git_repo)


@pytest.fixture
def ledger(git_repo: Path) -> FileCoordinationLedger:
    return FileCoordinationLedger(git_repo)


@pytest.fixture
def registry(git: GitRunner, config: ProjectConfig, ledger: FileCoordinationLedger) -> SessionRegistry:
    return SessionRegistry(git, config, ledger)


@pytest.fixture
def rollover(git: GitRunner, config: ProjectConfig) -> RolloverEngine:
    return RolloverEngine(git, config)


@pytest.fixture
def merger(
    git: GitRunner,
    config: ProjectConfig,
    registry: SessionRegistry,
    ledger: FileCoordinationLedger,
) -> MergeOrchestrator:
    return MergeOrchestrator(git, config, registry, ledger)
