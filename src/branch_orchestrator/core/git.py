"""
Git command adapter.

This module provides functionality to:
- Run git commands in the main checkout or any linked worktree
- Normalize success and failure into GitResult
- Merge, push and delete branches with the orchestrator's error semantics
- Manage linked worktrees
"""

import fnmatch
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from git import Git, Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError
from pydantic import BaseModel

from branch_orchestrator.errors import (
    BranchMissingError,
    GitOperationError,
    MergeConflictError,
    NotAGitRepositoryError,
)

logger = logging.getLogger(__name__)


class GitResult(BaseModel):
    """Outcome of a single git invocation."""

    args: list[str]
    ok: bool
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def lines(self) -> list[str]:
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


class GitRunner:
    """Runs git commands against one repository and its worktrees."""

    def __init__(self, repo_path: Optional[Path] = None, remote_name: str = "origin"):
        """
        Initialize the GitRunner.

        Args:
            repo_path: Path inside the repository. Defaults to current directory.
            remote_name: Preferred remote for fetch and push.

        Raises:
            NotAGitRepositoryError: If the path is not a git repository.
        """
        self.repo_path = Path(repo_path or Path.cwd())
        try:
            self.repo = Repo(self.repo_path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotAGitRepositoryError(f"Not a git repository: {self.repo_path}") from e

        self.git_root = Path(self.repo.working_dir)
        self.remote_name = remote_name

    @property
    def main_root(self) -> Path:
        """Working directory of the main checkout, even from a linked worktree."""
        return Path(self.repo.common_dir).resolve().parent

    def run(self, *args: str, cwd: Optional[Path] = None) -> GitResult:
        """
        Run a git command and capture its output.

        Args:
            *args: Arguments after ``git``.
            cwd: Working directory; defaults to the repository root.

        Returns:
            GitResult; never raises on a non-zero exit.
        """
        command = ["git", *args]
        runner = Git(str(cwd)) if cwd else self.repo.git
        status, stdout, stderr = runner.execute(
            command,
            with_extended_output=True,
            with_exceptions=False,
        )
        result = GitResult(
            args=list(args),
            ok=status == 0,
            returncode=status or 0,
            stdout=(stdout or "").strip(),
            stderr=(stderr or "").strip(),
        )
        if not result.ok:
            logger.debug(f"git {' '.join(args)} failed ({status}): {result.stderr}")
        return result

    def check(self, *args: str, cwd: Optional[Path] = None) -> GitResult:
        """Run a git command and raise GitOperationError on failure."""
        result = self.run(*args, cwd=cwd)
        if not result.ok:
            raise GitOperationError(
                f"git {' '.join(args)} failed: {result.stderr or result.stdout}",
                command=["git", *args],
                stderr=result.stderr,
            )
        return result

    # Branch queries

    def current_branch(self, cwd: Optional[Path] = None) -> str:
        """Return the checked-out branch name, or an empty string if detached."""
        return self.run("branch", "--show-current", cwd=cwd).stdout

    def rev_parse(self, ref: str, cwd: Optional[Path] = None) -> Optional[str]:
        result = self.run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", cwd=cwd)
        return result.stdout if result.ok else None

    def branch_exists(self, name: str) -> bool:
        return self.run("rev-parse", "--verify", "--quiet", f"refs/heads/{name}").ok

    def has_remote(self) -> bool:
        return bool(self.run("remote").lines)

    def default_remote(self) -> Optional[str]:
        remotes = self.run("remote").lines
        if not remotes:
            return None
        return self.remote_name if self.remote_name in remotes else remotes[0]

    def remote_branch_exists(self, name: str) -> bool:
        """Ask the remote itself whether it has the branch."""
        remote = self.default_remote()
        if not remote:
            return False
        result = self.run("ls-remote", "--heads", remote, f"refs/heads/{name}")
        return result.ok and bool(result.stdout)

    def ref_exists(self, name: str) -> bool:
        """True if the branch exists locally or as a remote-tracking ref."""
        return self.resolve_ref(name) is not None

    def resolve_ref(self, name: str) -> Optional[str]:
        """Return a ref usable in merge/checkout for a branch name."""
        if self.branch_exists(name):
            return name
        remote = self.default_remote()
        if remote and self.run(
            "rev-parse", "--verify", "--quiet", f"refs/remotes/{remote}/{name}"
        ).ok:
            return f"{remote}/{name}"
        return None

    def list_branches(self, pattern: str = "*") -> list[str]:
        """
        List local and remote-tracking branches matching a glob.

        Remote-tracking names are reported without their remote prefix
        and merged with the local names.
        """
        refs = ["refs/heads"]
        remote = self.default_remote()
        if remote:
            refs.append(f"refs/remotes/{remote}")

        result = self.run("for-each-ref", "--format=%(refname)", *refs)
        names = set()
        for ref in result.lines:
            if ref.startswith("refs/heads/"):
                name = ref[len("refs/heads/"):]
            elif remote and ref.startswith(f"refs/remotes/{remote}/"):
                name = ref[len(f"refs/remotes/{remote}/"):]
            else:
                continue
            if name == "HEAD":
                continue
            if fnmatch.fnmatchcase(name, pattern):
                names.add(name)
        return sorted(names)

    def last_commit_time(self, name: str) -> Optional[datetime]:
        ref = self.resolve_ref(name)
        if not ref:
            return None
        result = self.run("log", "-1", "--format=%cI", ref)
        if not result.ok or not result.stdout:
            return None
        return datetime.fromisoformat(result.stdout)

    def is_ancestor(self, commit: str, branch: str) -> bool:
        """True if commit is reachable from branch."""
        return self.run("merge-base", "--is-ancestor", commit, branch).ok

    # Branch mutations

    def checkout(self, name: str, cwd: Optional[Path] = None) -> None:
        """
        Check out a branch, creating a tracking branch from the remote if needed.

        Raises:
            BranchMissingError: If the branch exists neither locally nor remotely.
            GitOperationError: If git refuses the checkout.
        """
        if self.branch_exists(name):
            self.check("checkout", name, cwd=cwd)
            return

        ref = self.resolve_ref(name)
        if not ref:
            raise BranchMissingError(f"Branch not found: {name}")
        self.check("checkout", "-b", name, "--track", ref, cwd=cwd)

    def create_branch(
        self, name: str, base: str, checkout: bool = True, cwd: Optional[Path] = None
    ) -> None:
        """Create or reset a branch at base, optionally checking it out."""
        base_ref = self.resolve_ref(base) or base
        if checkout:
            self.check("checkout", "-B", name, base_ref, cwd=cwd)
        else:
            self.check("branch", "-f", name, base_ref, cwd=cwd)

    def delete_branch(self, name: str, remote: bool = True) -> bool:
        """
        Delete a branch locally and, optionally, on the remote.

        A side that is already gone is skipped.

        Returns:
            True if anything was deleted.

        Raises:
            GitOperationError: If an existing branch could not be deleted.
        """
        deleted = False
        if self.branch_exists(name):
            self.check("branch", "-D", name)
            deleted = True

        remote_name = self.default_remote()
        if remote and remote_name and self.remote_branch_exists(name):
            self.check("push", remote_name, "--delete", name)
            deleted = True
        if remote_name:
            self.run("branch", "-D", "-r", f"{remote_name}/{name}")

        return deleted

    def merge(self, source: str, message: str, cwd: Optional[Path] = None) -> GitResult:
        """
        Merge source into the checked-out branch with ``--no-ff``.

        Raises:
            MergeConflictError: If the merge stopped on conflicts; the
                merge has been aborted.
            BranchMissingError: If source cannot be resolved.
            GitOperationError: For any other merge failure.
        """
        ref = self.resolve_ref(source)
        if not ref:
            raise BranchMissingError(f"Branch not found: {source}")

        target = self.current_branch(cwd) or "HEAD"
        result = self.run("merge", "--no-ff", "--no-edit", "-m", message, ref, cwd=cwd)
        if result.ok:
            return result

        conflicted = self.run("diff", "--name-only", "--diff-filter=U", cwd=cwd).lines
        self.run("merge", "--abort", cwd=cwd)
        if conflicted or "CONFLICT" in result.stdout:
            raise MergeConflictError(source, target, conflicted)
        raise GitOperationError(
            f"git merge {source} into {target} failed: {result.stderr or result.stdout}",
            command=["git", *result.args],
            stderr=result.stderr,
        )

    def fetch(self, prune: bool = True) -> bool:
        """Fetch from the default remote; False when there is no remote."""
        remote = self.default_remote()
        if not remote:
            return False
        args = ["fetch", remote]
        if prune:
            args.append("--prune")
        return self.run(*args).ok

    def pull(self, branch: str, cwd: Optional[Path] = None) -> None:
        """
        Merge the remote copy of branch into the checked-out branch.

        Raises:
            MergeConflictError: If the pull merge conflicts; it is aborted.
            GitOperationError: If the pull fails for another reason.
        """
        remote = self.default_remote()
        if not remote:
            return
        result = self.run("pull", "--no-rebase", "--no-edit", remote, branch, cwd=cwd)
        if result.ok:
            return

        conflicted = self.run("diff", "--name-only", "--diff-filter=U", cwd=cwd).lines
        if conflicted:
            self.run("merge", "--abort", cwd=cwd)
            raise MergeConflictError(f"{remote}/{branch}", branch, conflicted)
        raise GitOperationError(
            f"git pull {remote} {branch} failed: {result.stderr}",
            command=["git", *result.args],
            stderr=result.stderr,
        )

    def push(self, branch: str, cwd: Optional[Path] = None) -> bool:
        """
        Push a branch, creating the upstream when the remote lacks it.

        A rejected push is retried once after ``pull --no-rebase`` when the
        branch is checked out in cwd.

        Returns:
            True if pushed, False if no remote is configured.

        Raises:
            GitOperationError: If the push still fails after the retry.
            MergeConflictError: If the catch-up pull conflicts.
        """
        remote = self.default_remote()
        if not remote:
            logger.info(f"No remote configured, not pushing {branch}")
            return False

        if not self.remote_branch_exists(branch):
            self.check("push", "-u", remote, branch, cwd=cwd)
            return True

        result = self.run("push", remote, branch, cwd=cwd)
        if result.ok:
            return True

        if self.current_branch(cwd) != branch:
            raise GitOperationError(
                f"Push of {branch} rejected and it is not checked out to catch up: "
                f"{result.stderr}",
                command=["git", *result.args],
                stderr=result.stderr,
            )

        logger.warning(f"Push of {branch} rejected, pulling and retrying once")
        self.pull(branch, cwd=cwd)
        self.check("push", remote, branch, cwd=cwd)
        return True

    # Working tree state

    def has_uncommitted_changes(self, cwd: Optional[Path] = None) -> bool:
        return bool(self.run("status", "--porcelain", cwd=cwd).stdout)

    def changed_files(self, cwd: Optional[Path] = None, base: Optional[str] = None) -> list[str]:
        """
        Files changed in a working tree: unstaged, staged and untracked.

        Args:
            cwd: Working tree to inspect.
            base: Also include files committed since this ref.
        """
        files = set(self.run("diff", "--name-only", cwd=cwd).lines)
        files.update(self.run("diff", "--name-only", "--cached", cwd=cwd).lines)
        files.update(self.run("ls-files", "--others", "--exclude-standard", cwd=cwd).lines)
        if base:
            files.update(self.run("diff", "--name-only", f"{base}...HEAD", cwd=cwd).lines)
        return sorted(files)

    def staged_count(self, cwd: Optional[Path] = None) -> int:
        return len(self.run("diff", "--cached", "--name-only", cwd=cwd).lines)

    def stage_all(self, cwd: Optional[Path] = None, exclude: Iterable[str] = ()) -> None:
        """Stage every change, then unstage the excluded paths."""
        self.check("add", "-A", cwd=cwd)
        for path in exclude:
            self.run("reset", "-q", "--", path, cwd=cwd)

    def commit(self, message: str, cwd: Optional[Path] = None) -> str:
        """Commit staged changes and return the new HEAD sha."""
        self.check("commit", "-m", message, cwd=cwd)
        return self.rev_parse("HEAD", cwd=cwd) or ""

    def ensure_excluded(self, patterns: Iterable[str]) -> None:
        """Add patterns to the shared info/exclude file if missing."""
        exclude_file = Path(self.repo.common_dir) / "info" / "exclude"
        exclude_file.parent.mkdir(parents=True, exist_ok=True)
        existing = exclude_file.read_text().splitlines() if exclude_file.exists() else []
        missing = [p for p in patterns if p not in existing]
        if missing:
            with open(exclude_file, "a") as f:
                if existing and existing[-1].strip():
                    f.write("\n")
                f.write("\n".join(missing) + "\n")

    # Worktrees

    def worktree_add(self, path: Path, branch: str, base: str) -> None:
        """Create a linked worktree on a new branch cut from base."""
        path.parent.mkdir(parents=True, exist_ok=True)
        if self.branch_exists(branch):
            self.check("worktree", "add", str(path), branch)
        else:
            base_ref = self.resolve_ref(base) or base
            self.check("worktree", "add", "-b", branch, str(path), base_ref)

    def worktree_remove(self, path: Path) -> bool:
        """Remove a linked worktree; a missing directory is pruned instead."""
        if not path.exists():
            self.worktree_prune()
            return False
        self.check("worktree", "remove", "--force", str(path))
        return True

    def worktree_prune(self) -> None:
        self.run("worktree", "prune")
