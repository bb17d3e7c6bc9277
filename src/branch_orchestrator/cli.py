"""CLI entry point for Branch Orchestrator."""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from branch_orchestrator.agents import detect_agent_kind
from branch_orchestrator.config import (
    ConflictResolution,
    MergeStrategy,
    ProjectConfig,
    get_default_config_path,
    get_setting,
    load_config,
    save_config,
    set_setting,
    validate_config,
)
from branch_orchestrator.core.committer import AutoCommitter
from branch_orchestrator.core.git import GitRunner
from branch_orchestrator.core.ledger import FileCoordinationLedger
from branch_orchestrator.core.merge import (
    MergeOrchestrator,
    MergeOutcomeStatus,
    SessionMergeReport,
)
from branch_orchestrator.core.orphans import CleanupMode, OrphanReclaimer, OrphanSession
from branch_orchestrator.core.rollover import RolloverEngine, RolloverPlan
from branch_orchestrator.core.sessions import SessionRegistry
from branch_orchestrator.core.weekly import WeeklyConsolidator
from branch_orchestrator.errors import (
    BranchOrchestratorError,
    ConfigError,
    CoordinationConflictError,
    MergeConflictError,
    NotAGitRepositoryError,
)
from branch_orchestrator.models.declaration import FileOperation
from branch_orchestrator.models.session import MergeConfig, SessionStatus

console = Console()

STATUS_STYLES = {
    MergeOutcomeStatus.MERGED: "green",
    MergeOutcomeStatus.CONFLICT: "red",
    MergeOutcomeStatus.SKIPPED: "yellow",
    MergeOutcomeStatus.ERROR: "red",
}


@dataclass
class Services:
    """Services wired for one CLI invocation."""

    git: GitRunner
    config: ProjectConfig
    config_path: Path
    ledger: FileCoordinationLedger
    registry: SessionRegistry
    rollover: RolloverEngine
    merger: MergeOrchestrator
    weekly: WeeklyConsolidator
    orphans: OrphanReclaimer
    committer: AutoCommitter


def confirm_rollover(plan: RolloverPlan) -> bool:
    console.print()
    console.print(f"[bold]New day {plan.date}: rolling over[/bold]")
    if plan.last_version:
        console.print(f"  merge {plan.last_version} -> {plan.target_branch}")
    console.print(f"  create {plan.next_version} from {plan.target_branch}")
    if plan.last_daily:
        console.print(f"  merge {plan.last_daily} -> {plan.next_version}")
    console.print(f"  create {plan.daily_branch} from {plan.next_version}")
    return click.confirm("Proceed?", default=True)


def get_services(ctx: click.Context) -> Services:
    """
    Build the services for the repository selected on the command line.

    Raises:
        click.ClickException: If not in a git repository or the
            configuration is invalid.
    """
    if "services" in ctx.obj:
        return ctx.obj["services"]

    try:
        git = GitRunner(ctx.obj["repo"])
        config = load_config(ctx.obj["config_path"], git.main_root)
    except (NotAGitRepositoryError, ConfigError) as e:
        raise click.ClickException(str(e)) from e

    git.remote_name = config.remote.name
    ledger = FileCoordinationLedger(git.main_root)
    registry = SessionRegistry(git, config, ledger)
    rollover = RolloverEngine(git, config, confirm=confirm_rollover)
    merger = MergeOrchestrator(git, config, registry, ledger)

    services = Services(
        git=git,
        config=config,
        config_path=Path(ctx.obj["config_path"] or get_default_config_path(git.main_root)),
        ledger=ledger,
        registry=registry,
        rollover=rollover,
        merger=merger,
        weekly=WeeklyConsolidator(git, config),
        orphans=OrphanReclaimer(git, config, registry, merger),
        committer=AutoCommitter(git, config, rollover),
    )
    ctx.obj["services"] = services
    return services


@click.group()
@click.version_option(package_name="branch-orchestrator")
@click.option(
    "-C",
    "--repo",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Repository path (default: current directory).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a project settings TOML file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.option("-q", "--quiet", is_flag=True, help="Only show errors.")
@click.pass_context
def main(
    ctx: click.Context,
    repo: Optional[Path],
    config_path: Optional[str],
    verbose: bool,
    quiet: bool,
) -> None:
    """Branch Orchestrator - branch lifecycle for parallel coding agents.

    Keeps session, daily, weekly and version branches in order and
    coordinates which agent edits which files.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else (logging.ERROR if quiet else logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["repo"] = repo
    ctx.obj["config_path"] = config_path


# Sessions


@main.group("session")
def session_group() -> None:
    """Create, list and close agent sessions."""


@session_group.command("create")
@click.argument("task")
@click.option("-a", "--agent", help="Agent kind (detected when omitted).")
@click.option("-i", "--initials", help="Developer initials for the worktree name.")
@click.option("-t", "--target", help="Target branch for this session's merge.")
@click.option(
    "-s",
    "--strategy",
    type=click.Choice([s.value for s in MergeStrategy]),
    help="Merge strategy for this session.",
)
@click.option("--auto-merge/--no-auto-merge", default=True, help="Merge on close (default: enabled).")
@click.option("-b", "--base", help="Branch to cut from (default: today's daily branch).")
@click.option(
    "--pid",
    type=int,
    default=None,
    help="Process id of the owning agent (default: the calling shell).",
)
@click.pass_context
def create_session(
    ctx: click.Context,
    task: str,
    agent: Optional[str],
    initials: Optional[str],
    target: Optional[str],
    strategy: Optional[str],
    auto_merge: bool,
    base: Optional[str],
    pid: Optional[int],
) -> None:
    """Create a session with its own branch and worktree.

    Example:
        bo session create "fix login" --agent claude
    """
    services = get_services(ctx)
    merge_config = MergeConfig(
        auto_merge=auto_merge,
        target_branch=target,
        strategy=MergeStrategy(strategy) if strategy else None,
    )

    try:
        with console.status("[bold blue]Creating session..."):
            record = services.registry.create_session(
                task,
                agent or detect_agent_kind(),
                merge_config=merge_config,
                developer_initials=initials,
                base_branch=base,
                pid=pid if pid is not None else os.getppid(),
            )
    except (BranchOrchestratorError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    console.print()
    console.print("[bold green]Session created![/bold green]")
    console.print(f"[bold]Session:[/bold]  {record.session_id}")
    console.print(f"[bold]Agent:[/bold]    {record.agent_type}")
    console.print(f"[bold]Branch:[/bold]   {record.branch_name}")
    console.print(f"[bold]Worktree:[/bold] {record.worktree_path}")
    console.print()
    console.print(f"[dim]cd {record.worktree_path}[/dim]")


@session_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in SessionStatus]),
    help="Only show sessions with this status.",
)
@click.option("-a", "--agent", help="Only show sessions of this agent kind.")
@click.pass_context
def list_sessions(ctx: click.Context, status: Optional[str], agent: Optional[str]) -> None:
    """List registered sessions."""
    services = get_services(ctx)
    records = services.registry.list_sessions(
        status=SessionStatus(status) if status else None, agent=agent
    )

    if not records:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    table = Table(title="Sessions", show_header=True, header_style="bold cyan")
    table.add_column("Session", style="bold")
    table.add_column("Agent")
    table.add_column("Task")
    table.add_column("Branch", style="green")
    table.add_column("Created", style="dim")
    table.add_column("Status", justify="center")

    for record in records:
        table.add_row(
            record.session_id,
            record.agent_type,
            record.task,
            record.branch_name,
            record.created.strftime("%Y-%m-%d %H:%M"),
            record.status.value,
        )

    console.print()
    console.print(table)
    console.print()


def print_merge_report(report: SessionMergeReport, config: ProjectConfig) -> None:
    table = Table(
        title=f"Session {report.session_id} ({report.strategy.value})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Target", style="bold")
    table.add_column("Result", justify="center")
    table.add_column("Details")

    for outcome in report.outcomes:
        style = STATUS_STYLES[outcome.status]
        details = outcome.message
        if outcome.conflicted_files:
            details = ", ".join(outcome.conflicted_files)
        table.add_row(outcome.target, f"[{style}]{outcome.status.value}[/{style}]", details)

    console.print()
    console.print(table)

    if report.session_removed:
        console.print(f"[green]Session {report.session_id} closed and cleaned up.[/green]")
    else:
        console.print(f"[yellow]Session {report.session_id} kept; branch {report.branch_name} preserved.[/yellow]")

    if report.has_conflicts and (
        config.branch_management.conflict_resolution == ConflictResolution.PROMPT
    ):
        console.print(
            "[dim]Resolve the conflicts by merging the session branch manually, "
            "then close the session again.[/dim]"
        )

    for error in report.errors:
        console.print(f"[red]{error}[/red]")


@session_group.command("close")
@click.argument("session_id")
@click.option(
    "-s",
    "--strategy",
    type=click.Choice([s.value for s in MergeStrategy]),
    help="Override the session's merge strategy.",
)
@click.pass_context
def close_session(ctx: click.Context, session_id: str, strategy: Optional[str]) -> None:
    """Merge a session into its targets and remove it.

    Exits with status 1 if any target failed to merge.
    """
    services = get_services(ctx)

    try:
        with console.status(f"[bold blue]Closing session {session_id}..."):
            report = services.merger.close_session(
                session_id, MergeStrategy(strategy) if strategy else None
            )
    except BranchOrchestratorError as e:
        raise click.ClickException(str(e)) from e

    print_merge_report(report, services.config)

    if not report.all_merged and not report.branch_missing:
        raise SystemExit(1)


@session_group.command("sweep")
@click.option("--max-age", type=int, help="Staleness window in minutes.")
@click.pass_context
def sweep_sessions(ctx: click.Context, max_age: Optional[int]) -> None:
    """Remove lock files left behind by dead processes."""
    services = get_services(ctx)
    swept = services.registry.sweep_stale(max_age)

    if not swept:
        console.print("[green]No stale locks found.[/green]")
        return
    for session_id in swept:
        console.print(f"[yellow]Removed stale lock:[/yellow] {session_id}")


# File coordination


@main.group("files")
def files_group() -> None:
    """Declare and release files before editing them."""


@files_group.command("declare")
@click.argument("session_id")
@click.argument("files", nargs=-1, required=True)
@click.option("-r", "--reason", default="", help="Why the files are being edited.")
@click.option(
    "-o",
    "--operation",
    type=click.Choice([o.value for o in FileOperation]),
    default=FileOperation.EDIT.value,
)
@click.option("--append", is_flag=True, help="Add to the session's existing declaration.")
@click.option("--duration", type=int, default=300, help="Estimated duration in seconds.")
@click.pass_context
def declare_files(
    ctx: click.Context,
    session_id: str,
    files: tuple[str, ...],
    reason: str,
    operation: str,
    append: bool,
    duration: int,
) -> None:
    """Declare FILES for SESSION_ID.

    Exits with status 1 and lists the holders if another session has
    already declared any of them.
    """
    services = get_services(ctx)

    try:
        record = services.registry.get(session_id)
        declaration = services.ledger.declare(
            record.agent_type,
            record.session_id,
            files,
            reason=reason,
            operation=FileOperation(operation),
            estimated_duration=duration,
            append=append,
        )
    except CoordinationConflictError as e:
        console.print("[red]Declaration rejected:[/red]")
        for conflict in e.conflicts:
            console.print(f"  {conflict.file} [dim]held by {conflict.agent} ({conflict.session})[/dim]")
        raise SystemExit(1)
    except (BranchOrchestratorError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[green]Declared {len(declaration.files)} file(s) for {session_id}[/green]")


@files_group.command("release")
@click.argument("session_id")
@click.pass_context
def release_files(ctx: click.Context, session_id: str) -> None:
    """Archive a session's declarations.

    Declarations are normally released when the session closes.
    """
    services = get_services(ctx)
    archived = services.ledger.release_session(session_id)

    if not archived:
        console.print(f"[yellow]No active declarations for {session_id}[/yellow]")
        return
    console.print(f"[green]Released {len(archived)} declaration(s) for {session_id}[/green]")


@files_group.command("check")
@click.argument("files", nargs=-1, required=True)
@click.option("-s", "--session", help="Ignore this session's own declarations.")
@click.pass_context
def check_files(ctx: click.Context, files: tuple[str, ...], session: Optional[str]) -> None:
    """Show whether FILES are free to declare."""
    services = get_services(ctx)
    availability = services.ledger.check_availability(files, session)
    holders = {c.file: c for c in services.ledger.conflicts_for(files, session)}

    table = Table(title="File Availability", show_header=True, header_style="bold cyan")
    table.add_column("File", style="bold")
    table.add_column("Available", justify="center")
    table.add_column("Held By")

    for path, free in availability.items():
        holder = holders.get(path)
        table.add_row(
            path,
            "[green]yes[/green]" if free else "[red]no[/red]",
            f"{holder.agent} ({holder.session})" if holder else "",
        )

    console.print()
    console.print(table)
    console.print()


@files_group.command("audit")
@click.argument("session_id")
@click.pass_context
def audit_files(ctx: click.Context, session_id: str) -> None:
    """Compare a session's declared files with what it changed."""
    services = get_services(ctx)

    try:
        record = services.registry.get(session_id)
    except BranchOrchestratorError as e:
        raise click.ClickException(str(e)) from e

    base = record.merge_config.target_branch or services.config.branch_management.default_merge_target
    changed = services.git.changed_files(record.worktree, base=base) if record.worktree.exists() else []
    audit = services.ledger.audit(session_id, changed)

    if audit.clean:
        console.print(f"[green]Session {session_id}: all {len(changed)} changed file(s) declared.[/green]")
        return

    for path in audit.undeclared_files:
        console.print(f"[yellow]Undeclared edit:[/yellow] {path}")
    for conflict in audit.held_by_others:
        console.print(f"[red]Edited file held by {conflict.agent} ({conflict.session}):[/red] {conflict.file}")
    raise SystemExit(1)


# Rollover and commits


@main.command("rollover")
@click.option("-f", "--force", is_flag=True, help="Roll over even if today's daily branch exists.")
@click.pass_context
def rollover(ctx: click.Context, force: bool) -> None:
    """Cut today's daily and version branches if the day changed."""
    services = get_services(ctx)

    try:
        result = services.rollover.rollover_if_new_day(force=force)
    except MergeConflictError as e:
        console.print(f"[red]Rollover halted:[/red] {e}")
        console.print("[dim]Resolve the conflict, then run the rollover again to resume.[/dim]")
        raise SystemExit(1)
    except BranchOrchestratorError as e:
        raise click.ClickException(str(e)) from e

    if result.aborted:
        console.print(f"[yellow]Rollover skipped: {result.message}[/yellow]")
    elif result.rolled_over:
        console.print(f"[bold green]{result.message}[/bold green]")
    else:
        note = " (switched)" if result.switched else ""
        console.print(f"[green]Already on day branch {result.daily_branch}{note}[/green]")


@main.command("commit")
@click.option(
    "-w",
    "--worktree",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    help="Worktree to commit (default: repository root).",
)
@click.option("-m", "--message-file", help="Message file name inside the worktree.")
@click.pass_context
def commit(ctx: click.Context, worktree: Optional[Path], message_file: Optional[str]) -> None:
    """Commit pending changes if a commit message is ready."""
    services = get_services(ctx)

    try:
        result = services.committer.commit_once(worktree, message_file)
    except BranchOrchestratorError as e:
        raise click.ClickException(str(e)) from e

    if not result.committed:
        console.print(f"[dim]Nothing committed: {result.reason}[/dim]")
        return

    pushed = "pushed" if result.pushed else "not pushed"
    console.print(
        f"[green]Committed {result.files_committed} file(s) on {result.branch} "
        f"({result.commit_sha[:8]}, {pushed})[/green]"
    )


# Weekly consolidation


@main.group("weekly")
def weekly_group() -> None:
    """Consolidate daily branches into weekly branches."""


@weekly_group.command("consolidate")
@click.option("--dry-run", is_flag=True, help="Show what would be consolidated.")
@click.option(
    "--date",
    "today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Pretend today is this date.",
)
@click.pass_context
def consolidate(ctx: click.Context, dry_run: bool, today: Optional[datetime]) -> None:
    """Fold last week's daily branches into one weekly branch."""
    services = get_services(ctx)

    try:
        report = services.weekly.consolidate(today.date() if today else None, dry_run=dry_run)
    except BranchOrchestratorError as e:
        raise click.ClickException(str(e)) from e

    console.print(
        f"[bold]Window:[/bold] {report.window_start} to {report.window_end} "
        f"[dim]({report.status.value})[/dim]"
    )
    if report.weekly_branch:
        console.print(f"[bold]Weekly branch:[/bold] {report.weekly_branch}")
    for branch in report.daily_branches:
        if branch in report.folded:
            mark = "[green]folded[/green]"
        elif branch == report.failed_branch:
            mark = "[red]conflict[/red]"
        else:
            mark = "[dim]pending[/dim]"
        console.print(f"  {branch} {mark}")
    if report.conflicted_files:
        console.print(f"[red]Conflicts:[/red] {', '.join(report.conflicted_files)}")
    for error in report.errors:
        console.print(f"[red]{error}[/red]")

    if report.failed_branch:
        raise SystemExit(1)


@weekly_group.command("list")
@click.pass_context
def list_weekly(ctx: click.Context) -> None:
    """List weekly branches, oldest first."""
    services = get_services(ctx)
    branches = services.weekly.list_weekly_branches()

    if not branches:
        console.print("[yellow]No weekly branches found.[/yellow]")
        return
    for branch in branches:
        console.print(branch)


@weekly_group.command("prune")
@click.option("--retain", type=int, help="Number of weekly branches to keep.")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted.")
@click.pass_context
def prune_weekly(ctx: click.Context, retain: Optional[int], dry_run: bool) -> None:
    """Delete the oldest weekly branches beyond the retained count."""
    services = get_services(ctx)

    try:
        report = services.weekly.prune_weekly_branches(retain, dry_run=dry_run)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    verb = "Would delete" if dry_run else "Deleted"
    for branch in report.deleted:
        console.print(f"[yellow]{verb}:[/yellow] {branch}")
    if not report.deleted:
        console.print(f"[green]{len(report.weekly_branches)} weekly branch(es), nothing to prune.[/green]")
    for error in report.errors:
        console.print(f"[red]{error}[/red]")


# Orphans


@main.group("orphans")
def orphans_group() -> None:
    """Find and clean sessions that were never closed."""


def print_orphans(orphans: list[OrphanSession]) -> None:
    table = Table(title="Orphan Sessions", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Session", style="bold")
    table.add_column("Agent")
    table.add_column("Branch")
    table.add_column("Age (days)", justify="right")
    table.add_column("Reason")

    for index, orphan in enumerate(orphans, start=1):
        branch = orphan.session.branch_name
        if orphan.branch_missing:
            branch = f"[red]{branch} (missing)[/red]"
        table.add_row(
            str(index),
            orphan.session.session_id,
            orphan.session.agent_type,
            branch,
            str(orphan.days_inactive),
            orphan.reason,
        )

    console.print()
    console.print(table)
    console.print()


def parse_selection(answer: str, orphans: list[OrphanSession]) -> list[str]:
    """Turn "1,3" or "all" into session ids; out-of-range numbers are ignored."""
    answer = answer.strip().lower()
    if answer == "all":
        return [o.session.session_id for o in orphans]

    chosen = []
    for part in answer.split(","):
        part = part.strip()
        if part.isdigit() and 1 <= int(part) <= len(orphans):
            chosen.append(orphans[int(part) - 1].session.session_id)
    return chosen


def prompt_selection(orphans: list[OrphanSession]) -> list[str]:
    answer = click.prompt("Sessions to clean (comma-separated numbers or 'all')", default="")
    return parse_selection(answer, orphans)


@orphans_group.command("list")
@click.pass_context
def list_orphans(ctx: click.Context) -> None:
    """List orphan sessions without changing anything."""
    services = get_services(ctx)
    orphans = services.orphans.find_orphans()

    if not orphans:
        console.print("[green]No orphan sessions found.[/green]")
        return
    print_orphans(orphans)


@orphans_group.command("cleanup")
@click.option("--all", "clean_all", is_flag=True, help="Clean every orphan.")
@click.option("--select", "select", is_flag=True, help="Choose which orphans to clean.")
@click.pass_context
def cleanup_orphans(ctx: click.Context, clean_all: bool, select: bool) -> None:
    """Merge and remove orphan sessions.

    Without --all or --select, asks what to do. Everything is cleaned
    without asking when cleanup.autoCleanupOrphans or automation.assumeYes
    is set.
    """
    services = get_services(ctx)
    orphans = services.orphans.find_orphans()

    if not orphans:
        console.print("[green]No orphan sessions found.[/green]")
        return
    print_orphans(orphans)

    if clean_all and select:
        raise click.UsageError("Use either --all or --select, not both.")

    if not clean_all and not select:
        if services.config.cleanup.auto_cleanup_orphans or services.config.automation.assume_yes:
            clean_all = True
        else:
            choice = click.prompt(
                "Clean up (a)ll, (s)elect, or (n)one?",
                type=click.Choice(["a", "s", "n"]),
                default="n",
            )
            if choice == "n":
                console.print("[yellow]Aborted.[/yellow]")
                return
            clean_all, select = choice == "a", choice == "s"

    mode = CleanupMode.ALL if clean_all else CleanupMode.SELECT
    report = services.orphans.cleanup_orphans(
        mode, selector=prompt_selection if mode == CleanupMode.SELECT else None
    )

    for session_id in report.cleaned:
        console.print(f"[green]Cleaned:[/green] {session_id}")
    for session_id in report.preserved:
        console.print(f"[yellow]Preserved (merge incomplete):[/yellow] {session_id}")
    for error in report.errors:
        console.print(f"[red]{error}[/red]")

    if report.preserved:
        raise SystemExit(1)


# Configuration


@main.group("config")
def config_group() -> None:
    """Show and edit project settings."""


def _load_for_edit(ctx: click.Context) -> tuple[ProjectConfig, Path]:
    services = get_services(ctx)
    return services.config, services.config_path


@config_group.command("show")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print every setting."""
    config, path = _load_for_edit(ctx)

    table = Table(title=f"Settings ({path})", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold")
    table.add_column("Value", style="green")

    for section, values in config.to_dict().items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))

    console.print()
    console.print(table)
    console.print()


@config_group.command("get")
@click.argument("key")
@click.pass_context
def get_config(ctx: click.Context, key: str) -> None:
    """Print one setting, e.g. branchManagement.mergeStrategy."""
    config, _ = _load_for_edit(ctx)
    try:
        click.echo(get_setting(config, key))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def set_config(ctx: click.Context, key: str, value: str) -> None:
    """Change one setting and save it."""
    config, path = _load_for_edit(ctx)
    try:
        updated = set_setting(config, key, value)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    save_config(updated, path)
    console.print(f"[green]{key} = {get_setting(updated, key)}[/green]")


@config_group.command("validate")
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check the settings for inconsistencies."""
    config, path = _load_for_edit(ctx)
    problems = validate_config(config)

    if not problems:
        console.print(f"[green]Configuration is valid ({path})[/green]")
        return
    for problem in problems:
        console.print(f"[red]{problem}[/red]")
    raise SystemExit(1)


@config_group.command("reset")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def reset_config(ctx: click.Context, yes: bool) -> None:
    """Restore default settings, even if the current file is invalid."""
    try:
        git = GitRunner(ctx.obj["repo"])
    except NotAGitRepositoryError as e:
        raise click.ClickException(str(e)) from e
    path = Path(ctx.obj["config_path"] or get_default_config_path(git.main_root))

    if not yes and not click.confirm(f"Overwrite {path} with defaults?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    save_config(ProjectConfig(), path)
    console.print(f"[green]Settings reset: {path}[/green]")


if __name__ == "__main__":
    main()
