"""
Command-line interface for the branch stack tool.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

from . import __version__ as PACKAGE_VERSION
from .cli_prompt import CliPrompt
from .config import DEFAULT_BASE_BRANCH_CANDIDATES, Settings
from .database import Database, open_database
from .git_manager import GitManager
from .history_importer import HistoryImporter
from .models import (
    PENDING_FOLD,
    BranchStatus,
    ConflictInfo,
    FoldResult,
    GatewayError,
    PreconditionError,
    RestackResult,
    RestackState,
    StackError,
    StackSummary,
    TopologyError,
)
from .prompt_interface import AutoConfirmPrompt, NoOpPrompt, UserPrompt
from .rebase_orchestrator import RebaseOrchestrator
from .repo_lock import repository_lock
from .stack_manager import StackManager


console = Console()
logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_PRECONDITION = 2
EXIT_CONFLICT = 3
EXIT_TOPOLOGY = 4
EXIT_CANCELLED = 130


def _print_version(ctx, param, value):
    """Eager option callback to print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"branchstack {PACKAGE_VERSION}")
    ctx.exit()


def setup_logging(verbose: bool = False, console_level: Optional[str] = None, log_file: Optional[Path] = None) -> Path:
    """Setup logging with a per-run file plus a rotating aggregate.

    - Per-run log file: <stem>-YYYYMMDD_HHMMSS.log
    - Aggregate log: <stem>.log (rotated)
    - Best-effort hardlink: <stem>-current.log -> per-run file
    - Console logging only with --verbose or --log-level
    Returns the path to show to the user.
    """
    aggregate_path = Path(log_file) if log_file else Settings.from_env().log_path
    base_dir = aggregate_path.parent
    base_stem = aggregate_path.stem or "branchstack"
    base_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    per_run_path = base_dir / f"{base_stem}-{timestamp}.log"
    current_link_path = base_dir / f"{base_stem}-current.log"

    root = logging.getLogger()
    # Clear existing handlers to avoid duplication in tests / repeated invocations
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    file_fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    run_file_handler = logging.FileHandler(str(per_run_path), encoding="utf-8")
    run_file_handler.setLevel(logging.DEBUG)
    run_file_handler.setFormatter(file_fmt)
    root.addHandler(run_file_handler)

    aggregate_handler = RotatingFileHandler(
        str(aggregate_path), maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    aggregate_handler.setLevel(logging.DEBUG)
    aggregate_handler.setFormatter(file_fmt)
    root.addHandler(aggregate_handler)

    # SQLAlchemy and GitPython are chatty at DEBUG
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("git").setLevel(logging.INFO)

    created_hardlink = False
    try:
        if current_link_path.exists():
            current_link_path.unlink()
        os.link(per_run_path, current_link_path)
        created_hardlink = True
    except OSError:
        # Hardlinks may be unsupported across volumes or filesystems
        created_hardlink = False

    if verbose or console_level:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
        }
        console_handler = RichHandler(console=console, rich_tracebacks=True)
        console_handler.setLevel(level_map.get((console_level or "info").lower(), logging.INFO))
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(console_handler)

    return current_link_path if created_hardlink else aggregate_path


def _maybe_print_log_notice(ctx: click.Context) -> None:
    """Inform user about logging destination and how to enable console logs."""
    if ctx.obj.get("verbose") or ctx.obj.get("console_level"):
        return
    console.print(
        f"[dim]Logs are written to {ctx.obj.get('log_path')}. Use -v or --log-level to see them here.[/dim]"
    )


@contextmanager
def _command_errors(ctx: click.Context, action: str) -> Iterator[None]:
    """Map stack errors to messages and exit codes."""
    try:
        yield
    except PreconditionError as e:
        console.print(f"\n❌ **Cannot {action}:** {e}", style="bold red")
        logger.debug(f"{action} stopped by precondition", exc_info=True)
        sys.exit(EXIT_PRECONDITION)
    except TopologyError as e:
        console.print(f"\n❌ **Unsupported branch topology:** {e}", style="bold red")
        logger.debug(f"{action} stopped by topology error", exc_info=True)
        sys.exit(EXIT_TOPOLOGY)
    except StackError as e:
        console.print(f"\n❌ **Failed to {action}:** {e}", style="bold red")
        logger.debug(f"{action} failed", exc_info=True)
        sys.exit(EXIT_ERROR)
    except (click.Abort, KeyboardInterrupt):
        console.print("\n\n🚫 **Operation cancelled by user**", style="bold yellow")
        logger.debug("Operation cancelled by user", exc_info=True)
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        console.print(f"\n💥 **Unexpected Error:** {e}", style="bold red")
        if ctx.obj.get("verbose"):
            console.print_exception()
        logger.debug(f"Unexpected error during {action}", exc_info=True)
        sys.exit(EXIT_ERROR)


def _open_services(ctx: click.Context) -> Tuple[GitManager, Database]:
    settings: Settings = ctx.obj["settings"]
    database = open_database(settings.db_path)
    database.migrate()
    return GitManager(ctx.obj.get("repo_path")), database


def _stack_manager(ctx: click.Context) -> StackManager:
    git_manager, database = _open_services(ctx)
    return StackManager(database, git_manager)


def _locked(ctx: click.Context, repository_name: str):
    return repository_lock(repository_name, ctx.obj["settings"].lock_dir)


def _interactive() -> bool:
    return sys.stdin.isatty()


def _prompt(yes: bool) -> UserPrompt:
    if yes:
        return AutoConfirmPrompt()
    if not _interactive():
        logger.info("No terminal attached; answering prompts with defaults")
        console.print("[dim]No terminal attached; questions are answered with safe defaults.[/dim]")
        return NoOpPrompt()
    return CliPrompt(console)


def _edit_message() -> Optional[str]:
    """Ask for a commit message in the user's editor; None when left empty."""
    if not _interactive():
        return None
    text = click.edit("\n# Enter the commit message. Lines starting with '#' are ignored.\n")
    if text is None:
        return None
    lines = [line for line in text.splitlines() if not line.startswith("#")]
    return "\n".join(lines).strip() or None


def _current_branch_or_none(git_manager: GitManager) -> Optional[str]:
    try:
        return git_manager.get_current_branch()
    except GatewayError:
        return None


@click.group()
@click.option(
    "--version",
    "-V",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose console logging (INFO)")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Console log level. By default, console logging is disabled.",
)
@click.option(
    "--repo-path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to repository (defaults to current directory)",
)
@click.option(
    "--db-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Stack database file (defaults to $BRANCHSTACK_DB or ~/.branchstack/branchstack.db)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_level: Optional[str],
    repo_path: Optional[Path],
    db_path: Optional[Path],
) -> None:
    """Branch Stack Tool - manage, restack and import stacks of dependent Git branches."""
    settings = Settings.from_env(db_path=db_path)
    log_path = setup_logging(verbose, console_level=log_level, log_file=settings.log_path)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console_level"] = log_level
    ctx.obj["log_path"] = log_path
    ctx.obj["settings"] = settings
    ctx.obj["repo_path"] = repo_path.resolve() if isinstance(repo_path, Path) else None
    logger.debug(f"CLI init: cwd={Path.cwd()} repo_path={ctx.obj['repo_path']} db={settings.db_path}")


@cli.command()
@click.option(
    "--base-branch",
    "-b",
    "base_branches",
    multiple=True,
    help="Base branch stacks may be built on. Repeatable. Prompts when omitted.",
)
@click.pass_context
def init(ctx: click.Context, base_branches: Tuple[str, ...]) -> None:
    """Configure the base branches of the current repository."""
    with _command_errors(ctx, "initialize repository"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        chosen = list(base_branches)
        if not chosen:
            available = manager.git_manager.list_local_branches()
            suggested = [b for b in DEFAULT_BASE_BRANCH_CANDIDATES if b in available]
            chosen = CliPrompt(console).choose_base_branches(
                available, suggested or [manager.git_manager.get_default_base_branch()]
            )
        with _locked(ctx, manager.repository_name):
            configured = manager.configure_repository(chosen)
        console.print(
            f"\n✅ **{manager.repository_name}** base branches: {', '.join(configured)}",
            style="bold green",
        )


@cli.command()
@click.argument("name")
@click.pass_context
def create(ctx: click.Context, name: str) -> None:
    """Create branch NAME on top of the current branch and check it out."""
    with _command_errors(ctx, "create branch"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        with _locked(ctx, manager.repository_name):
            entry = manager.create_branch(name)
        parent = entry.parent_name or "base branch"
        console.print(
            f"\n🌱 Created [green]{entry.name}[/green] at position {entry.position} (on {parent})",
            style="bold",
        )


@cli.command("import")
@click.argument("name")
@click.pass_context
def import_stack(ctx: click.Context, name: str) -> None:
    """Create stack NAME from the branches in the current branch's history."""
    with _command_errors(ctx, "import stack"):
        _maybe_print_log_notice(ctx)
        git_manager, database = _open_services(ctx)
        importer = HistoryImporter(database, git_manager)
        repository_name = git_manager.get_repository_name()
        with _locked(ctx, repository_name):
            summary = importer.import_stack(name, repository_name)
        console.print(f"\n📥 **Imported {summary.name}**", style="bold green")
        _display_stack(summary, _current_branch_or_none(git_manager))


@cli.command()
@click.argument("branch")
@click.option("--stack", "stack_id", type=int, help="Stack id to add to (defaults to the current stack)")
@click.pass_context
def track(ctx: click.Context, branch: str, stack_id: Optional[int]) -> None:
    """Add existing BRANCH to the top of the current stack."""
    with _command_errors(ctx, "track branch"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        with _locked(ctx, manager.repository_name):
            entry = manager.track_branch(branch, stack_id)
        console.print(
            f"\n✅ Tracking [green]{entry.name}[/green] at position {entry.position}", style="bold"
        )


@cli.command()
@click.argument("branch", required=False)
@click.pass_context
def untrack(ctx: click.Context, branch: Optional[str]) -> None:
    """Stop tracking BRANCH (defaults to the current branch). The Git branch is kept."""
    with _command_errors(ctx, "untrack branch"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        with _locked(ctx, manager.repository_name):
            entry = manager.untrack_branch(branch)
        console.print(f"\n✅ Untracked [green]{entry.name}[/green]", style="bold")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def fold(ctx: click.Context, yes: bool) -> None:
    """Merge the current branch into the branch below it and untrack it."""
    with _command_errors(ctx, "fold branch"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        with _locked(ctx, manager.repository_name):
            downstream = manager.downstream_branch()
            current = manager.git_manager.get_current_branch()
            if downstream is None:
                raise PreconditionError(f"{current} is at the bottom of its stack")
            if not _prompt(yes).confirm_fold(current, downstream):
                console.print("Fold cancelled.")
                return
            result = manager.fold(current)
        _report_fold(result)


@cli.command()
@click.option("--stack", "stack_id", type=int, help="Stack id (defaults to the current stack)")
@click.option("--stop-at", "stop_at", help="Last branch to rebase (defaults to the current branch)")
@click.option("--all", "whole_stack", is_flag=True, help="Rebase every branch, ignoring the current branch")
@click.pass_context
def restack(ctx: click.Context, stack_id: Optional[int], stop_at: Optional[str], whole_stack: bool) -> None:
    """Rebase each branch of the stack onto the one below it."""
    with _command_errors(ctx, "restack"):
        _maybe_print_log_notice(ctx)
        git_manager, database = _open_services(ctx)
        orchestrator = RebaseOrchestrator(database, git_manager)
        with _locked(ctx, orchestrator.repository_name):
            result = orchestrator.restack(stack_id, stop_at=stop_at, whole_stack=whole_stack)
        _report_restack(result)


@cli.command("continue")
@click.pass_context
def continue_(ctx: click.Context) -> None:
    """Continue a restack or fold after resolving conflicts."""
    with _command_errors(ctx, "continue"):
        _maybe_print_log_notice(ctx)
        git_manager, database = _open_services(ctx)
        manager = StackManager(database, git_manager)
        with _locked(ctx, manager.repository_name):
            pending = manager.pending_operation()
            if pending is not None and pending.kind == PENDING_FOLD:
                _report_fold(manager.continue_fold())
                return
            result = RebaseOrchestrator(database, git_manager, manager.repository_name).continue_restack()
        _report_restack(result)


@cli.command()
@click.pass_context
def abort(ctx: click.Context) -> None:
    """Abort a paused restack or fold and return to the original branch."""
    with _command_errors(ctx, "abort"):
        _maybe_print_log_notice(ctx)
        git_manager, database = _open_services(ctx)
        manager = StackManager(database, git_manager)
        with _locked(ctx, manager.repository_name):
            pending = manager.pending_operation()
            if pending is not None and pending.kind == PENDING_FOLD:
                manager.abort_fold()
                console.print("\n🛑 Fold aborted", style="bold yellow")
                return
            result = RebaseOrchestrator(database, git_manager, manager.repository_name).abort_restack()
        _report_restack(result)


@cli.command("list")
@click.pass_context
def list_(ctx: click.Context) -> None:
    """List stacks and their branches."""
    with _command_errors(ctx, "list stacks"):
        manager = _stack_manager(ctx)
        stacks = manager.list_stacks()
        if not stacks:
            console.print("No stacks found. Use 'branchstack create' or 'branchstack import'.")
            return
        current = _current_branch_or_none(manager.git_manager)
        for summary, _count in stacks:
            tree = Tree(
                f"📚 [bold]{summary.name}[/bold] [dim](id {summary.id}, base {summary.base_branch})[/dim]",
                guide_style="dim",
            )
            for entry in summary.branches:
                marker = " [bold yellow]← current[/bold yellow]" if entry.name == current else ""
                tree.add(f"[green]{entry.name}[/green]{marker}")
            console.print(tree)


@cli.command()
@click.pass_context
def stacks(ctx: click.Context) -> None:
    """Show a table of stacks with branch counts."""
    with _command_errors(ctx, "list stacks"):
        manager = _stack_manager(ctx)
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Id", justify="right")
        table.add_column("Stack", style="cyan")
        table.add_column("Base", style="blue")
        table.add_column("Branches", justify="right", style="yellow")
        for summary, count in manager.list_stacks():
            table.add_row(str(summary.id), summary.name, summary.base_branch, str(count))
        console.print(table)


@cli.command()
@click.argument("stack_ids", nargs=-1, type=int, required=True)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, stack_ids: Tuple[int, ...], yes: bool) -> None:
    """Delete the stacks with the given ids. Git branches are kept."""
    with _command_errors(ctx, "delete stacks"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        known = {summary.id: summary.name for summary, _ in manager.list_stacks()}
        missing = [str(i) for i in stack_ids if i not in known]
        if missing:
            raise PreconditionError(f"Unknown stack id(s): {', '.join(missing)}")
        if not _prompt(yes).confirm_delete_stacks([known[i] for i in stack_ids]):
            console.print("Delete cancelled.")
            return
        with _locked(ctx, manager.repository_name):
            deleted = manager.delete_stacks(list(stack_ids))
        console.print(f"\n🧹 Deleted {len(deleted)} stack(s): {', '.join(deleted)}", style="bold green")


@cli.command()
@click.argument("new_name")
@click.pass_context
def rename(ctx: click.Context, new_name: str) -> None:
    """Rename the current stack."""
    with _command_errors(ctx, "rename stack"):
        manager = _stack_manager(ctx)
        with _locked(ctx, manager.repository_name):
            summary = manager.rename_current_stack(new_name)
        console.print(f"\n✅ Stack renamed to [cyan]{summary.name}[/cyan]", style="bold")


@cli.command()
@click.pass_context
def up(ctx: click.Context) -> None:
    """Check out the branch above the current one."""
    with _command_errors(ctx, "move up"):
        target = _stack_manager(ctx).move_up()
        if target is None:
            console.print("Already at the top of the stack.", style="yellow")
        else:
            console.print(f"⬆️  Checked out [green]{target}[/green]")


@cli.command()
@click.pass_context
def down(ctx: click.Context) -> None:
    """Check out the branch below the current one."""
    with _command_errors(ctx, "move down"):
        target = _stack_manager(ctx).move_down()
        if target is None:
            console.print("Already at the bottom of the stack.", style="yellow")
        else:
            console.print(f"⬇️  Checked out [green]{target}[/green]")


@cli.command()
@click.argument("branch", required=False)
@click.pass_context
def checkout(ctx: click.Context, branch: Optional[str]) -> None:
    """Check out BRANCH, or pick a stacked or base branch from a list."""
    with _command_errors(ctx, "checkout branch"):
        manager = _stack_manager(ctx)
        if branch is None:
            stacks = {
                name: [entry.name for entry in entries]
                for name, entries in manager.list_branches().items()
            }
            current = _current_branch_or_none(manager.git_manager)
            branch = _prompt(False).choose_branch(stacks, manager.base_branches(), current)
            if branch is None:
                console.print("No branch selected.")
                return
        if manager.checkout(branch):
            console.print(f"\n✅ Switched to branch [green]{branch}[/green]")
        else:
            console.print(f"Already on [green]{branch}[/green]", style="yellow")


@cli.command()
@click.option("--amend", "-a", is_flag=True, help="Amend the last commit instead of creating a new one")
@click.option("--message", "-m", help="Commit message (opens the editor for a new commit when omitted)")
@click.pass_context
def modify(ctx: click.Context, amend: bool, message: Optional[str]) -> None:
    """Commit all changes on the current branch, or amend its last commit."""
    with _command_errors(ctx, "modify branch"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        if not amend and not message:
            message = _edit_message()
        with _locked(ctx, manager.repository_name):
            commit = manager.modify(message, amend=amend)
        action = "Amended" if amend else "Created"
        console.print(f"\n✅ {action} commit [cyan]{commit.hash[:8]}[/cyan] {commit.message}", style="bold")


@cli.command()
@click.option("--message", "-m", help="Message of the squashed commit (defaults to the oldest commit's)")
@click.pass_context
def squash(ctx: click.Context, message: Optional[str]) -> None:
    """Squash every commit of the current branch above its parent into one."""
    with _command_errors(ctx, "squash branch"):
        _maybe_print_log_notice(ctx)
        manager = _stack_manager(ctx)
        with _locked(ctx, manager.repository_name):
            commit = manager.squash_branch(message)
        console.print(f"\n✅ Squashed into [cyan]{commit.hash[:8]}[/cyan] {commit.message}", style="bold")


@cli.command()
@click.argument("status", type=click.Choice([s.value for s in BranchStatus]))
@click.argument("branch", required=False)
@click.pass_context
def mark(ctx: click.Context, status: str, branch: Optional[str]) -> None:
    """Set the STATUS of BRANCH (defaults to the current branch)."""
    with _command_errors(ctx, "mark branch"):
        manager = _stack_manager(ctx)
        branch = branch or manager.git_manager.get_current_branch()
        with _locked(ctx, manager.repository_name):
            entry = manager.set_branch_status(branch, BranchStatus(status))
        console.print(f"\n✅ [green]{entry.name}[/green] marked {entry.status}", style="bold")


@cli.command()
@click.pass_context
def about(ctx: click.Context) -> None:
    """Show the stack of the current branch."""
    with _command_errors(ctx, "show stack"):
        manager = _stack_manager(ctx)
        summary = manager.current_stack()
        _display_stack(summary, _current_branch_or_none(manager.git_manager))


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show repository, branch and paused-operation status."""
    with _command_errors(ctx, "get status"):
        manager = _stack_manager(ctx)
        git_manager = manager.git_manager
        current = _current_branch_or_none(manager.git_manager)
        stack = manager.stack_for_branch(current) if current else None
        pending = manager.pending_operation()

        console.print("\n📊 **Repository Status**")
        table = Table(show_header=False)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_row("Repository", manager.repository_name)
        table.add_row("Base branches", ", ".join(manager.base_branches()))
        table.add_row("Current branch", current or "(detached HEAD)")
        table.add_row("Stack", stack.name if stack else "-")
        table.add_row("Rebase in progress", "🔄 yes" if git_manager.is_rebase_in_progress() else "no")
        table.add_row("Merge in progress", "🔀 yes" if git_manager.is_merge_in_progress() else "no")
        table.add_row(
            "Paused operation",
            f"{pending.kind} at {pending.paused_branch}" if pending else "-",
        )
        console.print(table)


@cli.command()
def version() -> None:
    """Print the current branchstack version."""
    console.print(f"branchstack {PACKAGE_VERSION}")


def _display_stack(summary: StackSummary, current: Optional[str]) -> None:
    table = Table(show_header=True, header_style="bold magenta", title=f"{summary.name} (base {summary.base_branch})")
    table.add_column("Pos", justify="right")
    table.add_column("Branch", style="green")
    table.add_column("Parent", style="dim")
    table.add_column("Status", style="yellow")
    table.add_column("Commit", style="dim")
    for entry in reversed(summary.branches):
        name = f"{entry.name} ←" if entry.name == current else entry.name
        table.add_row(
            str(entry.position),
            name,
            entry.parent_name or summary.base_branch,
            entry.status,
            (entry.latest_commit or "")[:8],
        )
    console.print(table)


def _display_conflict(conflict: ConflictInfo, resume_hint: str) -> None:
    console.print(f"\n⚠️  **Conflicts in {conflict.branch}**", style="bold yellow")
    for path in conflict.files:
        console.print(f"  • {path}")
    console.print(f"\nResolve the conflicts, stage the files, then run {resume_hint}.")


def _report_restack(result: RestackResult) -> None:
    if result.state is RestackState.PAUSED:
        _display_conflict(result.conflict, "'branchstack continue' (or 'branchstack abort')")
        sys.exit(EXIT_CONFLICT)
    if result.state is RestackState.COMPLETED:
        rebased = ", ".join(result.rebased) if result.rebased else "nothing"
        console.print(f"\n🎉 **Restack completed:** {rebased}", style="bold green")
    elif result.state is RestackState.ABORTED:
        console.print(f"\n🛑 {result.message or 'Restack aborted'}", style="bold yellow")
    else:
        console.print(f"\nℹ️  {result.message or 'Nothing to do'}")


def _report_fold(result: FoldResult) -> None:
    if not result.completed:
        _display_conflict(result.conflict, "'branchstack continue' to finish the fold")
        sys.exit(EXIT_CONFLICT)
    console.print(
        f"\n✅ Folded [green]{result.folded_branch}[/green] into [cyan]{result.target_branch}[/cyan]",
        style="bold",
    )


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n\n🚫 **Operation cancelled by user**", style="bold yellow")
        logger.debug("Top-level cancellation (KeyboardInterrupt)", exc_info=True)
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        console.print(f"\n💥 **Unexpected error:** {e}", style="bold red")
        logger.debug("Unexpected error in main()", exc_info=True)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
