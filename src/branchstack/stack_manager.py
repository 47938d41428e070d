"""
Stack membership and navigation: create, track, untrack, fold, rename and list.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .config import STACK_NAME_PREFIX
from .database import Database
from .git_manager import GitManager
from .models import (
    PENDING_FOLD,
    AlreadyTrackedError,
    BranchEntry,
    BranchStatus,
    CommitInfo,
    ConflictInfo,
    FoldResult,
    NotInStackError,
    NotTrackedError,
    PendingOperation,
    PreconditionError,
    StackSummary,
    UncommittedChangesError,
)
from .position_manager import StackPositionManager
from .stack_store import StackStore


logger = logging.getLogger(__name__)


class StackManager:
    """High-level stack operations for one repository."""

    def __init__(
        self,
        database: Database,
        git_manager: GitManager,
        repository_name: Optional[str] = None,
    ) -> None:
        self.db = database
        self.git_manager = git_manager
        self._repository_name = repository_name

    @property
    def repository_name(self) -> str:
        if self._repository_name is None:
            self._repository_name = self.git_manager.get_repository_name()
        return self._repository_name

    # --- Repository configuration ---
    def configure_repository(self, base_branches: Sequence[str]) -> List[str]:
        """Store the base branches stacks of this repository may be built on."""
        names = [b.strip() for b in base_branches if b and b.strip()]
        if not names:
            raise PreconditionError("At least one base branch is required")
        with self.db.session() as session:
            repo = StackStore(session).set_base_branches(self.repository_name, names)
            return list(repo.base_branches)

    def base_branches(self) -> List[str]:
        """Configured base branches, falling back to the detected default branch."""
        with self.db.session() as session:
            configured = StackStore(session).get_base_branches(self.repository_name)
        return configured or [self.git_manager.get_default_base_branch()]

    def is_configured(self) -> bool:
        with self.db.session() as session:
            return StackStore(session).get_repository(self.repository_name) is not None

    # --- Queries ---
    def stack_for_branch(self, name: str) -> Optional[StackSummary]:
        with self.db.session() as session:
            store = StackStore(session)
            branch = store.find_branch(self.repository_name, name)
            if branch is None:
                return None
            return store.summarize(store.require_stack(branch.stack_id))

    def current_stack(self) -> StackSummary:
        """Stack of the checked out branch.

        Raises:
            NotInStackError: if the current branch is not tracked
        """
        current = self.git_manager.get_current_branch()
        summary = self.stack_for_branch(current)
        if summary is None:
            raise NotInStackError(current)
        return summary

    def parent_branch(self, name: str) -> Optional[str]:
        """Branch below ``name`` in its stack; the stack's base branch for position 0."""
        summary = self.stack_for_branch(name)
        if summary is None:
            raise NotTrackedError(name)
        entry = summary.get_branch(name)
        return entry.parent_name if entry.position > 0 else summary.base_branch

    def upstream_branch(self) -> Optional[str]:
        """Branch directly above the current one, or None at the top of the stack."""
        summary, entry = self._current_entry()
        above = [b for b in summary.branches if b.position == entry.position + 1]
        return above[0].name if above else None

    def downstream_branch(self) -> Optional[str]:
        """Branch directly below the current one, or None at the bottom of the stack."""
        summary, entry = self._current_entry()
        below = [b for b in summary.branches if b.position == entry.position - 1]
        return below[0].name if below else None

    def move_up(self) -> Optional[str]:
        target = self.upstream_branch()
        if target is not None:
            self.git_manager.checkout_branch(target)
        return target

    def move_down(self) -> Optional[str]:
        target = self.downstream_branch()
        if target is not None:
            self.git_manager.checkout_branch(target)
        return target

    def checkout(self, name: str) -> bool:
        """Check out ``name``. Returns False when it is already checked out."""
        if not self.git_manager.branch_exists(name):
            raise PreconditionError(f"Branch '{name}' does not exist")
        if name == self.git_manager.get_current_branch():
            return False
        self.git_manager.checkout_branch(name)
        return True

    def list_stacks(self) -> List[Tuple[StackSummary, int]]:
        """All stacks of the repository with their branch counts."""
        with self.db.session() as session:
            store = StackStore(session)
            counts = store.branch_counts(self.repository_name)
            return [
                (store.summarize(stack), counts.get(stack.id, 0))
                for stack in store.list_stacks(self.repository_name)
            ]

    def list_branches(self) -> Dict[str, List[BranchEntry]]:
        """Tracked branches grouped by stack name."""
        return {summary.name: summary.branches for summary, _ in self.list_stacks()}

    def pending_operation(self) -> Optional[PendingOperation]:
        with self.db.session() as session:
            return StackStore(session).get_pending(self.repository_name)

    # --- Mutations ---
    def create_branch(self, name: str) -> BranchEntry:
        """Create and check out ``name`` directly above the current branch.

        When the current branch is not tracked, a new stack ``stack/<name>``
        is started with the current branch as its base.
        """
        if self.git_manager.branch_exists(name):
            raise PreconditionError(f"Branch '{name}' already exists")
        current = self.git_manager.get_current_branch()

        with self.db.session() as session:
            store = StackStore(session)
            positions = StackPositionManager(session)
            below = store.find_branch(self.repository_name, current)
            if below is not None:
                stack_id = below.stack_id
                position = below.position + 1
            else:
                stack = store.create_stack(self.repository_name, f"{STACK_NAME_PREFIX}{name}", current)
                stack_id = stack.id
                position = 0
            row = positions.insert_at(stack_id, position, name)
            # Git last: a failure here rolls the rows back
            self.git_manager.create_branch(name)
            store.record_commit(row, self.git_manager.get_latest_commit())
            entry = store.to_entry(row, below.name if below is not None else None)

        logger.info(f"Created branch {name} at position {entry.position}")
        return entry

    def track_branch(self, name: str, stack_id: Optional[int] = None) -> BranchEntry:
        """Add an existing Git branch on top of the current (or given) stack."""
        if not self.git_manager.branch_exists(name):
            raise PreconditionError(f"Branch '{name}' does not exist")

        with self.db.session() as session:
            store = StackStore(session)
            existing = store.find_branch(self.repository_name, name)
            if existing is not None:
                raise AlreadyTrackedError(name, store.require_stack(existing.stack_id).name)
            if stack_id is None:
                current = self.git_manager.get_current_branch()
                current_row = store.find_branch(self.repository_name, current)
                if current_row is None:
                    raise NotInStackError(current)
                stack_id = current_row.stack_id
            row = StackPositionManager(session).append(stack_id, name)
            store.record_commit(row, self.git_manager.get_latest_commit(name))
            parent = store.branch_at(stack_id, row.position - 1)
            entry = store.to_entry(row, parent.name if parent is not None else None)

        logger.info(f"Tracking {name} at position {entry.position}")
        return entry

    def untrack_branch(self, name: Optional[str] = None) -> BranchEntry:
        """Stop tracking ``name`` (default: current branch). The Git branch is kept.

        A stack left without branches is deleted.
        """
        name = name or self.git_manager.get_current_branch()
        with self.db.session() as session:
            store = StackStore(session)
            row = store.find_branch(self.repository_name, name)
            if row is None:
                raise NotTrackedError(name)
            entry = store.to_entry(row)
            stack_id = row.stack_id
            StackPositionManager(session).remove_at(stack_id, row.position)
            if store.count_branches(stack_id) == 0:
                store.delete_stack(stack_id)
                logger.info(f"Deleted empty stack {stack_id}")

        logger.info(f"Untracked {name}")
        return entry

    def set_branch_status(self, name: str, status: BranchStatus) -> BranchEntry:
        with self.db.session() as session:
            store = StackStore(session)
            row = store.find_branch(self.repository_name, name)
            if row is None:
                raise NotTrackedError(name)
            store.set_branch_status(row, status)
            return store.to_entry(row)

    # --- Commits ---
    def modify(self, message: Optional[str] = None, amend: bool = False) -> CommitInfo:
        """Commit every change on the current branch, or amend its last commit.

        The new tip is recorded when the branch is tracked.
        """
        if not amend and not message:
            raise PreconditionError("A commit message is required unless amending")
        if not amend and not self.git_manager.has_changes_to_commit():
            raise PreconditionError("Nothing to commit")
        branch = self.git_manager.get_current_branch()
        commit = self.git_manager.commit_all(message, amend=amend)
        self._record_tip(branch, commit)
        return commit

    def squash_branch(self, message: Optional[str] = None) -> CommitInfo:
        """Squash the current branch's commits above its parent into one.

        Without ``message`` the oldest squashed commit's message is kept.
        """
        branch = self.git_manager.get_current_branch()
        parent = self.parent_branch(branch)
        if self.git_manager.has_uncommitted_changes():
            raise UncommittedChangesError()
        base = self.git_manager.get_merge_base(parent, branch)
        commits = self.git_manager.get_commits_since(base, branch)
        if not commits:
            raise PreconditionError(f"{branch} has no commits on top of {parent}")
        message = message or self.git_manager.get_commit_message(commits[0])

        logger.info(f"Squashing {len(commits)} commit(s) on {branch} above {parent}")
        commit = self.git_manager.squash_commits(base, message)
        self._record_tip(branch, commit)
        return commit

    def _record_tip(self, branch: str, commit: CommitInfo) -> None:
        with self.db.session() as session:
            store = StackStore(session)
            row = store.find_branch(self.repository_name, branch)
            if row is not None:
                store.record_commit(row, commit)

    def rename_current_stack(self, new_name: str) -> StackSummary:
        summary = self.current_stack()
        with self.db.session() as session:
            store = StackStore(session)
            clash = store.find_stack_by_name(self.repository_name, new_name)
            if clash is not None and clash.id != summary.id:
                raise PreconditionError(f"A stack named '{new_name}' already exists")
            return store.summarize(store.rename_stack(summary.id, new_name))

    def delete_stacks(self, stack_ids: Sequence[int]) -> List[str]:
        """Delete stacks and, by cascade, their branch records. Git branches are kept."""
        deleted: List[str] = []
        with self.db.session() as session:
            store = StackStore(session)
            for stack_id in stack_ids:
                stack = store.require_stack(stack_id)
                if stack.repository_name != self.repository_name:
                    raise PreconditionError(f"Stack {stack_id} belongs to {stack.repository_name}")
                deleted.append(stack.name)
                store.delete_stack(stack_id)
        return deleted

    # --- Fold ---
    def fold(self, branch: Optional[str] = None) -> FoldResult:
        """Merge ``branch`` (default: current) into the branch below it and untrack it.

        A merge conflict leaves the downstream branch checked out with the
        merge in progress and returns an incomplete FoldResult.
        """
        branch = branch or self.git_manager.get_current_branch()
        if self.git_manager.has_uncommitted_changes():
            raise UncommittedChangesError()

        with self.db.session() as session:
            store = StackStore(session)
            row = store.find_branch(self.repository_name, branch)
            if row is None:
                raise NotTrackedError(branch)
            below = store.branch_at(row.stack_id, row.position - 1) if row.position > 0 else None
            if below is None:
                raise PreconditionError(f"Cannot fold {branch}: no branch below it in the stack")
            downstream = below.name
            stack_id = row.stack_id

        logger.info(f"Folding {branch} into {downstream}")
        self.git_manager.checkout_branch(downstream)
        outcome = self.git_manager.merge_branch(branch)
        if not outcome.success:
            with self.db.session() as session:
                StackStore(session).save_pending(
                    self.repository_name,
                    PENDING_FOLD,
                    stack_id,
                    original_branch=branch,
                    paused_branch=downstream,
                    target_branch=branch,
                )
            return FoldResult(
                folded_branch=branch,
                target_branch=downstream,
                completed=False,
                conflict=ConflictInfo(branch=downstream, files=list(outcome.conflicts)),
            )

        self._finish_fold(branch, downstream)
        return FoldResult(folded_branch=branch, target_branch=downstream, completed=True)

    def continue_fold(self) -> FoldResult:
        """Conclude a fold whose merge conflicts have been resolved."""
        pending = self.pending_operation()
        if pending is None or pending.kind != PENDING_FOLD:
            raise PreconditionError("No fold in progress")

        conflicts = self.git_manager.get_conflict_files()
        if conflicts:
            return FoldResult(
                folded_branch=pending.target_branch,
                target_branch=pending.paused_branch,
                completed=False,
                conflict=ConflictInfo(branch=pending.paused_branch, files=conflicts),
            )
        if self.git_manager.is_merge_in_progress():
            self.git_manager.commit_merge()
        elif not self.git_manager.is_ancestor(pending.target_branch, pending.paused_branch):
            # Merge was aborted outside branchstack
            with self.db.session() as session:
                StackStore(session).clear_pending(self.repository_name)
            raise PreconditionError(
                f"Fold of {pending.target_branch} was abandoned; nothing was merged into {pending.paused_branch}"
            )

        self._finish_fold(pending.target_branch, pending.paused_branch)
        return FoldResult(
            folded_branch=pending.target_branch, target_branch=pending.paused_branch, completed=True
        )

    def abort_fold(self) -> None:
        pending = self.pending_operation()
        if pending is None or pending.kind != PENDING_FOLD:
            raise PreconditionError("No fold in progress")
        if self.git_manager.is_merge_in_progress():
            self.git_manager.abort_merge()
        self.git_manager.checkout_branch(pending.original_branch)
        with self.db.session() as session:
            StackStore(session).clear_pending(self.repository_name)
        logger.info(f"Fold of {pending.target_branch} aborted")

    def _finish_fold(self, folded: str, downstream: str) -> None:
        with self.db.session() as session:
            store = StackStore(session)
            row = store.find_branch(self.repository_name, folded)
            if row is None:
                raise NotTrackedError(folded)
            StackPositionManager(session).remove_at(row.stack_id, row.position)
            target = store.find_branch(self.repository_name, downstream)
            if target is not None:
                store.record_commit(target, self.git_manager.get_latest_commit(downstream))
            store.clear_pending(self.repository_name)
        logger.info(f"✅ Folded {folded} into {downstream}")

    def _current_entry(self) -> Tuple[StackSummary, BranchEntry]:
        summary = self.current_stack()
        entry = summary.get_branch(self.git_manager.get_current_branch())
        return summary, entry
