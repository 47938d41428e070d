"""
Sequential restack of a branch stack with conflict pause, resume and abort.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .database import Database
from .git_manager import GitManager
from .models import (
    PENDING_RESTACK,
    ConflictInfo,
    GatewayError,
    NotInStackError,
    PendingOperation,
    PreconditionError,
    RestackResult,
    RestackState,
    StackSummary,
    UncommittedChangesError,
)
from .stack_store import StackStore


logger = logging.getLogger(__name__)


class RebaseOrchestrator:
    """Rebases every branch of a stack onto the one below it, bottom to top.

    The first branch is rebased onto the stack's base branch. A conflict
    pauses the run and records a pending restack; :meth:`continue_restack`
    resumes the loop at the next position once git finishes the paused
    rebase.
    """

    def __init__(
        self,
        database: Database,
        git_manager: GitManager,
        repository_name: Optional[str] = None,
    ) -> None:
        self.db = database
        self.git_manager = git_manager
        self._repository_name = repository_name
        self.state = RestackState.IDLE
        self.position: Optional[int] = None

    @property
    def repository_name(self) -> str:
        if self._repository_name is None:
            self._repository_name = self.git_manager.get_repository_name()
        return self._repository_name

    def plan_restack(self, stack_id: Optional[int] = None) -> StackSummary:
        """Resolve the stack to restack; defaults to the stack of the current branch."""
        with self.db.session() as session:
            store = StackStore(session)
            if stack_id is None:
                current = self.git_manager.get_current_branch()
                branch = store.find_branch(self.repository_name, current)
                if branch is None:
                    raise NotInStackError(current)
                stack_id = branch.stack_id
            return store.summarize(store.require_stack(stack_id))

    def check_working_tree(self) -> None:
        """Refuse to start while the tree is dirty or a rebase is paused.

        Must run before the current branch is read: a paused rebase leaves
        HEAD detached.
        """
        if self.git_manager.is_rebase_in_progress():
            raise PreconditionError(
                "A rebase is already in progress; resolve it with 'branchstack continue' or 'branchstack abort'"
            )
        if self.git_manager.has_uncommitted_changes():
            raise UncommittedChangesError()

    def validate_repository_state(self, plan: StackSummary) -> None:
        """Raise a PreconditionError if the restack cannot start.

        Runs before any Git mutation.
        """
        self.check_working_tree()
        if not plan.branches:
            raise PreconditionError(f"Stack {plan.name} has no branches")

    def restack(
        self,
        stack_id: Optional[int] = None,
        stop_at: Optional[str] = None,
        whole_stack: bool = False,
    ) -> RestackResult:
        """
        Rebase the stack bottom to top.

        Args:
            stack_id: Stack to restack (defaults to the stack of the current branch)
            stop_at: Last branch to rebase; defaults to the current branch when it
                belongs to the stack
            whole_stack: Rebase up to the top branch when ``stop_at`` is not given

        Returns:
            RestackResult in COMPLETED or PAUSED state
        """
        self.check_working_tree()
        original_branch = self.git_manager.get_current_branch()
        plan = self.plan_restack(stack_id)
        if whole_stack and stop_at is None and plan.branches:
            stop_at = plan.branch_names[-1]
        if stop_at is None and plan.get_branch(original_branch) is not None:
            stop_at = original_branch
        elif stop_at is not None and plan.get_branch(stop_at) is None:
            raise PreconditionError(f"Branch '{stop_at}' is not part of stack {plan.name}")

        self.validate_repository_state(plan)
        logger.info(
            f"Restacking {plan.name} onto {plan.base_branch}: {' -> '.join(plan.branch_names)}"
            + (f" (stopping at {stop_at})" if stop_at else "")
        )
        return self._run(plan, 0, original_branch, stop_at, [])

    def continue_restack(self) -> RestackResult:
        """Resume after the user resolved a conflict.

        With a rebase in progress, ``git rebase --continue`` is issued first.
        When a paused restack is recorded, the loop then re-enters at the
        branch above the paused one.
        """
        pending = self._load_pending()

        if self.git_manager.is_rebase_in_progress():
            paused_branch = self.git_manager.get_rebasing_branch() or (
                pending.paused_branch if pending else "HEAD"
            )
            outcome = self.git_manager.continue_rebase()
            if not outcome.success:
                self.state = RestackState.PAUSED
                logger.warning(f"Rebase of {paused_branch} still has conflicts")
                return RestackResult(
                    state=RestackState.PAUSED,
                    conflict=ConflictInfo(branch=paused_branch, files=outcome.conflicts),
                )
            if pending is None:
                self.state = RestackState.COMPLETED
                logger.info(f"Completed rebase of {paused_branch}; no paused restack to resume")
                return RestackResult(
                    state=RestackState.COMPLETED,
                    rebased=[paused_branch],
                    message=f"Rebase of {paused_branch} completed",
                )
        elif pending is None:
            self.state = RestackState.NOTHING_TO_CONTINUE
            return RestackResult(
                state=RestackState.NOTHING_TO_CONTINUE, message="No rebase in progress"
            )

        return self._resume(pending)

    def abort_restack(self) -> RestackResult:
        """Abort the in-progress rebase and return to the branch the restack started from."""
        pending = self._load_pending()
        rebasing = self.git_manager.is_rebase_in_progress()
        if not rebasing and pending is None:
            self.state = RestackState.NOTHING_TO_CONTINUE
            return RestackResult(state=RestackState.NOTHING_TO_CONTINUE, message="Nothing to abort")

        if rebasing:
            self.git_manager.abort_rebase()
        if pending is not None:
            self.git_manager.checkout_branch(pending.original_branch)
            self._clear_pending()

        self.state = RestackState.ABORTED
        self.position = None
        logger.info("Restack aborted")
        return RestackResult(state=RestackState.ABORTED, message="Restack aborted")

    def _resume(self, pending: PendingOperation) -> RestackResult:
        with self.db.session() as session:
            store = StackStore(session)
            stack = store.get_stack(pending.stack_id)
            plan = store.summarize(stack) if stack is not None else None
        if plan is None:
            self._clear_pending()
            raise PreconditionError("The paused stack no longer exists; nothing to resume")

        names = plan.branch_names
        if pending.paused_branch not in names:
            self._clear_pending()
            raise PreconditionError(
                f"Branch '{pending.paused_branch}' is no longer part of stack {plan.name}; run restack again"
            )
        if self.git_manager.has_uncommitted_changes():
            raise UncommittedChangesError()

        start = names.index(pending.paused_branch) + 1
        if pending.stop_at == pending.paused_branch:
            start = len(names)
        logger.info(f"Resuming restack of {plan.name} after {pending.paused_branch}")
        return self._run(plan, start, pending.original_branch, pending.stop_at, [pending.paused_branch])

    def _run(
        self,
        plan: StackSummary,
        start: int,
        original_branch: str,
        stop_at: Optional[str],
        rebased: List[str],
    ) -> RestackResult:
        names = plan.branch_names
        try:
            for index in range(start, len(names)):
                branch = names[index]
                onto = plan.base_branch if index == 0 else names[index - 1]
                self.state = RestackState.RUNNING
                self.position = index
                logger.info(f"🔄 Rebasing {branch} onto {onto}")

                outcome = self.git_manager.rebase_branch(branch, onto)
                if not outcome.success:
                    return self._pause(plan, branch, onto, original_branch, stop_at, outcome.conflicts, rebased)

                rebased.append(branch)
                if stop_at is not None and branch == stop_at:
                    break

            self.git_manager.checkout_branch(original_branch)
        except Exception:
            self._return_to_original(original_branch)
            raise

        self._clear_pending()
        self.state = RestackState.COMPLETED
        self.position = None
        logger.info(f"✅ Restacked {len(rebased)} branch(es) in {plan.name}")
        return RestackResult(state=RestackState.COMPLETED, stack_name=plan.name, rebased=rebased)

    def _pause(
        self,
        plan: StackSummary,
        branch: str,
        onto: str,
        original_branch: str,
        stop_at: Optional[str],
        conflicts: List[str],
        rebased: List[str],
    ) -> RestackResult:
        with self.db.session() as session:
            StackStore(session).save_pending(
                self.repository_name,
                PENDING_RESTACK,
                plan.id,
                original_branch=original_branch,
                paused_branch=branch,
                target_branch=onto,
                stop_at=stop_at,
            )
        self.state = RestackState.PAUSED
        logger.warning(f"Rebase of {branch} onto {onto} has conflicts in: {conflicts}")
        return RestackResult(
            state=RestackState.PAUSED,
            stack_name=plan.name,
            rebased=rebased,
            conflict=ConflictInfo(branch=branch, files=list(conflicts)),
        )

    def _return_to_original(self, original_branch: str) -> None:
        """Best-effort checkout of the original branch unless a rebase is mid-flight."""
        self.state = RestackState.IDLE
        try:
            if self.git_manager.is_rebase_in_progress():
                logger.warning("Rebase in progress; leaving the working tree as is")
                return
            self.git_manager.checkout_branch(original_branch)
        except GatewayError as e:
            logger.error(f"Could not return to {original_branch}: {e}")

    def _load_pending(self) -> Optional[PendingOperation]:
        with self.db.session() as session:
            pending = StackStore(session).get_pending(self.repository_name)
        if pending is not None and pending.kind != PENDING_RESTACK:
            return None
        return pending

    def _clear_pending(self) -> None:
        with self.db.session() as session:
            store = StackStore(session)
            pending = store.get_pending(self.repository_name)
            if pending is not None and pending.kind == PENDING_RESTACK:
                store.clear_pending(self.repository_name)
