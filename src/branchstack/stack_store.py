"""
Stack store: repository, stack, branch and commit persistence bound to one session.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .models import (
    BranchEntry,
    BranchStatus,
    CommitInfo,
    PendingOperation,
    StackNotFoundError,
    StackSummary,
)
from .schema import BranchRow, CommitRow, PendingOperationRow, RepositoryRow, StackRow


logger = logging.getLogger(__name__)


class StackStore:
    """Queries and mutations over the stack tables.

    All methods work inside the caller's session; the caller owns the
    transaction (see :meth:`branchstack.database.Database.session`).
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    # --- Repositories ---
    def get_repository(self, name: str) -> Optional[RepositoryRow]:
        return self.session.get(RepositoryRow, name)

    def ensure_repository(self, name: str) -> RepositoryRow:
        """Return the repository row, creating it with no base branches if missing."""
        repo = self.get_repository(name)
        if repo is None:
            repo = RepositoryRow(name=name, base_branches=[])
            self.session.add(repo)
            self.session.flush()
            logger.debug(f"Created repository record {name}")
        return repo

    def set_base_branches(self, name: str, base_branches: Sequence[str]) -> RepositoryRow:
        repo = self.ensure_repository(name)
        # Assign a new list so the JSON column is marked dirty
        repo.base_branches = list(dict.fromkeys(base_branches))
        self.session.flush()
        logger.info(f"Base branches for {name}: {repo.base_branches}")
        return repo

    def get_base_branches(self, name: str) -> List[str]:
        repo = self.get_repository(name)
        return list(repo.base_branches) if repo is not None else []

    def delete_repository(self, name: str) -> bool:
        repo = self.get_repository(name)
        if repo is None:
            return False
        self.session.delete(repo)
        self.session.flush()
        logger.info(f"Deleted repository record {name} and its stacks")
        return True

    # --- Stacks ---
    def create_stack(
        self,
        repository_name: str,
        name: str,
        base_branch: str,
        description: Optional[str] = None,
    ) -> StackRow:
        self.ensure_repository(repository_name)
        stack = StackRow(
            name=name,
            repository_name=repository_name,
            base_branch=base_branch,
            description=description,
        )
        self.session.add(stack)
        self.session.flush()
        logger.info(f"Created stack {name} (id={stack.id}) on {base_branch}")
        return stack

    def get_stack(self, stack_id: int) -> Optional[StackRow]:
        return self.session.get(StackRow, stack_id)

    def require_stack(self, stack_id: int) -> StackRow:
        stack = self.get_stack(stack_id)
        if stack is None:
            raise StackNotFoundError(f"Stack {stack_id} does not exist")
        return stack

    def find_stack_by_name(self, repository_name: str, name: str) -> Optional[StackRow]:
        return self.session.scalars(
            select(StackRow).where(
                StackRow.repository_name == repository_name, StackRow.name == name
            )
        ).first()

    def list_stacks(self, repository_name: str) -> List[StackRow]:
        return list(
            self.session.scalars(
                select(StackRow)
                .where(StackRow.repository_name == repository_name)
                .order_by(StackRow.id)
            )
        )

    def branch_counts(self, repository_name: str) -> Dict[int, int]:
        """Return stack id -> number of tracked branches for the repository."""
        rows = self.session.execute(
            select(StackRow.id, func.count(BranchRow.id))
            .outerjoin(BranchRow, BranchRow.stack_id == StackRow.id)
            .where(StackRow.repository_name == repository_name)
            .group_by(StackRow.id)
        )
        return {stack_id: count for stack_id, count in rows}

    def rename_stack(self, stack_id: int, name: str) -> StackRow:
        stack = self.require_stack(stack_id)
        old = stack.name
        stack.name = name
        self.session.flush()
        logger.info(f"Renamed stack {old} -> {name}")
        return stack

    def delete_stack(self, stack_id: int) -> None:
        stack = self.require_stack(stack_id)
        self.session.delete(stack)
        self.session.flush()
        logger.info(f"Deleted stack {stack.name} (id={stack_id})")

    # --- Branches ---
    def branches(self, stack_id: int) -> List[BranchRow]:
        """Branches of a stack ordered bottom (position 0) to top."""
        return list(
            self.session.scalars(
                select(BranchRow).where(BranchRow.stack_id == stack_id).order_by(BranchRow.position)
            )
        )

    def count_branches(self, stack_id: int) -> int:
        return self.session.scalar(
            select(func.count(BranchRow.id)).where(BranchRow.stack_id == stack_id)
        ) or 0

    def find_branch(self, repository_name: str, name: str) -> Optional[BranchRow]:
        """Find the tracked branch with ``name`` in any stack of the repository."""
        return self.session.scalars(
            select(BranchRow)
            .join(StackRow, BranchRow.stack_id == StackRow.id)
            .where(StackRow.repository_name == repository_name, BranchRow.name == name)
        ).first()

    def branch_at(self, stack_id: int, position: int) -> Optional[BranchRow]:
        return self.session.scalars(
            select(BranchRow).where(BranchRow.stack_id == stack_id, BranchRow.position == position)
        ).first()

    def set_branch_status(self, branch: BranchRow, status: BranchStatus) -> None:
        branch.status = BranchStatus(status).value
        self.session.flush()

    def record_commit(self, branch: BranchRow, commit: CommitInfo) -> CommitRow:
        """Append a commit record and remember it as the branch's latest commit."""
        row = CommitRow(
            branch_id=branch.id, sha=commit.hash, message=commit.message, author=commit.author
        )
        self.session.add(row)
        branch.latest_commit = commit.hash
        self.session.flush()
        logger.debug(f"Recorded commit {commit.hash[:8]} on {branch.name}")
        return row

    def commits_for(self, branch_id: int) -> List[CommitRow]:
        return list(
            self.session.scalars(
                select(CommitRow).where(CommitRow.branch_id == branch_id).order_by(CommitRow.id)
            )
        )

    # --- Pending operations ---
    def get_pending(self, repository_name: str) -> Optional[PendingOperation]:
        row = self.session.get(PendingOperationRow, repository_name)
        if row is None:
            return None
        return PendingOperation(
            repository_name=row.repository_name,
            kind=row.kind,
            stack_id=row.stack_id,
            original_branch=row.original_branch,
            paused_branch=row.paused_branch,
            target_branch=row.target_branch,
            stop_at=row.stop_at,
        )

    def save_pending(
        self,
        repository_name: str,
        kind: str,
        stack_id: int,
        original_branch: str,
        paused_branch: str,
        target_branch: str,
        stop_at: Optional[str] = None,
    ) -> PendingOperationRow:
        """Record a paused operation, replacing any earlier one for the repository."""
        self.ensure_repository(repository_name)
        self.clear_pending(repository_name)
        row = PendingOperationRow(
            repository_name=repository_name,
            kind=kind,
            stack_id=stack_id,
            original_branch=original_branch,
            paused_branch=paused_branch,
            target_branch=target_branch,
            stop_at=stop_at,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(f"Paused {kind} on {paused_branch} (stack id={stack_id})")
        return row

    def clear_pending(self, repository_name: str) -> None:
        self.session.execute(
            delete(PendingOperationRow).where(PendingOperationRow.repository_name == repository_name)
        )
        self.session.flush()

    # --- Conversions ---
    def to_entry(self, branch: BranchRow, parent_name: Optional[str] = None) -> BranchEntry:
        return BranchEntry(
            id=branch.id,
            name=branch.name,
            stack_id=branch.stack_id,
            position=branch.position,
            status=branch.status,
            parent_name=parent_name,
            latest_commit=branch.latest_commit,
        )

    def summarize(self, stack: StackRow) -> StackSummary:
        rows = self.branches(stack.id)
        names_by_id = {r.id: r.name for r in rows}
        return StackSummary(
            id=stack.id,
            name=stack.name,
            repository_name=stack.repository_name,
            base_branch=stack.base_branch,
            branches=[self.to_entry(r, names_by_id.get(r.parent_id)) for r in rows],
            description=stack.description,
        )
