"""
Ordering of branches inside a stack.

Positions are contiguous ``0..N-1`` and every ``parent_id`` points at the
branch one position below. Both are rewritten together inside the caller's
transaction, so a failure part way through rolls back the whole shift.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .models import AlreadyTrackedError, BranchStatus, PreconditionError, StoreIntegrityError
from .schema import BranchRow, StackRow, utc_now
from .stack_store import StackStore


logger = logging.getLogger(__name__)


class StackPositionManager:
    """Inserts, removes and relinks branches while keeping stack ordering intact."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.store = StackStore(session)

    def insert_at(
        self,
        stack_id: int,
        position: int,
        name: str,
        status: BranchStatus = BranchStatus.ACTIVE,
    ) -> BranchRow:
        """Insert ``name`` at ``position``, shifting branches at or above it up by one.

        Raises:
            StackNotFoundError: if the stack does not exist
            AlreadyTrackedError: if ``name`` is tracked by any stack of the repository
            PreconditionError: if ``position`` is outside ``0..count``
        """
        stack = self.store.require_stack(stack_id)
        existing = self.store.find_branch(stack.repository_name, name)
        if existing is not None:
            owner = self.store.get_stack(existing.stack_id)
            raise AlreadyTrackedError(name, owner.name if owner else None)

        rows = self.store.branches(stack_id)
        if position < 0 or position > len(rows):
            raise PreconditionError(
                f"Cannot insert '{name}' at position {position}; stack {stack.name} has {len(rows)} branches"
            )

        new_row = BranchRow(
            name=name,
            stack_id=stack_id,
            position=-(position + 1),
            status=BranchStatus(status).value,
        )
        self.session.add(new_row)
        ordered = rows[:position] + [new_row] + rows[position:]
        self._apply_order(stack, ordered)
        logger.info(f"Inserted {name} at position {position} in {stack.name}")
        return new_row

    def append(self, stack_id: int, name: str) -> BranchRow:
        """Insert ``name`` on top of the stack."""
        return self.insert_at(stack_id, self.store.count_branches(stack_id), name)

    def remove_at(self, stack_id: int, position: int) -> BranchRow:
        """Delete the branch at ``position`` and shift branches above it down by one.

        Returns the removed row (detached from the session once flushed).
        """
        stack = self.store.require_stack(stack_id)
        rows = self.store.branches(stack_id)
        target: Optional[BranchRow] = next((r for r in rows if r.position == position), None)
        if target is None:
            raise PreconditionError(f"Stack {stack.name} has no branch at position {position}")

        remaining = [r for r in rows if r is not target]
        for row in remaining:
            if row.parent_id == target.id:
                row.parent_id = None
        self.session.delete(target)
        self.session.flush()

        self._apply_order(stack, remaining)
        logger.info(f"Removed {target.name} from position {position} in {stack.name}")
        return target

    def relink(self, stack_id: int) -> None:
        """Recompute every ``parent_id`` of the stack from positions."""
        rows = self.store.branches(stack_id)
        self._link_parents(rows)
        self.session.flush()

    def check_invariants(self, stack_id: int) -> None:
        """Raise StoreIntegrityError if positions or parent links are inconsistent."""
        rows = self.store.branches(stack_id)
        positions = [r.position for r in rows]
        if positions != list(range(len(rows))):
            raise StoreIntegrityError(f"Stack {stack_id} has non-contiguous positions: {positions}")
        for below, row in zip([None] + rows[:-1], rows):
            expected = below.id if below is not None else None
            if row.parent_id != expected:
                raise StoreIntegrityError(
                    f"Branch {row.name} in stack {stack_id} has parent_id {row.parent_id}, expected {expected}"
                )

    def _apply_order(self, stack: StackRow, ordered: List[BranchRow]) -> None:
        """Give ``ordered`` positions 0..N-1 and relink parents.

        Rows are first moved to distinct negative positions so the unique
        (stack_id, position) constraint never sees a transient duplicate.
        """
        for index, row in enumerate(ordered):
            row.position = -(index + 1)
        self.session.flush()
        for index, row in enumerate(ordered):
            row.position = index
        self.session.flush()
        self._link_parents(ordered)
        stack.updated_at = utc_now()
        self.session.flush()

    @staticmethod
    def _link_parents(ordered: List[BranchRow]) -> None:
        previous: Optional[BranchRow] = None
        for row in ordered:
            row.parent_id = previous.id if previous is not None else None
            previous = row
