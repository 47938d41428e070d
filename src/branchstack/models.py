"""
Data models and exceptions for the branch stack tool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class BranchStatus(str, Enum):
    """Lifecycle status of a tracked branch."""

    ACTIVE = "active"
    MERGED = "merged"
    ABANDONED = "abandoned"


class RestackState(str, Enum):
    """States of the sequential restack state machine."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ABORTED = "aborted"
    COMPLETED = "completed"
    NOTHING_TO_CONTINUE = "nothing_to_continue"


PENDING_RESTACK = "restack"
PENDING_FOLD = "fold"


@dataclass
class CommitInfo:
    """Information about a Git commit."""

    hash: str
    message: str
    author: str


@dataclass
class GitOutcome:
    """Result of a rebase/merge style Git call that may stop on conflicts."""

    success: bool
    conflicts: List[str] = field(default_factory=list)


@dataclass
class HistoryEntry:
    """One line of decorated commit history: a commit and the local branches pointing at it."""

    commit: str
    decorations: List[str] = field(default_factory=list)


@dataclass
class BranchEntry:
    """Structured representation of a tracked branch.

    Returned by core logic for UI formatting without exposing database rows.
    """

    id: int
    name: str
    stack_id: int
    position: int
    status: str = BranchStatus.ACTIVE.value
    parent_name: Optional[str] = None
    latest_commit: Optional[str] = None


@dataclass
class StackSummary:
    """Structured representation of a stack and its ordered branches."""

    id: int
    name: str
    repository_name: str
    base_branch: str
    branches: List[BranchEntry] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def branch_names(self) -> List[str]:
        return [b.name for b in self.branches]

    def get_branch(self, name: str) -> Optional[BranchEntry]:
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None


@dataclass
class ConflictInfo:
    """Branch that stopped on conflicts together with its unmerged files."""

    branch: str
    files: List[str] = field(default_factory=list)


@dataclass
class RestackResult:
    """Outcome of restack, continue and abort operations."""

    state: RestackState
    stack_name: Optional[str] = None
    rebased: List[str] = field(default_factory=list)
    conflict: Optional[ConflictInfo] = None
    message: Optional[str] = None

    @property
    def is_paused(self) -> bool:
        return self.state is RestackState.PAUSED


@dataclass
class PendingOperation:
    """Snapshot of a paused restack or fold.

    ``paused_branch`` is the branch git stopped on; ``target_branch`` is the
    other side (the rebase base for a restack, the folded branch for a fold).
    """

    repository_name: str
    kind: str
    stack_id: int
    original_branch: str
    paused_branch: str
    target_branch: str
    stop_at: Optional[str] = None


@dataclass
class FoldResult:
    """Outcome of folding a branch into the branch below it."""

    folded_branch: str
    target_branch: str
    completed: bool
    conflict: Optional[ConflictInfo] = None


class StackError(Exception):
    """Base exception for stack operations."""

    pass


class PreconditionError(StackError):
    """Operation cannot start in the current repository or stack state."""

    pass


class UncommittedChangesError(PreconditionError):
    """The working tree has uncommitted changes."""

    def __init__(self, message: str = "Working tree has uncommitted changes; commit or stash them first") -> None:
        super().__init__(message)


class NotInStackError(PreconditionError):
    """The branch is not part of any stack."""

    def __init__(self, branch: str) -> None:
        super().__init__(f"Branch '{branch}' is not part of a stack")
        self.branch = branch


class AlreadyTrackedError(PreconditionError):
    """The branch is already tracked by a stack in this repository."""

    def __init__(self, branch: str, stack_name: Optional[str] = None) -> None:
        where = f" in stack '{stack_name}'" if stack_name else ""
        super().__init__(f"Branch '{branch}' is already tracked{where}")
        self.branch = branch


class NotTrackedError(PreconditionError):
    """The branch is not tracked by any stack."""

    def __init__(self, branch: str) -> None:
        super().__init__(f"Branch '{branch}' is not tracked")
        self.branch = branch


class StackNotFoundError(PreconditionError):
    """No stack with the given id exists."""

    pass


class LockHeldError(PreconditionError):
    """Another invocation holds the repository lock."""

    pass


class TopologyError(StackError):
    """Commit history cannot be represented as a linear stack."""

    pass


class MultipleBranchesError(TopologyError):
    def __init__(self, commit: str, branches: List[str]) -> None:
        super().__init__(
            f"Multiple branches found at commit {commit[:8]}: {', '.join(branches)}"
        )
        self.commit = commit
        self.branches = branches


class DuplicateBranchError(TopologyError):
    def __init__(self, branch: str) -> None:
        super().__init__(f"Duplicate branch name found in commit history: {branch}")
        self.branch = branch


class NoBaseBranchError(TopologyError):
    def __init__(self, base_branches: List[str]) -> None:
        super().__init__(
            f"No base branch found in commit history (looked for: {', '.join(base_branches) or 'none'})"
        )
        self.base_branches = base_branches


class GatewayError(StackError):
    """A Git call failed for a reason other than a conflict."""

    pass


class GitRepositoryError(GatewayError):
    """Exception raised for Git repository related errors."""

    pass


class StoreError(StackError):
    """The stack database could not be opened or written."""

    pass


class StoreIntegrityError(StoreError):
    """Stored positions or parent links are inconsistent."""

    pass
