"""
Shared fixtures: a temporary stack database and a scripted Git gateway.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from branchstack.database import open_database
from branchstack.models import CommitInfo, GitOutcome, GitRepositoryError
from branchstack.position_manager import StackPositionManager
from branchstack.stack_store import StackStore


REPO = "acme/widgets"


class FakeGitManager:
    """In-memory stand-in for GitManager that records every call.

    ``rebase_conflicts`` / ``merge_conflicts`` map a branch to the files that
    conflict the next time it is rebased or merged; ``continue_conflicts`` is
    a queue of conflict lists returned by successive ``continue_rebase`` calls.
    """

    def __init__(self, branches: Iterable[str] = ("main",), current: Optional[str] = "main") -> None:
        self.repository_name = REPO
        self.heads: Dict[str, str] = {name: f"{i + 1:040x}" for i, name in enumerate(branches)}
        self.current = current
        self.dirty = False
        self.history: List[str] = []

        self.rebase_calls: List[tuple] = []
        self.merge_calls: List[tuple] = []
        self.checkouts: List[str] = []
        self.rebase_conflicts: Dict[str, List[str]] = {}
        self.rebase_errors: Dict[str, Exception] = {}
        self.continue_conflicts: List[List[str]] = []
        self.merge_conflicts: Dict[str, List[str]] = {}
        self.unmerged: List[str] = []

        self.rebase_in_progress = False
        self.rebasing: Optional[str] = None
        self.merge_in_progress = False
        self.continue_calls = 0
        self.abort_calls = 0
        self.merge_commits = 0
        self.merge_aborts = 0
        self.merged: set = set()
        self.merging: Optional[tuple] = None
        self.branch_commits: Dict[str, List[str]] = {}
        self.commit_messages: Dict[str, str] = {}
        self.untracked_changes = False
        self.commits_made: List[tuple] = []
        self.squashes: List[tuple] = []

    # --- Identity / branches ---
    def get_repository_name(self) -> str:
        return self.repository_name

    def get_default_base_branch(self) -> str:
        return "main"

    def get_current_branch(self) -> str:
        if self.current is None:
            raise GitRepositoryError("Could not determine current branch: HEAD is detached")
        return self.current

    def list_local_branches(self) -> List[str]:
        return list(self.heads)

    def branch_exists(self, branch_name: str) -> bool:
        return branch_name in self.heads

    def checkout_branch(self, branch_name: str) -> None:
        if branch_name not in self.heads:
            raise GitRepositoryError(f"Failed to checkout branch {branch_name}")
        self.checkouts.append(branch_name)
        self.current = branch_name

    def create_branch(self, branch_name: str) -> None:
        self.heads[branch_name] = self.heads.get(self.current, "0" * 40)
        self.current = branch_name

    def get_latest_commit(self, ref: str = "HEAD") -> CommitInfo:
        name = self.current if ref == "HEAD" else ref
        return CommitInfo(hash=self.heads.get(name, "f" * 40), message=f"tip of {name}", author="Dev")

    def get_commit_history(self, ref: str = "HEAD") -> List[str]:
        return list(self.history)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor == descendant or (ancestor, descendant) in self.merged

    def get_merge_base(self, first: str, second: str = "HEAD") -> str:
        return self.heads.get(first, "0" * 40)

    def get_commits_since(self, base: str, ref: str = "HEAD") -> List[str]:
        name = self.current if ref == "HEAD" else ref
        return list(self.branch_commits.get(name, []))

    def get_commit_message(self, ref: str = "HEAD") -> str:
        return self.commit_messages.get(ref, f"message of {ref}")

    # --- Commits ---
    def has_changes_to_commit(self) -> bool:
        return self.dirty or self.untracked_changes

    def commit_all(self, message: Optional[str] = None, amend: bool = False) -> CommitInfo:
        self.commits_made.append((self.current, message, amend))
        self.dirty = self.untracked_changes = False
        self.heads[self.current] = f"{100 + len(self.commits_made):040x}"
        return self.get_latest_commit()

    def squash_commits(self, base: str, message: str) -> CommitInfo:
        self.squashes.append((self.current, base, message))
        self.branch_commits[self.current] = ["s" * 40]
        self.heads[self.current] = "5" * 40
        return self.get_latest_commit()

    # --- Rebase ---
    def rebase_branch(self, source: str, target: str) -> GitOutcome:
        self.rebase_calls.append((source, target))
        if source in self.rebase_errors:
            raise self.rebase_errors.pop(source)
        if source in self.rebase_conflicts:
            self.rebase_in_progress = True
            self.rebasing = source
            self.current = None
            self.unmerged = self.rebase_conflicts.pop(source)
            return GitOutcome(success=False, conflicts=list(self.unmerged))
        self.current = source
        return GitOutcome(success=True)

    def continue_rebase(self) -> GitOutcome:
        self.continue_calls += 1
        if self.continue_conflicts:
            self.unmerged = self.continue_conflicts.pop(0)
            return GitOutcome(success=False, conflicts=list(self.unmerged))
        self.rebase_in_progress = False
        self.current = self.rebasing
        self.rebasing = None
        self.unmerged = []
        return GitOutcome(success=True)

    def abort_rebase(self) -> None:
        self.abort_calls += 1
        self.rebase_in_progress = False
        self.current = self.rebasing
        self.rebasing = None
        self.unmerged = []

    def is_rebase_in_progress(self) -> bool:
        return self.rebase_in_progress

    def get_rebasing_branch(self) -> Optional[str]:
        return self.rebasing

    # --- Merge ---
    def merge_branch(self, source: str) -> GitOutcome:
        self.merge_calls.append((self.current, source))
        if source in self.merge_conflicts:
            self.merge_in_progress = True
            self.merging = (source, self.current)
            self.unmerged = self.merge_conflicts.pop(source)
            return GitOutcome(success=False, conflicts=list(self.unmerged))
        self.merged.add((source, self.current))
        return GitOutcome(success=True)

    def is_merge_in_progress(self) -> bool:
        return self.merge_in_progress

    def commit_merge(self) -> None:
        self.merge_commits += 1
        self.merge_in_progress = False
        if self.merging is not None:
            self.merged.add(self.merging)
            self.merging = None

    def abort_merge(self) -> None:
        self.merge_aborts += 1
        self.merge_in_progress = False
        self.merging = None
        self.unmerged = []

    # --- Working tree ---
    def has_uncommitted_changes(self) -> bool:
        return self.dirty

    def get_conflict_files(self) -> List[str]:
        return list(self.unmerged)


@pytest.fixture()
def db(tmp_path: Path):
    database = open_database(tmp_path / "stacks.db")
    database.migrate()
    yield database
    database.dispose()


@pytest.fixture()
def git() -> FakeGitManager:
    return FakeGitManager(branches=["main", "feat-a", "feat-b", "feat-c"], current="main")


@pytest.fixture()
def make_stack(db):
    """Return a factory that stores a stack of branch names, bottom first."""

    def factory(names: List[str], base: str = "main", name: str = "stack/test", repository: str = REPO) -> int:
        with db.session() as session:
            stack = StackStore(session).create_stack(repository, name, base)
            positions = StackPositionManager(session)
            for branch in names:
                positions.append(stack.id, branch)
            return stack.id

    return factory


@pytest.fixture()
def stack_names(db):
    """Return a helper listing (name, position, parent name) rows of a stack."""

    def read(stack_id: int) -> List[tuple]:
        with db.session() as session:
            summary = StackStore(session).summarize(StackStore(session).require_stack(stack_id))
        return [(b.name, b.position, b.parent_name) for b in summary.branches]

    return read
