"""
Reconstruct a stack from the decorated commit history of the current branch.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import STACK_NAME_PREFIX
from .database import Database
from .git_manager import GitManager
from .models import (
    AlreadyTrackedError,
    DuplicateBranchError,
    HistoryEntry,
    MultipleBranchesError,
    NoBaseBranchError,
    PreconditionError,
    StackSummary,
)
from .position_manager import StackPositionManager
from .stack_store import StackStore


logger = logging.getLogger(__name__)

_DECORATION_RE = re.compile(r"\((.*)\)\s*$")


def parse_history_line(line: str) -> HistoryEntry:
    """Parse ``"<hash> (<decorations>)"`` into a HistoryEntry.

    ``HEAD`` markers and tags are dropped; ``HEAD -> name`` yields ``name``.
    """
    commit, _, rest = line.strip().partition(" ")
    decorations: List[str] = []
    match = _DECORATION_RE.search(rest)
    if match:
        for part in match.group(1).split(","):
            name = part.strip()
            if name.startswith("HEAD -> "):
                name = name[len("HEAD -> "):].strip()
            if not name or name == "HEAD" or name.startswith("tag: "):
                continue
            decorations.append(name)
    return HistoryEntry(commit=commit, decorations=decorations)


def collect_stack_branches(
    history: Iterable[HistoryEntry], base_branches: Sequence[str]
) -> Tuple[str, List[str]]:
    """Walk history newest to oldest until a base branch is reached.

    Returns:
        (base_branch, branch names newest first)

    Raises:
        MultipleBranchesError: a commit carries more than one branch
        DuplicateBranchError: a branch name appears twice
        NoBaseBranchError: history ends without reaching a base branch
    """
    collected: List[str] = []
    for entry in history:
        if not entry.decorations:
            continue
        if len(entry.decorations) > 1:
            raise MultipleBranchesError(entry.commit, entry.decorations)
        name = entry.decorations[0]
        if name in collected:
            raise DuplicateBranchError(name)
        if name in base_branches:
            return name, collected
        collected.append(name)
    raise NoBaseBranchError(list(base_branches))


class HistoryImporter:
    """Creates a stack whose branches are the decorated commits between HEAD and a base branch."""

    def __init__(self, database: Database, git_manager: GitManager) -> None:
        self.db = database
        self.git_manager = git_manager

    def base_branches(self, repository_name: str) -> List[str]:
        with self.db.session() as session:
            configured = StackStore(session).get_base_branches(repository_name)
        if configured:
            return configured
        fallback = self.git_manager.get_default_base_branch()
        logger.info(f"No base branches configured for {repository_name}; using {fallback}")
        return [fallback]

    def import_stack(self, name: str, repository_name: Optional[str] = None) -> StackSummary:
        """
        Import the current branch's history as a new stack.

        Nothing is written unless the whole walk succeeds.
        """
        repository_name = repository_name or self.git_manager.get_repository_name()
        base_branches = self.base_branches(repository_name)
        history = [parse_history_line(line) for line in self.git_manager.get_commit_history()]

        base_branch, newest_first = collect_stack_branches(history, base_branches)
        if not newest_first:
            raise PreconditionError(
                f"No branches found between HEAD and base branch {base_branch}"
            )
        ordered = list(reversed(newest_first))
        stack_name = name if name.startswith(STACK_NAME_PREFIX) else f"{STACK_NAME_PREFIX}{name}"

        with self.db.session() as session:
            store = StackStore(session)
            for branch_name in ordered:
                existing = store.find_branch(repository_name, branch_name)
                if existing is not None:
                    raise AlreadyTrackedError(branch_name, store.require_stack(existing.stack_id).name)

            stack = store.create_stack(repository_name, stack_name, base_branch)
            positions = StackPositionManager(session)
            for branch_name in ordered:
                positions.append(stack.id, branch_name)
            summary = store.summarize(stack)

        logger.info(
            f"Imported stack {stack_name} on {base_branch}: {', '.join(ordered)}"
        )
        return summary
