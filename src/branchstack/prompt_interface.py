"""
UI-agnostic prompt interface for user interactions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class UserPrompt(ABC):
    """Abstract interface for prompting users for decisions."""

    @abstractmethod
    def confirm_fold(self, branch: str, downstream: str) -> bool:
        """
        Ask user to confirm merging ``branch`` into ``downstream``.

        Returns:
            True if the fold should proceed
        """
        pass

    @abstractmethod
    def choose_base_branches(self, available: List[str], suggested: List[str]) -> List[str]:
        """
        Ask user which branches stacks of this repository are based on.

        Args:
            available: Local branch names
            suggested: Pre-selected names (detected trunk branches)

        Returns:
            The chosen base branch names
        """
        pass

    @abstractmethod
    def confirm_delete_stacks(self, stack_names: List[str]) -> bool:
        """Ask user to confirm deleting the given stacks."""
        pass

    @abstractmethod
    def choose_branch(
        self, stacks: Dict[str, List[str]], base_branches: List[str], current: Optional[str]
    ) -> Optional[str]:
        """
        Ask user which branch to check out.

        Args:
            stacks: Branch names per stack name, bottom first
            base_branches: Configured base branches
            current: Currently checked out branch, if any

        Returns:
            The chosen branch, or None to stay put
        """
        pass


class NoOpPrompt(UserPrompt):
    """No-operation prompt that always returns safe defaults.

    Used when no terminal is attached to answer questions.
    """

    def confirm_fold(self, branch: str, downstream: str) -> bool:
        return False

    def choose_base_branches(self, available: List[str], suggested: List[str]) -> List[str]:
        return list(suggested)

    def confirm_delete_stacks(self, stack_names: List[str]) -> bool:
        return False

    def choose_branch(
        self, stacks: Dict[str, List[str]], base_branches: List[str], current: Optional[str]
    ) -> Optional[str]:
        return None


class AutoConfirmPrompt(NoOpPrompt):
    """Answers yes to every confirmation (``--yes``)."""

    def confirm_fold(self, branch: str, downstream: str) -> bool:
        return True

    def confirm_delete_stacks(self, stack_names: List[str]) -> bool:
        return True
