"""
Branch Stack Tool - track, restack and import stacks of dependent Git branches.

This package keeps an ordered list of branches per stack in a local SQLite
database and rebases each branch onto the one below it, pausing on conflicts.
"""

__version__ = "0.1.0"

from .database import Database, open_database
from .git_manager import GitManager
from .history_importer import HistoryImporter
from .models import BranchEntry, RestackResult, RestackState, StackError, StackSummary
from .position_manager import StackPositionManager
from .rebase_orchestrator import RebaseOrchestrator
from .stack_manager import StackManager

__all__ = [
    "Database",
    "open_database",
    "GitManager",
    "HistoryImporter",
    "BranchEntry",
    "RestackResult",
    "RestackState",
    "StackError",
    "StackSummary",
    "StackPositionManager",
    "RebaseOrchestrator",
    "StackManager",
]
