"""
Runtime configuration resolved from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


HOME_ENV = "BRANCHSTACK_HOME"
DB_ENV = "BRANCHSTACK_DB"
LOG_ENV = "BRANCHSTACK_LOG"

DEFAULT_BASE_BRANCH_CANDIDATES = ("main", "master", "develop", "development")
STACK_NAME_PREFIX = "stack/"


def default_home() -> Path:
    """Directory holding the database, locks and logs (~/.branchstack)."""
    env_path = os.environ.get(HOME_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".branchstack"


def default_db_path() -> Path:
    env_path = os.environ.get(DB_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return default_home() / "branchstack.db"


def default_log_path() -> Path:
    env_path = os.environ.get(LOG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return default_home() / "branchstack.log"


@dataclass
class Settings:
    """Paths used by a single CLI invocation."""

    home: Path
    db_path: Path
    log_path: Path

    @property
    def lock_dir(self) -> Path:
        return self.home / "locks"

    @classmethod
    def from_env(cls, db_path: Optional[Path] = None, log_path: Optional[Path] = None) -> "Settings":
        """Build settings from the environment, letting explicit arguments win."""
        return cls(
            home=default_home(),
            db_path=Path(db_path).expanduser() if db_path else default_db_path(),
            log_path=Path(log_path).expanduser() if log_path else default_log_path(),
        )
