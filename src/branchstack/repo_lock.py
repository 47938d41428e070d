"""
Repository-scoped advisory lock.

Two invocations against the same repository would interleave position
shifts or rebases, so mutating commands hold an exclusive ``fcntl.flock``
on ``<lock_dir>/<repository>.lock`` for their whole run.
"""

from __future__ import annotations

import fcntl
import logging
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .models import LockHeldError


logger = logging.getLogger(__name__)


def lock_path_for(repository_name: str, lock_dir: Path) -> Path:
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", repository_name)
    return Path(lock_dir) / f"{safe}.lock"


@contextmanager
def repository_lock(repository_name: str, lock_dir: Path) -> Iterator[Path]:
    """Hold an exclusive, non-blocking lock for ``repository_name``.

    Raises:
        LockHeldError: if another process holds the lock
    """
    path = lock_path_for(repository_name, lock_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    lock_file = open(path, "a+")
    try:
        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise LockHeldError(
                f"Another branchstack command is running for {repository_name} (lock file: {path})"
            ) from e
        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(str(os.getpid()))
        lock_file.flush()
        logger.debug(f"Acquired repository lock {path}")
        try:
            yield path
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            logger.debug(f"Released repository lock {path}")
    finally:
        lock_file.close()
