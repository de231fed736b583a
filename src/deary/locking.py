"""Repository locking and all-or-nothing placement of ciphertext."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker

from .errors import FileAccessError, StoreError

LOCK_FILE_NAME = "deary.lock"


@contextmanager
def repository_lock(git_dir: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Acquire an exclusive lock on a repository.

    The lock file lives inside the git directory so it is never part of the
    working tree.

    Args:
        git_dir: The repository's .git directory
        timeout: Seconds to wait for lock

    Raises:
        StoreError: If lock cannot be acquired
    """
    lock_path = git_dir / LOCK_FILE_NAME

    # Create lock file if it doesn't exist
    if not lock_path.exists():
        lock_path.touch()

    try:
        lock = portalocker.Lock(lock_path, timeout=timeout)
        lock.acquire()
    except portalocker.LockException as e:
        raise StoreError(f"Repository {git_dir.parent} is locked by another process") from e

    try:
        yield
    finally:
        lock.release()


def staging_path_for(path: Path) -> Path:
    """Reserved sibling that receives output before it replaces ``path``."""
    return path.with_name(f".{path.name}.tmp")


@contextmanager
def staged_output(path: Path) -> Generator[Path, None, None]:
    """Let a producer write ``path`` atomically.

    Yields a reserved sibling path for the producer to write. When the block
    finishes without error the sibling is renamed over ``path``; otherwise it
    is removed and ``path`` is left untouched.

    Raises:
        FileAccessError: If the rename fails
    """
    tmp_path = staging_path_for(path)
    if tmp_path.exists():
        tmp_path.unlink()

    try:
        yield tmp_path

        # Atomic rename (on POSIX; Windows may need to remove first)
        if os.name == "nt" and path.exists():
            path.unlink()
        try:
            tmp_path.replace(path)
        except OSError as e:
            raise FileAccessError(f"Cannot move {tmp_path.name} into place: {e}") from e

    finally:
        # Clean up temp file on failure
        if tmp_path.exists():
            tmp_path.unlink()
