"""Versioned store: a git working directory with a single linear history.

Every change is committed with plumbing commands (update-index, write-tree,
commit-tree, update-ref) so the index, the tree and the new tip are produced
explicitly, one path at a time. Porcelain commands such as ``git commit``
would run hooks and consult user configuration we do not control.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from .errors import (
    AlreadyExistsError,
    CorruptRepositoryError,
    FileAccessError,
    RecipientNotFoundError,
    RepositoryNotFoundError,
    StoreError,
    ToolNotFoundError,
)
from .locking import repository_lock
from .models import (
    GPG_ID_FILE_NAME,
    ChangeKind,
    Child,
    CommitParent,
    CommitRecord,
    Genesis,
    is_reserved_name,
)

logger = logging.getLogger(__name__)

GIT_DIR_NAME = ".git"
_FIELD_SEP = "\x1f"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%P", "%aI", "%s"])
_COMMIT_FAILURES = (StoreError, ToolNotFoundError, OSError)


def _resolve_git(binary: str) -> str:
    found = shutil.which(binary)
    if found is None:
        raise ToolNotFoundError(f"{binary} executable not found in PATH")
    return found


class VersionedStore:
    """A git repository holding one file per journal entry."""

    def __init__(self, root: Path, git_binary: str = "git", lock_timeout: float = 10.0):
        self.root = root
        self.git_dir = root / GIT_DIR_NAME
        self.git_binary = git_binary
        self.lock_timeout = lock_timeout
        self._executable: Optional[str] = None

    # ========== Construction ==========

    @classmethod
    def initialize(
        cls,
        path: Path,
        recipient_id: str,
        author_config: Mapping[str, str],
        git_binary: str = "git",
        lock_timeout: float = 10.0,
    ) -> VersionedStore:
        """Create a repository, record the recipient and make the root commit.

        Raises:
            AlreadyExistsError: If ``path`` is a repository or a non-empty directory.
            RecipientNotFoundError: If ``recipient_id`` is blank.
            StoreError: If any git step fails.
        """
        root = Path(path).absolute()
        if root.exists():
            if not root.is_dir():
                raise AlreadyExistsError(f"{root} already exists and is not a directory")
            if (root / GIT_DIR_NAME).exists():
                raise AlreadyExistsError(f"Repository {root} already exists")
            if any(root.iterdir()):
                raise AlreadyExistsError(f"Directory {root} already exists and is not empty")
            created_root = False
        else:
            created_root = True

        if not recipient_id.strip():
            raise RecipientNotFoundError("Recipient identifier must not be empty")

        store = cls(root, git_binary=git_binary, lock_timeout=lock_timeout)
        executable = store._git_executable()

        try:
            result = store._run([executable, "init", "--quiet", str(root)])
            if result.returncode != 0:
                raise StoreError(f"git init failed: {result.stderr.strip()}")
            for key, value in author_config.items():
                store._git("config", key, value)

            gpg_id_path = root / GPG_ID_FILE_NAME
            try:
                gpg_id_path.write_text(recipient_id, encoding="utf-8")
            except OSError as e:
                raise FileAccessError(f"Cannot write {gpg_id_path}: {e}") from e

            store._commit(GPG_ID_FILE_NAME, ChangeKind.ADD, Genesis())
        except Exception:
            store._discard_initialization(created_root)
            raise

        logger.info("Initialized repository at %s", root)
        return store

    @classmethod
    def open(cls, path: Path, git_binary: str = "git", lock_timeout: float = 10.0) -> VersionedStore:
        """Open an existing repository.

        Raises:
            RepositoryNotFoundError: If ``path`` holds no repository.
            CorruptRepositoryError: If git does not accept the repository.
        """
        root = Path(path).absolute()
        if not (root / GIT_DIR_NAME).is_dir():
            raise RepositoryNotFoundError(f"No repository found at {root}")

        store = cls(root, git_binary=git_binary, lock_timeout=lock_timeout)
        result = store._git("rev-parse", "--is-inside-work-tree", check=False)
        if result.returncode != 0 or result.stdout.strip() != "true":
            raise CorruptRepositoryError(
                f"{root} is not a valid repository: {result.stderr.strip()}"
            )
        return store

    def _discard_initialization(self, created_root: bool) -> None:
        """Remove what a failed initialize() left behind."""
        logger.debug("Discarding partial repository at %s", self.root)
        if self.git_dir.exists():
            shutil.rmtree(self.git_dir)
        (self.root / GPG_ID_FILE_NAME).unlink(missing_ok=True)
        if created_root and self.root.exists() and not any(self.root.iterdir()):
            self.root.rmdir()

    # ========== Process plumbing ==========

    def _git_executable(self) -> str:
        if self._executable is None:
            self._executable = _resolve_git(self.git_binary)
        return self._executable

    def _run(self, command: list[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        logger.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(f"{self.git_binary} executable not found: {e}") from e

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        """Run git against this repository only; no discovery above the root."""
        command = [
            self._git_executable(),
            f"--git-dir={self.git_dir}",
            f"--work-tree={self.root}",
            *args,
        ]
        # Pathspecs are relative to the working directory of the process
        result = self._run(command, cwd=self.root)
        if check and result.returncode != 0:
            raise StoreError(f"git {args[0]} failed: {result.stderr.strip()}")
        return result

    # ========== Queries ==========

    def working_directory(self) -> Path:
        return self.root

    def entry_path(self, name: str) -> Path:
        return self.root / name

    def head(self) -> Optional[str]:
        """Sha of the current tip, or None before the first commit."""
        result = self._git("rev-parse", "--verify", "--quiet", "HEAD^{commit}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def commit_count(self) -> int:
        if self.head() is None:
            return 0
        return int(self._git("rev-list", "--count", "HEAD").stdout.strip())

    def is_tracked(self, name: str) -> bool:
        result = self._git("ls-files", "--error-unmatch", "--", name, check=False)
        return result.returncode == 0

    def history(self, name: Optional[str] = None) -> list[CommitRecord]:
        """Commits newest first, optionally only those touching ``name``."""
        if self.head() is None:
            return []
        args = ["log", f"--format={_LOG_FORMAT}", "HEAD"]
        if name is not None:
            args.extend(["--", name])

        records = []
        for line in self._git(*args).stdout.splitlines():
            if not line:
                continue
            sha, parents, authored, subject = line.split(_FIELD_SEP, 3)
            records.append(CommitRecord(
                sha=sha,
                parents=tuple(parents.split()),
                message=subject,
                timestamp=datetime.fromisoformat(authored),
            ))
        return records

    def list_tracked_names(self) -> list[str]:
        """Top-level names in the working directory, reserved names excluded.

        Order is whatever the filesystem returns; sort if you need it stable.
        """
        try:
            names = os.listdir(self.root)
        except OSError as e:
            raise FileAccessError(f"Cannot list {self.root}: {e}") from e
        return [name for name in names if not is_reserved_name(name)]

    def recipient_id(self) -> str:
        """Read the recipient identifier from the metadata file.

        Raises:
            RecipientNotFoundError: If the file is missing, unreadable or blank.
        """
        path = self.root / GPG_ID_FILE_NAME
        try:
            recipient = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError as e:
            raise RecipientNotFoundError(f"{GPG_ID_FILE_NAME} not found in {self.root}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise RecipientNotFoundError(f"Cannot read {path}: {e}") from e
        if not recipient:
            raise RecipientNotFoundError(f"{path} is empty")
        return recipient

    # ========== Changes ==========

    def record_change(self, entry_name: str, change: ChangeKind) -> str:
        """Commit the current working-directory state of one entry.

        The new commit's parent is the current HEAD. On any failure, including
        a lock timeout or a missing HEAD, the entry's working-directory file is
        put back to its state in HEAD before the error propagates.

        Returns:
            Sha of the new commit.

        Raises:
            StoreError: If the lock is held, HEAD is missing or any git step fails.
        """
        parent: Optional[CommitParent] = None
        try:
            with repository_lock(self.git_dir, timeout=self.lock_timeout):
                head = self.head()
                if head is None:
                    parent = Genesis()
                    raise StoreError(f"Repository {self.root} has no HEAD commit")
                parent = Child(head)
                return self._commit(entry_name, change, parent)
        except _COMMIT_FAILURES:
            self._restore_entry(entry_name, parent)
            raise

    def _commit(self, entry_name: str, change: ChangeKind, parent: CommitParent) -> str:
        message = change.message_for(entry_name)
        try:
            if change is ChangeKind.DELETE:
                self._git("update-index", "--force-remove", "--", entry_name)
            else:
                self._git("update-index", "--add", "--", entry_name)

            tree = self._git("write-tree").stdout.strip()
            commit = self._git(
                "commit-tree", "--no-gpg-sign", *parent.parent_args(), "-m", message, tree
            ).stdout.strip()

            # Compare-and-swap: an empty old value means HEAD must not exist yet
            expected = parent.parent if isinstance(parent, Child) else ""
            self._git("update-ref", "-m", message, "HEAD", commit, expected)
        except _COMMIT_FAILURES:
            self._reset_index(parent)
            raise

        logger.debug("Committed %s as %s", message, commit[:12])
        return commit

    def _reset_index(self, parent: CommitParent) -> None:
        """Put the index back to the parent commit's tree."""
        try:
            if isinstance(parent, Genesis):
                self._git("read-tree", "--empty")
            else:
                self._git("read-tree", parent.parent)
        except _COMMIT_FAILURES:
            # The commit failure is what the caller needs to see
            logger.exception("Could not reset the index of %s", self.root)

    def _restore_entry(self, entry_name: str, parent: Optional[CommitParent]) -> None:
        """Put the entry's working file back to its state in ``parent``.

        ``parent`` is None when the failure came before HEAD was read under
        the lock; HEAD is read now instead.
        """
        logger.debug("Restoring %s after failed commit", entry_name)
        try:
            if parent is None:
                head = self.head()
                parent = Child(head) if head is not None else Genesis()

            in_parent = isinstance(parent, Child) and self._git(
                "cat-file", "-e", f"{parent.parent}:{entry_name}", check=False
            ).returncode == 0
            if in_parent:
                self._git("checkout", parent.parent, "--", entry_name)
            else:
                self.entry_path(entry_name).unlink(missing_ok=True)
        except _COMMIT_FAILURES:
            logger.exception("Could not restore %s in %s", entry_name, self.root)
