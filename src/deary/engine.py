"""Entry lifecycle engine - create, read, update and delete encrypted entries."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .cipher import CipherTool, GpgCipher
from .config import DearyConfig
from .editor import EditorRunner, ExternalEditor
from .errors import AlreadyExistsError, EntryNotFoundError, FileAccessError
from .locking import staged_output
from .models import ChangeKind, CommitRecord, generate_entry_name, utc_now, validate_entry_name
from .staging import scratch_file
from .store import VersionedStore

logger = logging.getLogger(__name__)


class JournalEngine:
    """Core engine managing encrypted entries in a versioned store.

    Every mutating operation commits strictly after the editor and the cipher
    have succeeded; a failure anywhere earlier leaves the repository at its
    last commit. Plaintext only ever exists in a scratch file outside the
    repository, removed when the operation ends.
    """

    def __init__(
        self,
        config: DearyConfig,
        cipher: Optional[CipherTool] = None,
        editor: Optional[EditorRunner] = None,
        clock: Callable[[], datetime] = utc_now,
        store: Optional[VersionedStore] = None,
    ):
        self.config = config
        # Opening first means a missing repository fails before anything runs
        self.store = store if store is not None else VersionedStore.open(
            config.repo_path,
            git_binary=config.git_binary,
            lock_timeout=config.lock_timeout,
        )
        self.cipher = cipher if cipher is not None else GpgCipher(
            config.gpg_binary, config.gpg_options
        )
        self.editor = editor if editor is not None else ExternalEditor(config.editor)
        self.clock = clock

    @classmethod
    def initialize(
        cls,
        config: DearyConfig,
        recipient_id: str,
        cipher: Optional[CipherTool] = None,
        editor: Optional[EditorRunner] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> JournalEngine:
        """Create a new repository for ``recipient_id`` and return its engine.

        Raises:
            AlreadyExistsError: If the repository path is already in use.
        """
        store = VersionedStore.initialize(
            config.repo_path,
            recipient_id,
            config.get_author_config(),
            git_binary=config.git_binary,
            lock_timeout=config.lock_timeout,
        )
        return cls(config, cipher=cipher, editor=editor, clock=clock, store=store)

    def _existing_entry(self, name: str) -> Path:
        """Validate a caller-supplied name and return its path.

        Only committed entries count; stray files in the working directory do not.
        """
        validate_entry_name(name)
        path = self.store.entry_path(name)
        if not path.is_file() or not self.store.is_tracked(name):
            raise EntryNotFoundError(f"Entry '{name}' not found")
        return path

    def _check_tools(self) -> None:
        self.cipher.ensure_available()
        self.editor.ensure_available()

    def _encrypt_into(self, plain_path: Path, entry_path: Path, recipient: str) -> None:
        """Encrypt into the working directory, replacing the entry only on success."""
        with staged_output(entry_path) as staged:
            self.cipher.encrypt(plain_path, staged, recipient)

    # ========== Entry Operations ==========

    def create_entry(self) -> str:
        """Write a new entry in the editor and commit it.

        Returns:
            The generated entry name (``YYYYMMDD-HHMMSS``).

        Raises:
            ToolNotFoundError: If the editor or gpg is missing.
            EditorFailedError: If the editor exits non-zero.
            AlreadyExistsError: If an entry with the generated name exists.
        """
        self._check_tools()
        recipient = self.store.recipient_id()

        with scratch_file(self.config.get_temp_dir()) as plain_path:
            self.editor.edit(plain_path)

            name = generate_entry_name(self.clock())
            entry_path = self.store.entry_path(name)
            if entry_path.exists():
                raise AlreadyExistsError(f"Entry '{name}' already exists")

            self._encrypt_into(plain_path, entry_path, recipient)

        self.store.record_change(name, ChangeKind.ADD)
        logger.info("Created entry %s", name)
        return name

    def read_entry(self, name: str) -> bytes:
        """Decrypt an entry straight from the repository.

        Raises:
            InvalidEntryNameError: If ``name`` is not a plain entry name.
            EntryNotFoundError: If the entry does not exist.
            ToolFailedError: If decryption fails.
        """
        path = self._existing_entry(name)
        return self.cipher.decrypt(path)

    def update_entry(self, name: str) -> None:
        """Re-open an entry in the editor and commit the new ciphertext.

        Raises:
            InvalidEntryNameError: If ``name`` is not a plain entry name.
            EntryNotFoundError: If the entry does not exist.
            ToolFailedError: If decryption or encryption fails.
            EditorFailedError: If the editor exits non-zero.
        """
        entry_path = self._existing_entry(name)
        self._check_tools()
        recipient = self.store.recipient_id()
        plaintext = self.cipher.decrypt(entry_path)

        with scratch_file(self.config.get_temp_dir(), contents=plaintext) as plain_path:
            self.editor.edit(plain_path)
            self._encrypt_into(plain_path, entry_path, recipient)

        self.store.record_change(name, ChangeKind.EDIT)
        logger.info("Updated entry %s", name)

    def delete_entry(self, name: str) -> None:
        """Remove an entry; its earlier versions stay in the history.

        Raises:
            InvalidEntryNameError: If ``name`` is not a plain entry name.
            EntryNotFoundError: If the entry does not exist.
        """
        entry_path = self._existing_entry(name)
        try:
            entry_path.unlink()
        except OSError as e:
            raise FileAccessError(f"Cannot remove {entry_path}: {e}") from e

        self.store.record_change(name, ChangeKind.DELETE)
        logger.info("Deleted entry %s", name)

    def list_entries(self) -> list[str]:
        """Entry names in no particular order."""
        return self.store.list_tracked_names()

    def history(self, name: Optional[str] = None) -> list[CommitRecord]:
        """Commits newest first, optionally only those touching one entry."""
        if name is not None:
            validate_entry_name(name)
        return self.store.history(name)

    def recipient_id(self) -> str:
        return self.store.recipient_id()
