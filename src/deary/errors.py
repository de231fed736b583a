"""Exception hierarchy for deary operations."""

from __future__ import annotations

from typing import Optional


class DearyError(Exception):
    """Base exception for deary operations."""
    pass


class AlreadyExistsError(DearyError):
    """Raised when a repository or entry would be overwritten."""
    pass


class NotFoundError(DearyError):
    """Raised when a repository, entry or metadata file is missing."""
    pass


class RepositoryNotFoundError(NotFoundError):
    pass


class EntryNotFoundError(NotFoundError):
    pass


class RecipientNotFoundError(NotFoundError):
    """Raised when the .gpg_id metadata file is missing or unreadable."""
    pass


class ToolNotFoundError(DearyError):
    """Raised when an external executable cannot be located."""
    pass


class ToolFailedError(DearyError):
    """Raised when an external process exits with a non-zero status."""

    def __init__(self, tool: str, status: int, detail: Optional[str] = None):
        self.tool = tool
        self.status = status
        self.detail = detail
        message = f"{tool} exited with status {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class EditorFailedError(ToolFailedError):
    pass


class StoreError(DearyError):
    """Raised when a version-control primitive fails."""
    pass


class CorruptRepositoryError(StoreError):
    pass


class FileAccessError(DearyError):
    """Filesystem errors not otherwise classified."""
    pass


class InvalidEntryNameError(DearyError, ValueError):
    pass


class ConfigError(DearyError, ValueError):
    pass
