"""Data models for entries, changes and commit history."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from .errors import InvalidEntryNameError

ENTRY_NAME_FORMAT = "%Y%m%d-%H%M%S"
GPG_ID_FILE_NAME = ".gpg_id"


class ChangeKind(Enum):
    """Kind of change recorded by a commit."""
    ADD = "Add"
    EDIT = "Edit"
    DELETE = "Delete"

    def message_for(self, name: str) -> str:
        """Render the commit message for a change to ``name``."""
        return f"{self.value} {name}"


@dataclass(frozen=True)
class Genesis:
    """Parent of the first commit in a fresh repository: none."""

    def parent_args(self) -> list[str]:
        return []


@dataclass(frozen=True)
class Child:
    """Commit on top of an existing tip."""
    parent: str

    def parent_args(self) -> list[str]:
        return ["-p", self.parent]


CommitParent = Union[Genesis, Child]


@dataclass(frozen=True)
class CommitRecord:
    """One commit from the repository history."""
    sha: str
    parents: tuple[str, ...]
    message: str
    timestamp: datetime

    @property
    def is_root(self) -> bool:
        return not self.parents


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def generate_entry_name(moment: datetime) -> str:
    """Generate entry name in format YYYYMMDD-HHMMSS (UTC)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(ENTRY_NAME_FORMAT)


def is_reserved_name(name: str) -> bool:
    return name.startswith(".")


def validate_entry_name(name: str) -> str:
    """Check that a caller-supplied name denotes a single, non-reserved file.

    Returns:
        The name unchanged.

    Raises:
        InvalidEntryNameError: If the name is empty, reserved or a path.
    """
    if not name:
        raise InvalidEntryNameError("Entry name must not be empty")
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in name for sep in separators) or "\0" in name:
        raise InvalidEntryNameError(f"Entry name '{name}' must not contain a path separator")
    if is_reserved_name(name):
        raise InvalidEntryNameError(f"Entry name '{name}' is reserved")
    return name
