"""Scoped temporary files for plaintext being edited."""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from .errors import FileAccessError


@contextmanager
def scratch_file(
    directory: Path, contents: bytes = b"", prefix: str = "deary-"
) -> Generator[Path, None, None]:
    """Create a private temporary file and remove it when the block exits.

    The file is created with mode 0600 and optionally pre-filled. Removal
    happens on every exit path, including exceptions raised inside the block.

    Args:
        directory: Where to create the file
        contents: Initial bytes to write
        prefix: File name prefix

    Yields:
        Path of the temporary file

    Raises:
        FileAccessError: If the file cannot be created or written
    """
    try:
        fd, name = tempfile.mkstemp(prefix=prefix, dir=directory)
    except OSError as e:
        raise FileAccessError(f"Cannot create temporary file in {directory}: {e}") from e

    path = Path(name)
    try:
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(contents)
        except OSError as e:
            raise FileAccessError(f"Cannot write temporary file {path}: {e}") from e
        yield path
    finally:
        path.unlink(missing_ok=True)
