"""Interactive editing through an external editor."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from .errors import EditorFailedError, ToolNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "vim"


class EditorRunner(Protocol):
    """Lets the user edit a plaintext file in place."""

    def ensure_available(self) -> None:
        pass

    def edit(self, path: Path) -> None:
        pass


class ExternalEditor(EditorRunner):
    """EditorRunner that launches an editor process on the user's terminal.

    ``command`` may carry arguments (``"code --wait"``). When it is None the
    default editor is looked up on PATH.
    """

    def __init__(self, command: Optional[str] = None):
        self.command = command

    def ensure_available(self) -> None:
        self._argv()

    def _argv(self) -> list[str]:
        if self.command:
            argv = shlex.split(self.command)
            if argv and shutil.which(argv[0]) is not None:
                return argv
            raise ToolNotFoundError(f"Editor '{self.command}' not found in PATH")

        found = shutil.which(DEFAULT_EDITOR)
        if found is None:
            raise ToolNotFoundError(f"EDITOR is not set, and {DEFAULT_EDITOR} not found in PATH")
        return [found]

    def edit(self, path: Path) -> None:
        """Block until the editor exits.

        Raises:
            ToolNotFoundError: If the editor cannot be located
            EditorFailedError: If the editor exits non-zero
        """
        argv = self._argv()
        logger.debug("Launching editor %s", argv[0])
        try:
            # No capturing: the editor owns the terminal until it exits
            status = subprocess.call([*argv, str(path)])
        except FileNotFoundError as e:
            raise ToolNotFoundError(f"Editor '{argv[0]}' cannot be started: {e}") from e
        if status != 0:
            raise EditorFailedError(argv[0], status)
