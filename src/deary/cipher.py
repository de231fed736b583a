"""Encryption through the external gpg executable."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .config import GPG_OPTIONS
from .errors import ToolFailedError, ToolNotFoundError

logger = logging.getLogger(__name__)


class CipherTool(Protocol):
    """Turns plaintext files into ciphertext files for a recipient, and back."""

    def ensure_available(self) -> None:
        pass

    def decrypt(self, path: Path) -> bytes:
        pass

    def encrypt(self, plain_path: Path, cipher_path: Path, recipient_id: str) -> None:
        pass


class GpgCipher(CipherTool):
    """CipherTool backed by the gpg command-line tool.

    gpg's stderr is left attached to the terminal so passphrase prompts and
    diagnostics reach the user.
    """

    def __init__(self, binary: str = "gpg", options: Optional[Sequence[str]] = None):
        self.binary = binary
        self.options = list(options) if options is not None else list(GPG_OPTIONS)
        self._resolved: Optional[str] = None

    def ensure_available(self) -> None:
        self._executable()

    def _executable(self) -> str:
        if self._resolved is None:
            found = shutil.which(self.binary)
            if found is None:
                raise ToolNotFoundError(f"{self.binary} executable not found in PATH")
            self._resolved = found
        return self._resolved

    def _run(self, args: list[str], capture: bool) -> subprocess.CompletedProcess:
        command = [self._executable(), *self.options, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(
                command,
                stdout=subprocess.PIPE if capture else None,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(f"{self.binary} executable not found: {e}") from e

    def decrypt(self, path: Path) -> bytes:
        """Decrypt ``path`` and return the plaintext bytes.

        Raises:
            ToolNotFoundError: If gpg cannot be located
            ToolFailedError: If gpg exits non-zero
        """
        result = self._run(["--decrypt", str(path)], capture=True)
        if result.returncode != 0:
            raise ToolFailedError(self.binary, result.returncode, f"cannot decrypt {path.name}")
        return result.stdout

    def encrypt(self, plain_path: Path, cipher_path: Path, recipient_id: str) -> None:
        """Encrypt ``plain_path`` into ``cipher_path`` for ``recipient_id``.

        On failure ``cipher_path`` may hold partial output and must be
        discarded by the caller.

        Raises:
            ToolNotFoundError: If gpg cannot be located
            ToolFailedError: If gpg exits non-zero
        """
        result = self._run(
            [
                "--encrypt",
                "--recipient",
                recipient_id.strip(),
                "--output",
                str(cipher_path),
                str(plain_path),
            ],
            capture=False,
        )
        if result.returncode != 0:
            raise ToolFailedError(self.binary, result.returncode, "encryption failed")
