"""Shared pytest fixtures for deary tests."""

import base64
import shutil
import subprocess
import sys
import tempfile
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from deary.config import DearyConfig
from deary.engine import JournalEngine
from deary.errors import EditorFailedError, ToolFailedError, ToolNotFoundError

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

FAKE_HEADER = b"FAKE-PGP:"


class FakeCipher:
    """Deterministic stand-in for gpg.

    Ciphertext is a header naming the recipient followed by base64 of the
    plaintext, so tests can tell ciphertext from plaintext on disk.
    """

    def __init__(self, fail_encrypt=False, missing=False):
        self.fail_encrypt = fail_encrypt
        self.missing = missing
        self.encrypted = []
        self.decrypted = []

    def ensure_available(self):
        if self.missing:
            raise ToolNotFoundError("fake-gpg executable not found in PATH")

    def encrypt(self, plain_path, cipher_path, recipient_id):
        self.ensure_available()
        if self.fail_encrypt:
            # Leave partial output behind, as a crashing gpg might
            cipher_path.write_bytes(FAKE_HEADER)
            raise ToolFailedError("fake-gpg", 2, "encryption failed")
        plaintext = plain_path.read_bytes()
        cipher_path.write_bytes(
            FAKE_HEADER + recipient_id.strip().encode() + b"\n" + base64.b64encode(plaintext)
        )
        self.encrypted.append((plain_path, cipher_path, recipient_id))

    def decrypt(self, path):
        self.ensure_available()
        data = path.read_bytes()
        if not data.startswith(FAKE_HEADER) or b"\n" not in data:
            raise ToolFailedError("fake-gpg", 2, f"cannot decrypt {path.name}")
        self.decrypted.append(path)
        return base64.b64decode(data.split(b"\n", 1)[1])


class ScriptedEditor:
    """Editor that replaces the file with prepared content."""

    def __init__(self, *contents):
        self.contents = list(contents)
        self.seen = []
        self.paths = []

    def ensure_available(self):
        pass

    def edit(self, path):
        self.paths.append(path)
        self.seen.append(path.read_bytes())
        text = self.contents.pop(0)
        path.write_bytes(text.encode() if isinstance(text, str) else text)


class FailingEditor:
    """Editor that scribbles into the file and then exits non-zero."""

    def __init__(self, status=1):
        self.status = status
        self.paths = []

    def ensure_available(self):
        pass

    def edit(self, path):
        self.paths.append(path)
        path.write_bytes(b"half-written")
        raise EditorFailedError("fake-editor", self.status)


class StepClock:
    """Clock advancing one second per call so generated names never collide."""

    def __init__(self, start=None):
        self.current = start or datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)

    def __call__(self):
        moment = self.current
        self.current += timedelta(seconds=1)
        return moment


@contextmanager
def held_lock(lock_dir):
    """Hold the repository lock in another process for the duration of the block."""
    holder = subprocess.Popen(
        [
            sys.executable,
            "-c",
            "import time, portalocker\n"
            f"lock = portalocker.Lock({str(lock_dir / 'deary.lock')!r}, timeout=1)\n"
            "lock.acquire()\n"
            "print('locked', flush=True)\n"
            "time.sleep(30)\n",
        ],
        stdout=subprocess.PIPE,
        text=True,
    )
    try:
        assert holder.stdout.readline().strip() == "locked"
        yield
    finally:
        holder.kill()
        holder.wait()
        holder.stdout.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def scratch_dir(temp_dir):
    """Directory receiving plaintext scratch files, checked for leaks."""
    path = temp_dir / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def config(temp_dir, scratch_dir):
    """Create a test configuration."""
    return DearyConfig(
        repo_path=temp_dir / "diary",
        temp_dir=scratch_dir,
        lock_timeout=1.0,
    )


@pytest.fixture
def cipher():
    return FakeCipher()


@pytest.fixture
def engine_factory(config, cipher):
    """Factory for engines over a freshly initialized repository.

    Usage:
        def test_example(engine_factory):
            engine = engine_factory(ScriptedEditor("hello"))
    """
    state = {"clock": StepClock()}

    def _create(editor=None, clock=None, cipher_tool=None):
        if "initialized" not in state:
            JournalEngine.initialize(config, "test@example.com")
            state["initialized"] = True
        return JournalEngine(
            config,
            cipher=cipher_tool or cipher,
            editor=editor or ScriptedEditor(),
            clock=clock or state["clock"],
        )

    return _create
