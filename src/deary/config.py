"""Configuration loading for deary.

Configuration can come from a .toml or .json file; anything the file leaves
out keeps the defaults below. Environment lookups (HOME, EDITOR) are the
command-line layer's job, never this module's.
"""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .errors import ConfigError

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python <3.11

REPO_DIR = ".deary"
SHARED_MEMORY_DIR = Path("/dev/shm")

# Quiet, overwrite outputs, leave plaintext size unhinted, encrypt only to the recipient
GPG_OPTIONS = [
    "--quiet",
    "--yes",
    "--compress-algo=none",
    "--no-encrypt-to",
]

CONFIG_FILE_NAMES = [
    "deary.toml",
    "deary.json",
    ".deary.toml",
    ".deary.json",
]


@dataclass
class DearyConfig:
    """Configuration for one journal repository."""

    # Relative to the process working directory; the CLI supplies ~/.deary
    repo_path: Path = field(default_factory=lambda: Path(REPO_DIR))

    # None means fall back to vim on PATH
    editor: Optional[str] = None

    gpg_binary: str = "gpg"
    gpg_options: list[str] = field(default_factory=lambda: list(GPG_OPTIONS))

    git_binary: str = "git"
    author_name: str = "noname"
    author_email: str = "noemail"

    # Where plaintext lives while the editor is open
    temp_dir: Optional[Path] = None

    lock_timeout: float = 10.0

    def get_author_config(self) -> dict[str, str]:
        """Git config keys applied when a repository is initialized."""
        return {
            "user.name": self.author_name,
            "user.email": self.author_email,
        }

    def get_temp_dir(self) -> Path:
        """Directory for scratch plaintext, preferring memory-backed storage."""
        if self.temp_dir is not None:
            return self.temp_dir
        if SHARED_MEMORY_DIR.is_dir():
            return SHARED_MEMORY_DIR
        return Path(tempfile.gettempdir())


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def dict_to_config(data: dict[str, Any], base: Optional[DearyConfig] = None) -> DearyConfig:
    """Convert dictionary to DearyConfig, overriding values of ``base``."""
    config = base if base is not None else DearyConfig()

    if "repository" in data:
        repo = data["repository"]
        if "path" in repo:
            config.repo_path = Path(repo["path"]).expanduser()

    if "editor" in data:
        editor = data["editor"]
        if isinstance(editor, str):
            config.editor = editor
        elif "command" in editor:
            config.editor = editor["command"]

    if "gpg" in data:
        gpg = data["gpg"]
        if "binary" in gpg:
            config.gpg_binary = gpg["binary"]
        if "options" in gpg:
            # Extra options are appended; the defaults are not negotiable
            config.gpg_options = list(GPG_OPTIONS) + list(gpg["options"])

    if "git" in data:
        git = data["git"]
        if "binary" in git:
            config.git_binary = git["binary"]
        if "author_name" in git:
            config.author_name = git["author_name"]
        if "author_email" in git:
            config.author_email = git["author_email"]

    if "staging" in data:
        staging = data["staging"]
        if "dir" in staging:
            config.temp_dir = Path(staging["dir"]).expanduser()

    if "locking" in data:
        locking = data["locking"]
        if "timeout" in locking:
            config.lock_timeout = float(locking["timeout"])

    return config


def find_config_file(search_dirs: Iterable[Path]) -> Optional[Path]:
    """Find the first configuration file in ``search_dirs``.

    Within a directory the order is:
    1. deary.toml
    2. deary.json
    3. .deary.toml
    4. .deary.json
    """
    for directory in search_dirs:
        for name in CONFIG_FILE_NAMES:
            path = directory / name
            if path.is_file():
                return path

    return None


def load_config(config_path: Optional[Path] = None, base: Optional[DearyConfig] = None) -> DearyConfig:
    """Load configuration.

    Args:
        config_path: Path to a .toml or .json file, or None for defaults
        base: Config whose values the file overrides

    Returns:
        DearyConfig instance

    Raises:
        ConfigError: If the file cannot be read or has an unsupported type.
    """
    if config_path is None:
        return base if base is not None else DearyConfig()

    suffix = config_path.suffix.lower()
    loaders = {
        ".toml": load_toml_config,
        ".json": load_json_config,
    }
    if suffix not in loaders:
        raise ConfigError(f"Unsupported config file type: {suffix}")

    # TOMLDecodeError and JSONDecodeError are both ValueErrors
    try:
        config_dict = loaders[suffix](config_path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot load config from {config_path}: {e}") from e

    return dict_to_config(config_dict, base)
