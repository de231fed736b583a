"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from deary.config import (
    GPG_OPTIONS,
    REPO_DIR,
    DearyConfig,
    dict_to_config,
    find_config_file,
    load_config,
    load_json_config,
)
from deary.errors import ConfigError


class TestFindConfigFile:
    """Tests for find_config_file."""

    def test_finds_toml_first(self, temp_dir):
        (temp_dir / "deary.toml").write_text("")
        (temp_dir / "deary.json").write_text("{}")

        assert find_config_file([temp_dir]).name == "deary.toml"

    def test_finds_dotfile_config(self, temp_dir):
        (temp_dir / ".deary.json").write_text("{}")

        assert find_config_file([temp_dir]).name == ".deary.json"

    def test_earlier_directory_wins(self, temp_dir):
        first = temp_dir / "first"
        second = temp_dir / "second"
        first.mkdir()
        second.mkdir()
        (first / ".deary.toml").write_text("")
        (second / "deary.toml").write_text("")

        assert find_config_file([first, second]) == first / ".deary.toml"

    def test_returns_none_if_no_config(self, temp_dir):
        assert find_config_file([temp_dir]) is None


class TestDictToConfig:
    """Tests for dict_to_config."""

    def test_defaults(self):
        config = dict_to_config({})

        assert config.editor is None
        assert config.gpg_binary == "gpg"
        assert config.gpg_options == GPG_OPTIONS
        assert config.get_author_config() == {"user.name": "noname", "user.email": "noemail"}

    def test_default_repo_path_ignores_home(self, temp_dir, monkeypatch):
        monkeypatch.setenv("HOME", str(temp_dir))

        assert DearyConfig().repo_path == Path(REPO_DIR)
        assert dict_to_config({}).repo_path == Path(REPO_DIR)

    def test_all_sections(self):
        config = dict_to_config({
            "repository": {"path": "/srv/diary"},
            "editor": {"command": "nano"},
            "gpg": {"binary": "gpg2", "options": ["--trust-model", "always"]},
            "git": {"binary": "/usr/bin/git", "author_name": "me", "author_email": "me@host"},
            "staging": {"dir": "/tmp/plain"},
            "locking": {"timeout": 3},
        })

        assert config.repo_path == Path("/srv/diary")
        assert config.editor == "nano"
        assert config.gpg_binary == "gpg2"
        assert config.gpg_options == GPG_OPTIONS + ["--trust-model", "always"]
        assert config.git_binary == "/usr/bin/git"
        assert config.get_author_config() == {"user.name": "me", "user.email": "me@host"}
        assert config.get_temp_dir() == Path("/tmp/plain")
        assert config.lock_timeout == 3.0

    def test_editor_as_string(self):
        assert dict_to_config({"editor": "code --wait"}).editor == "code --wait"

    def test_overrides_base(self):
        base = DearyConfig(repo_path=Path("/home/me/.deary"), editor="vi")
        config = dict_to_config({"gpg": {"binary": "gpg2"}}, base)

        assert config.repo_path == Path("/home/me/.deary")
        assert config.editor == "vi"
        assert config.gpg_binary == "gpg2"


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_file_uses_defaults(self):
        assert load_config(None).gpg_binary == "gpg"

    def test_toml(self, temp_dir):
        path = temp_dir / "deary.toml"
        path.write_text('[editor]\ncommand = "nano"\n\n[git]\nauthor_name = "me"\n')

        config = load_config(path)

        assert config.editor == "nano"
        assert config.author_name == "me"

    def test_json(self, temp_dir):
        path = temp_dir / "deary.json"
        path.write_text(json.dumps({"repository": {"path": str(temp_dir / "diary")}}))

        assert load_json_config(path) == {"repository": {"path": str(temp_dir / "diary")}}
        assert load_config(path).repo_path == temp_dir / "diary"

    def test_unsupported_suffix(self, temp_dir):
        path = temp_dir / "deary.yaml"
        path.write_text("")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_malformed_json(self, temp_dir):
        path = temp_dir / "deary.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_malformed_toml(self, temp_dir):
        path = temp_dir / "deary.toml"
        path.write_text("[editor\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError):
            load_config(temp_dir / "absent.toml")


class TestTempDir:
    """Tests for DearyConfig.get_temp_dir."""

    def test_explicit(self, temp_dir):
        assert DearyConfig(temp_dir=temp_dir).get_temp_dir() == temp_dir

    def test_default_exists(self):
        assert DearyConfig().get_temp_dir().is_dir()
