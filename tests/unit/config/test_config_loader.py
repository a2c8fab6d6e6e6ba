"""Unit tests for TOML configuration loader."""

from pathlib import Path

import pytest

from portalsync.config.loader import (
    config_layers,
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_merge_nested_dicts(self) -> None:
        """Nested dictionaries are merged recursively."""
        base = {"queue": {"auto_dispatch": True, "max_history": 200}, "debug": False}
        override = {"queue": {"max_history": 50}}
        result = deep_merge(base, override)
        assert result == {"queue": {"auto_dispatch": True, "max_history": 50}, "debug": False}

    def test_override_replaces_non_dict(self) -> None:
        """Non-dict values in override replace base values."""
        assert deep_merge({"a": {"x": 1}}, {"a": "replaced"}) == {"a": "replaced"}

    def test_base_unmodified(self) -> None:
        """Original base dictionary is not modified."""
        base = {"a": 1}
        deep_merge(base, {"b": 2})
        assert base == {"a": 1}


class TestEnvironmentLookup:
    """Tests for environment and config directory resolution."""

    def test_default_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment defaults to development."""
        monkeypatch.delenv("PORTALSYNC_ENV", raising=False)
        assert get_environment() == "development"

    def test_environment_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """PORTALSYNC_ENV selects the environment."""
        monkeypatch.setenv("PORTALSYNC_ENV", "production")
        assert get_environment() == "production"

    def test_config_dir_from_env(
        self, monkeypatch: pytest.MonkeyPatch, test_config_dir: Path
    ) -> None:
        """PORTALSYNC_CONFIG_DIR overrides the search."""
        monkeypatch.setenv("PORTALSYNC_CONFIG_DIR", str(test_config_dir))
        assert get_config_dir() == test_config_dir

    def test_missing_config_dir_raises(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """A configured directory that does not exist is an error."""
        monkeypatch.setenv("PORTALSYNC_CONFIG_DIR", str(tmp_path / "nope"))
        with pytest.raises(FileNotFoundError):
            get_config_dir()


class TestLoadConfig:
    """Tests for load_toml and load_config."""

    def test_load_toml_missing_file(self, tmp_path: Path) -> None:
        """Loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "missing.toml")

    def test_environment_file_merged_over_default(
        self,
        monkeypatch: pytest.MonkeyPatch,
        test_config_dir: Path,
        mock_toml_files,
    ) -> None:
        """Environment file values win over default.toml."""
        mock_toml_files({
            "default.toml": "[undo]\ndefault_duration_ms = 10000\nmax_actions = 50\n",
            "staging.toml": "[undo]\ndefault_duration_ms = 5000\n",
        })
        monkeypatch.setenv("PORTALSYNC_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("PORTALSYNC_ENV", "staging")

        config = load_config()

        assert config["undo"] == {"default_duration_ms": 5000, "max_actions": 50}

    def test_no_files_gives_empty_config(
        self, monkeypatch: pytest.MonkeyPatch, test_config_dir: Path
    ) -> None:
        """An empty config directory yields an empty dict."""
        monkeypatch.setenv("PORTALSYNC_CONFIG_DIR", str(test_config_dir))
        assert load_config() == {}

    def test_explicit_dir_and_environment(
        self, test_config_dir: Path, mock_toml_files
    ) -> None:
        """Arguments take the place of the environment lookup."""
        mock_toml_files({
            "default.toml": "debug = false\n",
            "production.toml": "debug = true\n",
        })
        assert load_config(test_config_dir, "production") == {"debug": True}
        assert config_layers(test_config_dir, "testing") == [test_config_dir / "default.toml"]

    def test_relative_queue_file_resolved_against_config_dir(
        self, test_config_dir: Path, mock_toml_files
    ) -> None:
        """A relative queue file lands next to the config files."""
        mock_toml_files({
            "default.toml": '[queue]\npersistence = "file"\nfile_path = "state/queue.json"\n',
        })
        config = load_config(test_config_dir, "development")
        assert config["queue"]["file_path"] == str(test_config_dir / "state" / "queue.json")

    def test_absolute_queue_file_kept(self, test_config_dir: Path, mock_toml_files) -> None:
        """Absolute queue file paths are left alone."""
        mock_toml_files({
            "default.toml": '[queue]\nfile_path = "/var/lib/portalsync/queue.json"\n',
        })
        config = load_config(test_config_dir, "development")
        assert config["queue"]["file_path"] == "/var/lib/portalsync/queue.json"
