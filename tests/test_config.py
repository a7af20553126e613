"""
Tests for micloud.config.loader module.

Tests configuration loading including:
- Built-in defaults
- User and explicit layers with deep merge
- ${VAR} expansion and service token injection
- Error handling for missing, empty and invalid files
"""

from __future__ import annotations

from pathlib import Path

import pytest

from micloud.config import DEFAULT_CONFIG, load_effective_config
from micloud.config.loader import _deep_merge_dicts, _expand_env
from micloud.exceptions import ConfigError


class TestDeepMerge:
    """Tests for the dictionary merge rules."""

    def test_nested_dicts_merge(self):
        """Test that nested dicts are merged key by key."""
        base = {"http": {"timeout": 30, "headers": {"DNT": "1"}}}
        overlay = {"http": {"headers": {"Origin": "x"}}}
        assert _deep_merge_dicts(base, overlay) == {
            "http": {"timeout": 30, "headers": {"DNT": "1", "Origin": "x"}}
        }

    def test_lists_replace(self):
        """Test that lists are replaced, not concatenated."""
        assert _deep_merge_dicts({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}

    def test_inputs_not_mutated(self):
        """Test that neither input is modified."""
        base = {"a": {"b": 1}}
        overlay = {"a": {"c": 2}}
        _deep_merge_dicts(base, overlay)
        assert base == {"a": {"b": 1}}
        assert overlay == {"a": {"c": 2}}


class TestLoadEffectiveConfig:
    """Tests for the layered loader."""

    def test_defaults_only(self):
        """Test that defaults load when no file is present."""
        cfg = load_effective_config()
        assert cfg["api"]["base_url"] == "https://i.mi.com"
        assert cfg["api"]["endpoints"] == DEFAULT_CONFIG["api"]["endpoints"]
        assert cfg["http"]["timeout"] == 30
        assert cfg["upload"]["parent_id"] == "0"
        assert cfg["auth"]["service_token"] == ""

    def test_defaults_not_mutated(self, create_yaml_file):
        """Test that loading never changes DEFAULT_CONFIG."""
        path = create_yaml_file("c.yaml", {"http": {"headers": {"X-Test": "1"}}})
        load_effective_config(path)
        assert "X-Test" not in DEFAULT_CONFIG["http"]["headers"]

    def test_explicit_overrides(self, create_yaml_file):
        """Test that an explicit file overrides defaults and keeps siblings."""
        path = create_yaml_file(
            "c.yaml",
            {"auth": {"service_token": "tok"}, "http": {"timeout": 5}},
        )
        cfg = load_effective_config(path)
        assert cfg["auth"]["service_token"] == "tok"
        assert cfg["http"]["timeout"] == 5
        assert cfg["http"]["block_timeout"] == 300
        assert cfg["http"]["headers"]["Origin"] == "https://i.mi.com"

    def test_user_layer_then_explicit(self, create_yaml_file, monkeypatch):
        """Test that the explicit file wins over the user file."""
        user = create_yaml_file(
            "user.yaml",
            {"auth": {"service_token": "user-tok", "cookies": {"userId": "42"}}},
        )
        explicit = create_yaml_file("c.yaml", {"auth": {"service_token": "cli-tok"}})
        monkeypatch.setenv("MICLOUD_CONFIG", str(user))

        cfg = load_effective_config(explicit)
        assert cfg["auth"]["service_token"] == "cli-tok"
        assert cfg["auth"]["cookies"] == {"userId": "42"}

    def test_env_expansion(self, create_yaml_file, monkeypatch):
        """Test that ${VAR} values are read from the environment."""
        monkeypatch.setenv("MY_TOKEN", "from-env")
        path = create_yaml_file("c.yaml", {"auth": {"service_token": "${MY_TOKEN}"}})
        assert load_effective_config(path)["auth"]["service_token"] == "from-env"

    def test_unset_env_expands_empty(self):
        """Test that an unset variable expands to an empty string."""
        assert _expand_env({"a": ["${MICLOUD_TEST_UNSET_VAR}"]}) == {"a": [""]}

    def test_service_token_env_fallback(self, monkeypatch):
        """Test that MICLOUD_SERVICE_TOKEN fills an empty token."""
        monkeypatch.setenv("MICLOUD_SERVICE_TOKEN", "env-tok")
        assert load_effective_config()["auth"]["service_token"] == "env-tok"

    def test_dotenv_token(self, tmp_test_dir: Path, monkeypatch):
        """Test that a .env file in the working directory supplies the token."""
        # Record the variable as unset so the value loaded from .env is undone.
        monkeypatch.setenv("MICLOUD_SERVICE_TOKEN", "placeholder")
        monkeypatch.delenv("MICLOUD_SERVICE_TOKEN")
        (tmp_test_dir / ".env").write_text("MICLOUD_SERVICE_TOKEN=dotenv-tok\n", encoding="utf-8")

        assert load_effective_config()["auth"]["service_token"] == "dotenv-tok"

    def test_environment_wins_over_dotenv(self, tmp_test_dir: Path, monkeypatch):
        """Test that variables already set are not overridden by .env."""
        monkeypatch.setenv("MICLOUD_SERVICE_TOKEN", "shell-tok")
        (tmp_test_dir / ".env").write_text("MICLOUD_SERVICE_TOKEN=dotenv-tok\n", encoding="utf-8")

        assert load_effective_config()["auth"]["service_token"] == "shell-tok"

    def test_explicit_file_missing(self, tmp_test_dir: Path):
        """Test that a missing explicit file is an error."""
        with pytest.raises(ConfigError, match="file not found"):
            load_effective_config(tmp_test_dir / "nope.yaml")

    def test_empty_file(self, tmp_test_dir: Path):
        """Test that an empty file is an error."""
        path = tmp_test_dir / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError, match="empty"):
            load_effective_config(path)

    def test_invalid_yaml(self, tmp_test_dir: Path):
        """Test that a parse error is chained from the YAML error."""
        path = tmp_test_dir / "bad.yaml"
        path.write_text("auth: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Error parsing YAML") as excinfo:
            load_effective_config(path)
        assert excinfo.value.__cause__ is not None

    def test_non_mapping_top_level(self, tmp_test_dir: Path):
        """Test that a list at the top level is rejected."""
        path = tmp_test_dir / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_effective_config(path)

    @pytest.mark.parametrize("value", [0, -1, "fast", True])
    def test_invalid_timeout(self, create_yaml_file, value):
        """Test that timeouts must be positive numbers."""
        path = create_yaml_file("c.yaml", {"http": {"timeout": value}})
        with pytest.raises(ConfigError, match="http.timeout"):
            load_effective_config(path)

    def test_empty_base_url(self, create_yaml_file):
        """Test that the base URL cannot be blanked out."""
        path = create_yaml_file("c.yaml", {"api": {"base_url": ""}})
        with pytest.raises(ConfigError, match="base_url"):
            load_effective_config(path)

    def test_cookies_must_be_mapping(self, create_yaml_file):
        """Test that cookies given as a list are rejected."""
        path = create_yaml_file("c.yaml", {"auth": {"cookies": ["a=b"]}})
        with pytest.raises(ConfigError, match="cookies"):
            load_effective_config(path)
