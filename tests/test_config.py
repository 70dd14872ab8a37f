"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from notectx.config import (
    GRAPH_NAME_ENV,
    ProjectConfig,
    find_project_root,
    load_config,
    save_config,
    set_config_value,
)
from notectx.exceptions import ConfigError


class TestConfig:
    def test_default_config(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv(GRAPH_NAME_ENV, raising=False)
        config = ProjectConfig()
        assert config.traversal.max_depth == 3
        assert config.composer.context_token_share == 0.7
        assert config.graph_name is None

    def test_graph_name_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(GRAPH_NAME_ENV, "team-notes")
        assert ProjectConfig().graph_name == "team-notes"

    def test_save_and_load(self, tmp_path: Path):
        config = ProjectConfig(name="test-project", export_path="graph.json")
        config = set_config_value(config, "traversal.max_depth", 2)
        config = set_config_value(config, "composer.level_weights", {0: 0.7, 1: 0.3})

        save_config(tmp_path, config)
        loaded = load_config(tmp_path)

        assert loaded.name == "test-project"
        assert loaded.export_path == "graph.json"
        assert loaded.traversal.max_depth == 2
        assert loaded.composer.level_weights == {0: 0.7, 1: 0.3}

    def test_load_missing_config(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config.name == tmp_path.name

    def test_load_invalid_json(self, tmp_path: Path):
        (tmp_path / ".notectx").mkdir()
        (tmp_path / ".notectx" / "config.json").write_text("{broken")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_load_invalid_values(self, tmp_path: Path):
        (tmp_path / ".notectx").mkdir()
        (tmp_path / ".notectx" / "config.json").write_text('{"traversal": {"max_depth": -1}}')
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_find_project_root(self, tmp_path: Path):
        # No .notectx dir - should return None
        assert find_project_root(tmp_path) is None

        (tmp_path / ".notectx").mkdir()
        assert find_project_root(tmp_path) == tmp_path

        # Should find from subdirectory
        sub = tmp_path / "notes" / "archive"
        sub.mkdir(parents=True)
        assert find_project_root(sub) == tmp_path

    def test_set_config_value(self):
        config = ProjectConfig()
        updated = set_config_value(config, "composer.provider", "openai")
        assert updated.composer.provider == "openai"

    def test_set_config_coerces_strings(self):
        updated = set_config_value(ProjectConfig(), "traversal.max_items", "25")
        assert updated.traversal.max_items == 25

    def test_set_config_invalid_key(self):
        config = ProjectConfig()
        with pytest.raises(KeyError):
            set_config_value(config, "nonexistent.key", "value")
        with pytest.raises(KeyError):
            set_config_value(config, "traversal.no_such_option", 1)

    def test_set_config_invalid_value(self):
        with pytest.raises(ConfigError):
            set_config_value(ProjectConfig(), "traversal.max_depth", "deep")

    def test_option_overrides(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv(GRAPH_NAME_ENV, raising=False)
        config = ProjectConfig(graph_name="notes")

        traversal = config.traversal_options(max_depth=1, max_items=None)
        assert traversal.max_depth == 1
        assert traversal.max_items == 50
        assert traversal.graph_name == "notes"

        composer = config.composer_options(max_tokens=2000)
        assert composer.max_tokens == 2000
        assert composer.graph_name == "notes"

    def test_option_overrides_are_validated(self):
        config = ProjectConfig()
        with pytest.raises(ConfigError):
            config.traversal_options(max_items=-2)
        with pytest.raises(ConfigError):
            config.traversal_options(max_depth=-1)
        with pytest.raises(ConfigError):
            config.composer_options(context_token_share=2.0)
