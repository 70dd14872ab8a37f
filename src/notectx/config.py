"""Configuration management for notectx."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from notectx.context.models import ComposerOptions, TraversalOptions
from notectx.exceptions import ConfigError

NOTECTX_DIR = ".notectx"
CONFIG_FILE = "config.json"
GRAPH_NAME_ENV = "NOTECTX_GRAPH_NAME"


def _default_graph_name() -> str | None:
    return os.environ.get(GRAPH_NAME_ENV) or None


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    export_path: str = ""  # Default note export for the CLI
    graph_name: str | None = Field(default_factory=_default_graph_name)
    traversal: TraversalOptions = Field(default_factory=TraversalOptions)
    composer: ComposerOptions = Field(default_factory=ComposerOptions)

    @property
    def resolved_graph_name(self) -> str | None:
        return self.graph_name or _default_graph_name()

    def traversal_options(self, **overrides: Any) -> TraversalOptions:
        """Traversal options with the graph name and any overrides applied.

        Overrides are validated like file values; out-of-range ones raise
        ``ConfigError``.
        """
        values = self.traversal.model_dump()
        values["graph_name"] = self.traversal.graph_name or self.resolved_graph_name
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return TraversalOptions.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid traversal options: {e}") from e

    def composer_options(self, **overrides: Any) -> ComposerOptions:
        values = self.composer.model_dump()
        values["graph_name"] = self.composer.graph_name or self.resolved_graph_name
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return ComposerOptions.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid composer options: {e}") from e


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .notectx directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / NOTECTX_DIR).is_dir():
            return current
        current = current.parent
    if (current / NOTECTX_DIR).is_dir():
        return current
    return None


def get_notectx_dir(root: Path) -> Path:
    return root / NOTECTX_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .notectx/config.json."""
    config_path = get_notectx_dir(root) / CONFIG_FILE
    if not config_path.exists():
        return ProjectConfig(name=root.name)
    try:
        data = json.loads(config_path.read_text())
        return ProjectConfig(**data)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .notectx/config.json."""
    nc_dir = get_notectx_dir(root)
    nc_dir.mkdir(parents=True, exist_ok=True)
    config_path = nc_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'traversal.max_depth')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
