"""Centralized host-side configuration for topobox."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from topobox.models.host_config import HostConfigModel
from topobox.paths import HostPaths, ProjectPaths

logger = logging.getLogger(__name__)


class HostConfig:
    """Manages host-side configuration from ~/.config/topobox/config.yml."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or HostPaths.config_file()
        self._model: Optional[HostConfigModel] = None
        self._config = self._load()

    def _load(self) -> dict:
        """Read and validate the config file, falling back to defaults."""
        self._model = HostConfigModel()
        if not self.config_path.exists():
            return self._model.model_dump()

        try:
            raw = yaml.safe_load(self.config_path.read_text()) or {}
            self._model = HostConfigModel.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Config validation errors in {self.config_path}, using defaults: {e}")
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {self.config_path}: {e}")
        return self._model.model_dump()

    @property
    def model(self) -> HostConfigModel:
        return self._model

    @property
    def backend(self) -> str:
        """Hypervisor backend; TOPOBOX_BACKEND overrides the file."""
        return os.getenv("TOPOBOX_BACKEND") or self._model.backend

    @property
    def vagrant_binary(self) -> str:
        return os.getenv("TOPOBOX_VAGRANT") or self._model.vagrant.binary

    def vagrant_workdir(self, project_dir: Path) -> Path:
        """Directory holding the rendered Vagrantfile for a project."""
        configured = self._model.vagrant.workdir
        if configured:
            return Path(configured).expanduser()
        return ProjectPaths.vagrant_dir(project_dir)

    def get(self, *keys, default=None) -> Any:
        """Get nested config value.

        Example: config.get("timeouts", "command")
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value


# Singleton instance
_config: Optional[HostConfig] = None


def get_config() -> HostConfig:
    """Get the global host configuration."""
    global _config
    if _config is None:
        _config = HostConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (used after HOME changes)."""
    global _config
    _config = None
