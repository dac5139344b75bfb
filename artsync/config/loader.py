"""Configuration file loader."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ArtSyncConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Load artsync configuration."""

    CONFIG_FILENAME = "artsync.yaml"
    USER_CONFIG_DIR = Path.home() / ".artsync"

    def __init__(self, project_path: Path | None = None):
        """Initialize config loader.

        Args:
            project_path: Project directory path. If None, uses current directory.
        """
        self._project_path = project_path or Path.cwd()

    def get_config_path(self) -> Path | None:
        """Find config file (project-level first, then user-level).

        Returns:
            Path to config file if found, None otherwise.
        """
        project_config = self._project_path / self.CONFIG_FILENAME
        if project_config.exists():
            return project_config

        user_config = self.USER_CONFIG_DIR / self.CONFIG_FILENAME
        if user_config.exists():
            return user_config

        return None

    def load(self) -> ArtSyncConfig:
        """Load configuration, returning defaults if no config exists."""
        config_path = self.get_config_path()
        if config_path is None:
            logger.debug("No config file found, using defaults")
            return self._default_config()

        return self.load_file(config_path)

    def load_file(self, config_path: Path) -> ArtSyncConfig:
        """Load a specific config file, falling back to defaults if it is invalid."""
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            logger.info(f"Loaded config from: {config_path}")
            return ArtSyncConfig.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            return self._default_config()

    def _default_config(self) -> ArtSyncConfig:
        """Defaults with the repository rooted at the project path."""
        config = ArtSyncConfig()
        config.repo.path = str(self._project_path)
        return config


def load_config(project_path: Path | str | None = None) -> ArtSyncConfig:
    """Load configuration from project or user directory.

    Convenience function that creates a ConfigLoader and loads config.

    Args:
        project_path: Project directory path. If None, uses current directory.

    Returns:
        ArtSyncConfig with loaded or default values.
    """
    path = Path(project_path) if project_path else None
    return ConfigLoader(path).load()
