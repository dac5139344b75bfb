"""Configuration module for artsync."""

from .loader import ConfigLoader, load_config
from .models import ArtSyncConfig, RepoSettings, SyncSettings

__all__ = [
    "ArtSyncConfig",
    "ConfigLoader",
    "RepoSettings",
    "SyncSettings",
    "load_config",
]
