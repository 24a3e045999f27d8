"""Configuration module -- exports Settings and the layered loaders."""

from ragengine.config.loader import load_config, load_settings
from ragengine.config.settings import Settings

__all__ = ["Settings", "load_config", "load_settings"]
