"""
Storage Layer.

This package handles all local persistence: the synchronization manifest and
the configuration file.
"""

from .config_manager import ConfigManager
from .manifest_store import ManifestStore

__all__ = ["ConfigManager", "ManifestStore"]
