"""Configuration storages for active and packaged configuration.

This package provides:
- FileStorage: Active configuration, one YAML document per item
- ExtensionStorage: Packaged configuration read from an export tree
- GitManager: Versioned exports for the vcs generation method

Directory structure managed:
    <active dir>/
    └── <item name>.yml
    <export folder>/
    └── <package>/
        ├── <package>.info.yml
        └── config/install/<item name>.yml
"""

from .store import (
    ConfigStorage,
    FileStorage,
    ExtensionStorage,
    StorageError,
    canonical_yaml,
    compute_checksum,
    CONFIG_EXTENSION,
    INSTALL_DIR,
)
from .git_manager import GitManager, CommitInfo, GitError

__all__ = [
    "ConfigStorage",
    "FileStorage",
    "ExtensionStorage",
    "StorageError",
    "canonical_yaml",
    "compute_checksum",
    "CONFIG_EXTENSION",
    "INSTALL_DIR",
    "GitManager",
    "CommitInfo",
    "GitError",
]
