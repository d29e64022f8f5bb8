"""Packager settings."""
from .settings import (
    PackagerSettings,
    ProfileSettings,
    ExportSettings,
    StorageSettings,
    BundleSettings,
    PackageSettings,
    SettingsError,
    DEFAULT_BUNDLE,
    load_settings,
)

__all__ = [
    "PackagerSettings",
    "ProfileSettings",
    "ExportSettings",
    "StorageSettings",
    "BundleSettings",
    "PackageSettings",
    "SettingsError",
    "DEFAULT_BUNDLE",
    "load_settings",
]
