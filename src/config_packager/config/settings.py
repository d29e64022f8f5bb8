"""Packager settings loaded from packager.yaml.

Example:

```yaml
profile:
  machine_name: mysite
  name: "My site"
  add: false

export:
  folder: export
  method: archive

storage:
  active: config/active

bundles:
  editorial:
    name: Editorial

packages:
  article:
    name: Article
    description: Article content type and its fields
    bundle: editorial
    dependencies: [media]
    config:
      - node.type.article
      - field.*.article.*
  media:
    name: Media
```
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

SETTINGS_ENV = "CONFIG_PACKAGER_SETTINGS"
DEFAULT_BUNDLE = "default"


class SettingsError(Exception):
    """Error loading or validating packager settings."""
    pass


class ProfileSettings(BaseModel):
    """Install profile wrapping a full-site export."""

    model_config = ConfigDict(extra="forbid")

    machine_name: str = "config_packager"
    name: str = "Configuration profile"
    description: str = ""
    add: bool = False


class ExportSettings(BaseModel):
    """Where and how packages are generated."""

    model_config = ConfigDict(extra="forbid")

    folder: Path = Path("export")
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    method: str = "archive"


class StorageSettings(BaseModel):
    """Location of the active configuration.

    Packaged configuration is read from the export folder unless
    `extension` points elsewhere.
    """

    model_config = ConfigDict(extra="forbid")

    active: Path = Path("config") / "active"
    extension: Optional[Path] = None


class BundleSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    profile_name: Optional[str] = None


class PackageSettings(BaseModel):
    """Declared package: membership patterns and explicit dependencies."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: str = ""
    bundle: Optional[str] = None
    dependencies: list[str] = Field(default_factory=list)
    config: list[str] = Field(default_factory=list)
    excluded: bool = False


class PackagerSettings(BaseModel):
    """Complete packager configuration."""

    model_config = ConfigDict(extra="forbid")

    profile: ProfileSettings = Field(default_factory=ProfileSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    bundles: dict[str, BundleSettings] = Field(default_factory=dict)
    packages: dict[str, PackageSettings] = Field(default_factory=dict)

    # Directory relative paths are resolved against
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    @model_validator(mode="after")
    def _check_references(self) -> "PackagerSettings":
        if DEFAULT_BUNDLE in self.bundles:
            raise ValueError(f"'{DEFAULT_BUNDLE}' is reserved for the default bundle")
        for machine_name, package in self.packages.items():
            if package.bundle and package.bundle != DEFAULT_BUNDLE \
                    and package.bundle not in self.bundles:
                raise ValueError(
                    f"Package '{machine_name}' references unknown bundle: {package.bundle}"
                )
        return self

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the settings directory."""
        path = Path(path).expanduser()
        return path if path.is_absolute() else self.base_dir / path

    @property
    def active_dir(self) -> Path:
        return self.resolve(self.storage.active)

    @property
    def export_dir(self) -> Path:
        return self.resolve(self.export.folder)

    @property
    def extension_dir(self) -> Path:
        if self.storage.extension is None:
            return self.export_dir
        return self.resolve(self.storage.extension)

    @property
    def temp_dir(self) -> Path:
        return self.resolve(self.export.temp_dir)


def find_settings_file() -> Optional[Path]:
    """Find packager.yaml in the usual places."""
    env_path = os.environ.get(SETTINGS_ENV)
    if env_path:
        return Path(env_path)

    search_paths = [
        Path.cwd() / "packager.yaml",
        Path.cwd() / "config" / "packager.yaml",
        Path.home() / ".config" / "config-packager" / "packager.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def load_settings(path: Optional[Path] = None) -> PackagerSettings:
    """
    Load settings from YAML.

    Search order:
    1. path (if provided)
    2. $CONFIG_PACKAGER_SETTINGS
    3. ./packager.yaml, ./config/packager.yaml, ~/.config/config-packager/packager.yaml

    Falls back to defaults rooted at the current directory when no file
    is found.

    Raises:
        SettingsError: If the file is missing, unreadable or invalid
    """
    settings_path = Path(path) if path else find_settings_file()

    if settings_path is None:
        logger.info("No packager.yaml found, using default settings")
        return PackagerSettings()

    if not settings_path.exists():
        raise SettingsError(f"Settings file not found: {settings_path}")

    try:
        data = yaml.safe_load(settings_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f"Failed to read {settings_path}: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"{settings_path} must contain a mapping")

    try:
        settings = PackagerSettings(**data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {settings_path}:\n{e}") from e
    except TypeError as e:
        raise SettingsError(f"Invalid settings in {settings_path}: {e}") from e

    settings.base_dir = settings_path.resolve().parent
    logger.debug(f"Loaded settings from {settings_path}")
    return settings
