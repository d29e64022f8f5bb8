"""Builds the ConfigCollection for one operation.

Each active item is described by its type, label and module
dependencies, and attributed to the package that ships it (or to the
first declared package whose patterns match it).
"""
import logging
from fnmatch import fnmatchcase
from typing import Any, Optional

from ..config.settings import DEFAULT_BUNDLE, PackagerSettings
from ..config_store.store import ConfigStorage, ExtensionStorage, StorageError
from .schema import ConfigCollection, ConfigItem

logger = logging.getLogger(__name__)


def item_type(name: str) -> str:
    """Type of an item: the first dotted segment of its name."""
    return name.split(".", 1)[0]


def item_label(name: str, document: Optional[dict[str, Any]]) -> str:
    if document:
        for key in ("label", "name"):
            value = document.get(key)
            if isinstance(value, str) and value:
                return value
    return name


def item_dependencies(document: Optional[dict[str, Any]]) -> frozenset[str]:
    """
    Module dependencies declared by a document.

    Accepts either `dependencies: {module: [...]}` or a flat
    `dependencies: [...]` list.
    """
    if not document:
        return frozenset()

    dependencies = document.get("dependencies")
    if isinstance(dependencies, dict):
        dependencies = dependencies.get("module", [])
    if not isinstance(dependencies, list):
        return frozenset()
    return frozenset(str(d) for d in dependencies if d)


def packaged_names(settings: PackagerSettings) -> dict[str, str]:
    """Map the on-disk directory name of each declared package to its short name."""
    names = {}
    for short_name, package in settings.packages.items():
        bundle = package.bundle or DEFAULT_BUNDLE
        if bundle == DEFAULT_BUNDLE or short_name.startswith(f"{bundle}_"):
            names[short_name] = short_name
        else:
            names[f"{bundle}_{short_name}"] = short_name
    return names


def match_package(name: str, settings: PackagerSettings) -> Optional[str]:
    """First declared package whose config patterns match an item."""
    for short_name, package in settings.packages.items():
        if any(fnmatchcase(name, pattern) for pattern in package.config):
            return short_name
    return None


def build_collection(
    active: ConfigStorage,
    extension: ExtensionStorage,
    settings: PackagerSettings,
) -> ConfigCollection:
    """
    Build the collection of all active configuration items.

    Args:
        active: Active storage (lists the items)
        extension: Packaged storage (decides item ownership)
        settings: Declared packages and their patterns

    Returns:
        ConfigCollection in active storage order
    """
    declared = packaged_names(settings)
    items = []

    for name in active.list():
        try:
            document = active.read(name)
        except StorageError as e:
            logger.warning(f"Cannot read {name}, listing it without metadata: {e}")
            document = None

        owner = extension.owner(name)
        if owner is not None:
            package = declared.get(owner, owner)
        else:
            package = match_package(name, settings)

        items.append(ConfigItem(
            name=name,
            type=item_type(name),
            label=item_label(name, document),
            package=package,
            dependencies=item_dependencies(document),
        ))

    logger.debug(f"Built collection of {len(items)} configuration items")
    return ConfigCollection(items)
