"""Configuration storages for active and packaged configuration.

Handles:
- Reading/writing YAML configuration documents
- Canonical serialization and checksums
- Locating packaged documents inside an export tree

Directory structure read by ExtensionStorage:
    <export folder>/
    ├── <package>/
    │   ├── <package>.info.yml
    │   └── config/
    │       └── install/
    │           └── <item name>.yml
    └── ...
"""
from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import yaml

logger = logging.getLogger(__name__)

CONFIG_EXTENSION = ".yml"
INSTALL_DIR = Path("config") / "install"


class StorageError(Exception):
    """Exception raised when a document cannot be read or written."""
    pass


def canonical_yaml(document: Optional[dict[str, Any]]) -> str:
    """Serialize a document with stable key ordering.

    Absent and empty documents serialize to the empty string.
    """
    if not document:
        return ""
    return yaml.safe_dump(
        document,
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
    )


def compute_checksum(document: Optional[dict[str, Any]]) -> str:
    """Checksum of a document's canonical form."""
    digest = hashlib.sha256(canonical_yaml(document).encode()).hexdigest()
    return f"sha256:{digest[:16]}"


def _load_document(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise StorageError(f"Failed to read {path.name}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StorageError(f"{path.name} does not contain a mapping")
    return data


class ConfigStorage(Protocol):
    """Key/value store of configuration documents."""

    def read(self, name: str) -> Optional[dict[str, Any]]:
        ...

    def write(self, name: str, document: dict[str, Any]) -> None:
        ...

    def list(self) -> list[str]:
        ...


class FileStorage:
    """
    Directory of YAML documents, one file per configuration item.

    Used for the active configuration:
        <root>/system.site.yml
        <root>/node.type.article.yml
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise StorageError(f"Invalid configuration name: {name!r}")
        return self.root / f"{name}{CONFIG_EXTENSION}"

    def read(self, name: str) -> Optional[dict[str, Any]]:
        """
        Read a document.

        Returns None if the item does not exist.

        Raises:
            StorageError: If the file exists but cannot be parsed
        """
        path = self._path(name)
        if not path.exists():
            return None
        return _load_document(path)

    def write(self, name: str, document: dict[str, Any]) -> None:
        """Replace a document."""
        path = self._path(name)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_text(canonical_yaml(document), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write {name}: {e}") from e

        logger.info(f"Wrote active config {name}")

    def list(self) -> list[str]:
        """List all item names, sorted."""
        if not self.root.exists():
            return []
        return sorted(
            p.name[: -len(CONFIG_EXTENSION)]
            for p in self.root.glob(f"*{CONFIG_EXTENSION}")
        )


class ExtensionStorage:
    """
    Read-only view of the packaged configuration in an export tree.

    Each package directory contributes the documents under its
    config/install/ folder. An item found in more than one package is
    owned by the first package in sorted order.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._index: Optional[dict[str, tuple[str, Path]]] = None

    def refresh(self) -> None:
        """Forget the cached index so the tree is rescanned."""
        self._index = None

    def _scan(self) -> dict[str, tuple[str, Path]]:
        if self._index is not None:
            return self._index

        index: dict[str, tuple[str, Path]] = {}
        if self.root.exists():
            for package_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
                install_dir = package_dir / INSTALL_DIR
                for path in sorted(install_dir.glob(f"*{CONFIG_EXTENSION}")):
                    name = path.name[: -len(CONFIG_EXTENSION)]
                    if name in index:
                        logger.warning(
                            f"{name} is packaged by both {index[name][0]} "
                            f"and {package_dir.name}; using {index[name][0]}"
                        )
                        continue
                    index[name] = (package_dir.name, path)

        logger.debug(f"Indexed {len(index)} packaged items under {self.root}")
        self._index = index
        return index

    def read(self, name: str) -> Optional[dict[str, Any]]:
        entry = self._scan().get(name)
        if entry is None:
            return None
        return _load_document(entry[1])

    def write(self, name: str, document: dict[str, Any]) -> None:
        raise StorageError(
            f"Cannot write {name}: packaged configuration is read-only, export instead"
        )

    def list(self) -> list[str]:
        return sorted(self._scan())

    def owner(self, name: str) -> Optional[str]:
        """Name of the package directory that ships an item."""
        entry = self._scan().get(name)
        return entry[0] if entry else None

    def packages(self) -> list[str]:
        """Package directory names that ship at least one item."""
        return sorted({package for package, _ in self._scan().values()})
