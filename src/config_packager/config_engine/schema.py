"""Schema definitions for the packaging engine.

Defines configuration items, packages, bundles and the result records
returned by detection, generation and revert.
"""
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

UNPACKAGED = "unpackaged"


class PackageStatus(str, Enum):
    """Derived status of a package."""
    DEFAULT = "default"
    OVERRIDDEN = "overridden"
    NO_EXPORT = "no_export"
    UNKNOWN = "unknown"


STATUS_LABELS = {
    PackageStatus.DEFAULT: "Default",
    PackageStatus.OVERRIDDEN: "Changed",
    PackageStatus.NO_EXPORT: "Excluded",
    PackageStatus.UNKNOWN: "Unknown",
}


class DiffKind(str, Enum):
    """Kind of a rendered diff line."""
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


@dataclass(frozen=True)
class ConfigItem:
    """A single configuration object."""
    name: str
    type: str
    label: str
    package: Optional[str] = None
    dependencies: frozenset[str] = frozenset()


class ConfigCollection(Mapping[str, ConfigItem]):
    """Ordered mapping of item name to ConfigItem, fixed for one operation."""

    def __init__(self, items: Optional[list[ConfigItem]] = None):
        self._items: dict[str, ConfigItem] = {}
        for item in items or []:
            if item.name in self._items:
                raise ValueError(f"Duplicate configuration item: {item.name}")
            self._items[item.name] = item

    def __getitem__(self, name: str) -> ConfigItem:
        return self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ConfigCollection({list(self._items)!r})"

    def types(self) -> list[str]:
        """Distinct item types, sorted."""
        return sorted({item.type for item in self._items.values()})

    def unpackaged(self) -> list[str]:
        """Names of items with no owning package."""
        return [name for name, item in self._items.items() if not item.package]


@dataclass
class Bundle:
    """Namespace scoping which packages are visible together."""
    machine_name: str
    name: str
    is_default: bool = False
    description: str = ""
    profile_name: Optional[str] = None

    def full_name(self, short_name: str) -> str:
        """Namespaced machine name of a package in this bundle."""
        if self.is_default or short_name.startswith(f"{self.machine_name}_"):
            return short_name
        return f"{self.machine_name}_{short_name}"

    def short_name(self, machine_name: str) -> str:
        """Strip this bundle's prefix from a machine name."""
        prefix = f"{self.machine_name}_"
        if not self.is_default and machine_name.startswith(prefix):
            return machine_name[len(prefix):]
        return machine_name


@dataclass
class PackageFile:
    """A rendered file belonging to a package."""
    filename: str
    content: bytes


@dataclass
class Package:
    """A named group of configuration items."""
    machine_name: str
    name: str
    machine_name_short: str = ""
    description: str = ""
    status: PackageStatus = PackageStatus.UNKNOWN
    config: list[str] = field(default_factory=list)
    dependencies: set[str] = field(default_factory=set)
    files: list[PackageFile] = field(default_factory=list)
    type: str = "package"  # package, profile
    bundle: Optional[str] = None
    excluded: bool = False

    def __post_init__(self):
        if not self.machine_name_short:
            self.machine_name_short = self.machine_name

    @property
    def is_profile(self) -> bool:
        return self.type == "profile"


# --- Diff rows ---

_MARKERS = {
    DiffKind.CONTEXT: " ",
    DiffKind.ADDED: "+",
    DiffKind.REMOVED: "-",
    DiffKind.CHANGED: "~",
}


@dataclass(frozen=True)
class DiffRow:
    """One line of a rendered diff."""
    kind: DiffKind
    active_text: Optional[str] = None
    packaged_text: Optional[str] = None

    @property
    def marker(self) -> str:
        return _MARKERS[self.kind]

    @property
    def text(self) -> str:
        """Line text, preferring the active side."""
        if self.active_text is not None:
            return self.active_text
        return self.packaged_text or ""


@dataclass
class Override:
    """A drifted item found by deep override detection."""
    name: str
    missing: bool = False
    rows: list[DiffRow] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.missing:
            return "Dependency detected in active config but not exported to the package."
        changed = sum(1 for row in self.rows if row.kind != DiffKind.CONTEXT)
        return f"{changed} changed line(s)"


# --- Results ---

@dataclass
class GenerationResult:
    """Outcome of generating one package or profile."""
    package_name: str
    success: bool
    message_template: str
    variables: dict[str, str] = field(default_factory=dict)
    display: bool = False

    @property
    def message(self) -> str:
        return self.message_template.format(**self.variables)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "package": self.package_name,
            "success": self.success,
            "message": self.message,
            "variables": dict(self.variables),
        }


@dataclass
class RevertResult:
    """Outcome of reverting one item."""
    item_name: Optional[str]
    success: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "item": self.item_name,
            "success": self.success,
            "message": self.message,
        }
