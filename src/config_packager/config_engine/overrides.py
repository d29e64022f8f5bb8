"""Override detection between active and packaged configuration."""
import logging
from typing import Any, Optional

from ..config_store.store import ConfigStorage, StorageError, canonical_yaml
from .diff import DiffEngine
from .schema import Override, Package, PackageStatus

logger = logging.getLogger(__name__)


class OverrideDetector:
    """Find the items of a package whose active value drifted."""

    def __init__(
        self,
        active: ConfigStorage,
        extension: ConfigStorage,
        diff_engine: Optional[DiffEngine] = None,
    ):
        self.active = active
        self.extension = extension
        self.diff_engine = diff_engine or DiffEngine()

    def _read_pair(
        self, name: str
    ) -> Optional[tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]]:
        """Read (active, packaged), or None if either storage failed."""
        try:
            return self.active.read(name), self.extension.read(name)
        except StorageError as e:
            logger.warning(f"Cannot determine override status of {name}: {e}")
            return None

    def detect(self, package: Package, deep: bool = False) -> list[str]:
        """
        Names of the package's drifted items, in package order.

        Items missing from packaged storage count as drifted.

        Args:
            package: Package to check
            deep: Also compute the line diff of each drifted item
                (see inspect())
        """
        if deep:
            return [override.name for override in self.inspect(package)]

        overrides = []
        for name in package.config:
            pair = self._read_pair(name)
            if pair is None:
                continue
            active, packaged = pair
            if packaged is None or canonical_yaml(active) != canonical_yaml(packaged):
                overrides.append(name)
        return overrides

    def inspect(self, package: Package) -> list[Override]:
        """Drifted items of a package with their rendered diffs."""
        overrides = []
        for name in package.config:
            pair = self._read_pair(name)
            if pair is None:
                continue
            active, packaged = pair

            if packaged is None:
                overrides.append(Override(name=name, missing=True))
                continue

            rows = self.diff_engine.diff(packaged, active)
            if DiffEngine.has_changes(rows):
                overrides.append(Override(name=name, rows=rows))

        logger.debug(f"{package.machine_name}: {len(overrides)} overridden items")
        return overrides

    def refresh_status(self, package: Package) -> PackageStatus:
        """Derive and store a package's status."""
        if package.excluded:
            package.status = PackageStatus.NO_EXPORT
        elif self.detect(package):
            package.status = PackageStatus.OVERRIDDEN
        else:
            package.status = PackageStatus.DEFAULT
        return package.status
