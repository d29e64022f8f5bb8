"""Package manager - the entry point for packaging operations.

Provides one place for:
1. Building the configuration collection
2. Assigning items to the packages of the active bundle
3. Detecting overrides and rendering diffs
4. Exporting packages with a generation method
5. Importing packaged values back into the active configuration
"""
import logging
from fnmatch import fnmatchcase
from typing import Optional

from ..config.settings import PackagerSettings
from ..config_store.store import ConfigStorage, ExtensionStorage, FileStorage
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed
from .assigner import PackageAssigner
from .collection import build_collection
from .diff import DiffEngine
from .generation import GENERATION_METHODS
from .generator import ExportReport, PackageGenerator
from .overrides import OverrideDetector
from .renderer import PackageRenderer
from .revert import RevertExecutor
from .schema import (
    STATUS_LABELS,
    Bundle,
    ConfigCollection,
    ConfigItem,
    Override,
    Package,
    PackageStatus,
    RevertResult,
)

logger = logging.getLogger(__name__)


class PackageNotFoundError(LookupError):
    """Raised when a named package does not exist in the active bundle."""
    pass


class PackageManager:
    """
    Packaging operations over one active and one packaged storage.

    Usage:
        manager = PackageManager(load_settings())
        manager.apply_bundle("editorial")
        for package in manager.get_packages().values():
            print(package.name, manager.detect_overrides(package))
    """

    def __init__(
        self,
        settings: PackagerSettings,
        active: Optional[ConfigStorage] = None,
        extension: Optional[ExtensionStorage] = None,
        tracker: Optional[ChangeTracker] = None,
    ):
        """
        Initialize the manager.

        Args:
            settings: Packager settings
            active: Active storage (default: FileStorage at storage.active)
            extension: Packaged storage (default: the export folder)
            tracker: Audit tracker shared by export and revert
        """
        self.settings = settings
        self.active = active if active is not None else FileStorage(settings.active_dir)
        self.extension = extension if extension is not None \
            else ExtensionStorage(settings.extension_dir)
        tracker = tracker or ChangeTracker()

        self.assigner = PackageAssigner(settings)
        self.diff_engine = DiffEngine()
        self.detector = OverrideDetector(self.active, self.extension, self.diff_engine)
        self.renderer = PackageRenderer(self.active)
        self.generator = PackageGenerator(settings, self.renderer, tracker)
        self.reverter = RevertExecutor(self.active, self.extension, tracker)

        self.bundle: Bundle = self.assigner.apply_bundle()

    # === Bundles ===

    def apply_bundle(self, name: Optional[str] = None) -> Bundle:
        """Select the bundle for subsequent operations."""
        self.bundle = self.assigner.apply_bundle(name)
        logger.debug(f"Active bundle: {self.bundle.machine_name}")
        return self.bundle

    # === Collection & packages ===

    def get_config_collection(self) -> ConfigCollection:
        """Build the collection fresh from storage."""
        return build_collection(self.active, self.extension, self.settings)

    def get_packages(
        self,
        collection: Optional[ConfigCollection] = None,
        include_unpackaged: bool = False,
        detect: bool = False,
    ) -> dict[str, Package]:
        """
        Packages of the active bundle.

        Args:
            collection: Collection to assign (built fresh if omitted)
            include_unpackaged: Add the synthetic unpackaged package
            detect: Also derive OVERRIDDEN status from storage
        """
        if collection is None:
            collection = self.get_config_collection()

        packages = self.assigner.assign(self.bundle, collection, include_unpackaged)
        if detect:
            for package in packages.values():
                self.detector.refresh_status(package)
        return packages

    def get_package(
        self,
        name: str,
        packages: Optional[dict[str, Package]] = None,
    ) -> Package:
        """
        Look up a package by machine name or short name.

        Raises:
            PackageNotFoundError: If the active bundle has no such package
        """
        if packages is None:
            packages = self.get_packages()

        if name in packages:
            return packages[name]
        full_name = self.bundle.full_name(name)
        if full_name in packages:
            return packages[full_name]
        raise PackageNotFoundError(f"Package {name} does not exist")

    def list_config_types(self, collection: Optional[ConfigCollection] = None) -> list[str]:
        if collection is None:
            collection = self.get_config_collection()
        return collection.types()

    def components(
        self,
        patterns: Optional[list[str]] = None,
        exported: Optional[bool] = None,
    ) -> list[ConfigItem]:
        """
        Configuration items matching name patterns.

        Args:
            patterns: fnmatch patterns (None matches everything)
            exported: True for items shipped by a package, False for the rest
        """
        items = []
        for name, item in self.get_config_collection().items():
            if patterns and not any(fnmatchcase(name, p) for p in patterns):
                continue
            if exported is not None:
                is_exported = self.extension.owner(name) is not None
                if is_exported != exported:
                    continue
            items.append(item)
        return items

    @staticmethod
    def status_label(status: PackageStatus) -> str:
        return STATUS_LABELS[status]

    # === Overrides ===

    def detect_overrides(self, package: Package, deep: bool = False) -> list[str]:
        return self.detector.detect(package, deep=deep)

    def inspect(self, package: Package, context_lines: Optional[int] = None) -> list[Override]:
        """Drifted items of a package with diffs limited to context_lines."""
        if context_lines is None:
            return self.detector.inspect(package)
        detector = OverrideDetector(self.active, self.extension, DiffEngine(context_lines))
        return detector.inspect(package)

    def diff(
        self,
        package_name: Optional[str] = None,
        context_lines: Optional[int] = None,
        ctypes: Optional[list[str]] = None,
    ) -> dict[str, list[Override]]:
        """
        Differences per package.

        Args:
            package_name: Limit to one package (None = all exportable packages)
            context_lines: Unchanged lines kept around each change
            ctypes: Only report items of these config types

        Raises:
            PackageNotFoundError: If package_name does not exist
        """
        collection = self.get_config_collection()
        packages = self.get_packages(collection)
        if package_name:
            selected = [self.get_package(package_name, packages)]
        else:
            selected = [p for p in packages.values() if p.status != PackageStatus.NO_EXPORT]

        report = {}
        for package in selected:
            overrides = self.inspect(package, context_lines)
            if ctypes:
                overrides = [o for o in overrides if collection[o.name].type in ctypes]
            if overrides:
                report[package.machine_name] = overrides
        return report

    # === Export ===

    @timed("export")
    def export(
        self,
        names: Optional[list[str]] = None,
        method_id: Optional[str] = None,
        include_profile: Optional[bool] = None,
    ) -> ExportReport:
        """
        Export packages of the active bundle.

        Args:
            names: Packages to export (None = every package of the bundle)
            method_id: Generation method (default: export.method setting)
            include_profile: Wrap in the profile (default: profile.add setting)

        Raises:
            PackageNotFoundError: If a named package does not exist
        """
        collection = self.get_config_collection()
        packages = self.get_packages(collection)

        if names is None:
            selected = list(packages.values())
        else:
            selected = [self.get_package(name, packages) for name in names]

        if include_profile is None:
            include_profile = self.settings.profile.add

        report = self.generator.generate(
            method_id or self.settings.export.method,
            selected,
            collection,
            self.bundle,
            include_profile=include_profile,
        )
        if self.generator_redefined_baseline(report):
            self.extension.refresh()
        return report

    @staticmethod
    def generator_redefined_baseline(report: ExportReport) -> bool:
        method = GENERATION_METHODS.get(report.method_id)
        return bool(method and method.redefines_baseline) and any(r.success for r in report.results)

    @timed("add")
    def add_to_package(
        self,
        package_name: str,
        patterns: list[str],
        method_id: str = "write",
    ) -> ExportReport:
        """
        Add matching unpackaged items to a package and export it.

        Items already owned by another package are left where they are.
        A package that does not exist yet is created in the active bundle.
        """
        collection = self.get_config_collection()
        packages = self.get_packages(collection)

        try:
            package = self.get_package(package_name, packages)
        except PackageNotFoundError:
            short_name = self.bundle.short_name(package_name)
            package = Package(
                machine_name=self.bundle.full_name(short_name),
                machine_name_short=short_name,
                name=short_name,
                status=PackageStatus.DEFAULT,
                bundle=None if self.bundle.is_default else self.bundle.machine_name,
            )
            logger.info(f"Creating package {package.machine_name}")

        for name, item in collection.items():
            if not any(fnmatchcase(name, p) for p in patterns):
                continue
            if name in package.config:
                continue
            if item.package:
                logger.warning(f"{name} already belongs to {item.package}, not adding it")
                continue
            package.config.append(name)
            package.dependencies.update(item.dependencies)

        report = self.generator.generate(method_id, [package], collection, self.bundle)
        if self.generator_redefined_baseline(report):
            self.extension.refresh()
        return report

    # === Import ===

    def revert(self, names: list[str]) -> list[RevertResult]:
        """Import packaged values of the named items."""
        return self.reverter.revert(names, self.get_config_collection())

    @timed("import")
    def import_packages(self, targets: list[str], force: bool = False) -> list[RevertResult]:
        """
        Import packages or single items into the active configuration.

        Args:
            targets: "package" or "package:item" entries
            force: Import every item of a package, not only overridden ones

        Raises:
            PackageNotFoundError: If a named package does not exist
        """
        collection = self.get_config_collection()
        packages = self.get_packages(collection)

        names: list[str] = []
        for target in targets:
            package_name, _, item_name = target.partition(":")
            package = self.get_package(package_name, packages)

            if item_name:
                if item_name not in package.config:
                    raise PackageNotFoundError(
                        f"{item_name} is not part of package {package.machine_name}"
                    )
                if force or item_name in self.detector.detect(package):
                    names.append(item_name)
            elif force:
                names.extend(package.config)
            else:
                names.extend(self.detector.detect(package))

        return self.reverter.revert(names, collection)
