"""Package assignment.

Classifies every item of a ConfigCollection into exactly one package of
the active bundle.
"""
import logging
from typing import Optional

from ..config.settings import DEFAULT_BUNDLE, PackagerSettings, PackageSettings
from .schema import (
    Bundle,
    ConfigCollection,
    Package,
    PackageStatus,
    UNPACKAGED,
)

logger = logging.getLogger(__name__)


class BundleNotFoundError(LookupError):
    """Raised when a named bundle does not exist."""
    pass


class PackageAssigner:
    """
    Assigns configuration items to packages.

    Usage:
        assigner = PackageAssigner(settings)
        bundle = assigner.apply_bundle("editorial")
        packages = assigner.assign(bundle, collection)
    """

    def __init__(self, settings: PackagerSettings):
        self.settings = settings

    # === Bundles ===

    def get_bundles(self) -> dict[str, Bundle]:
        """All bundles, default first."""
        bundles = {
            DEFAULT_BUNDLE: Bundle(
                machine_name=DEFAULT_BUNDLE,
                name="Default",
                is_default=True,
                profile_name=self.settings.profile.machine_name,
            ),
        }
        for machine_name, config in self.settings.bundles.items():
            bundles[machine_name] = Bundle(
                machine_name=machine_name,
                name=config.name,
                description=config.description,
                profile_name=config.profile_name,
            )
        return bundles

    def apply_bundle(self, name: Optional[str] = None) -> Bundle:
        """
        Resolve the bundle for an operation.

        Args:
            name: Bundle machine name (None selects the default bundle)

        Raises:
            BundleNotFoundError: If the bundle does not exist
        """
        bundles = self.get_bundles()
        if not name:
            return bundles[DEFAULT_BUNDLE]
        if name not in bundles:
            raise BundleNotFoundError(f"Bundle {name} does not exist")
        return bundles[name]

    def recognizes(self, bundle: Bundle, package: str) -> bool:
        """Whether an item's package belongs to a bundle."""
        declared = self.settings.packages.get(package)
        if declared is not None:
            return (declared.bundle or DEFAULT_BUNDLE) == bundle.machine_name

        if bundle.is_default:
            return not any(
                package.startswith(f"{other}_") for other in self.settings.bundles
            )
        return package.startswith(f"{bundle.machine_name}_")

    # === Assignment ===

    def assign(
        self,
        bundle: Bundle,
        collection: ConfigCollection,
        include_unpackaged: bool = False,
    ) -> dict[str, Package]:
        """
        Assign collection items to the bundle's packages.

        Declared packages come first in declaration order, then packages
        discovered from items, then the synthetic unpackaged package.

        Args:
            bundle: Active bundle
            collection: Items of this operation
            include_unpackaged: Add items with no package to `unpackaged`

        Returns:
            Packages keyed by namespaced machine name
        """
        packages: dict[str, Package] = {}

        for short_name in self.settings.packages:
            if self.recognizes(bundle, short_name):
                self._ensure_package(packages, bundle, short_name)

        unpackaged: list[str] = []
        for name, item in collection.items():
            if not item.package:
                unpackaged.append(name)
                continue
            if not self.recognizes(bundle, item.package):
                continue

            package = self._ensure_package(packages, bundle, bundle.short_name(item.package))
            package.config.append(name)
            package.dependencies.update(item.dependencies)

        for package in packages.values():
            package.dependencies.discard(package.machine_name)

        if include_unpackaged:
            packages[UNPACKAGED] = Package(
                machine_name=UNPACKAGED,
                name="Unpackaged",
                description="Configuration that has not been added to any package.",
                status=PackageStatus.DEFAULT,
                config=unpackaged,
            )

        logger.info(
            f"Assigned {len(collection)} items to {len(packages)} packages "
            f"in bundle {bundle.machine_name}"
        )
        return packages

    def _ensure_package(
        self,
        packages: dict[str, Package],
        bundle: Bundle,
        short_name: str,
    ) -> Package:
        machine_name = bundle.full_name(short_name)
        if machine_name in packages:
            return packages[machine_name]

        declared = self.settings.packages.get(short_name)
        if declared is None or not self.recognizes(bundle, short_name):
            declared = PackageSettings()

        package = Package(
            machine_name=machine_name,
            machine_name_short=short_name,
            name=declared.name or short_name,
            description=declared.description,
            status=PackageStatus.NO_EXPORT if declared.excluded else PackageStatus.DEFAULT,
            dependencies=set(declared.dependencies),
            bundle=None if bundle.is_default else bundle.machine_name,
            excluded=declared.excluded,
        )
        packages[machine_name] = package
        return package
