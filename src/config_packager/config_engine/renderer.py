"""Renders packages to the files of an export.

Layout of a rendered package:
    <machine_name>/<machine_name>.info.yml
    <machine_name>/config/install/<item>.yml
"""
import logging
from typing import Any

import yaml

from ..config.settings import ProfileSettings
from ..config_store.store import (
    CONFIG_EXTENSION,
    INSTALL_DIR,
    ConfigStorage,
    StorageError,
    canonical_yaml,
)
from .schema import Bundle, ConfigCollection, Package, PackageFile, PackageStatus

logger = logging.getLogger(__name__)


def _dump_info(info: dict[str, Any]) -> bytes:
    return yaml.safe_dump(info, default_flow_style=False, sort_keys=False).encode("utf-8")


class PackageRenderer:
    """Serialize package members from active storage."""

    def __init__(self, active: ConfigStorage):
        self.active = active

    def render(self, package: Package, collection: ConfigCollection) -> Package:
        """
        Populate a package's files.

        Raises:
            StorageError: If a member cannot be read from active storage
        """
        machine_name = package.machine_name
        info: dict[str, Any] = {
            "name": package.name,
            "type": package.type,
            "description": package.description,
        }
        if package.bundle:
            info["bundle"] = package.bundle
        info["dependencies"] = sorted(package.dependencies)
        info["config"] = list(package.config)

        files = [PackageFile(f"{machine_name}/{machine_name}.info.yml", _dump_info(info))]

        for name in package.config:
            if name not in collection:
                raise StorageError(f"{name} is not in the active configuration")
            document = self.active.read(name)
            if document is None:
                raise StorageError(f"{name} is missing from active storage")
            files.append(PackageFile(
                f"{machine_name}/{INSTALL_DIR.as_posix()}/{name}{CONFIG_EXTENSION}",
                canonical_yaml(document).encode("utf-8"),
            ))

        package.files = files
        logger.debug(f"Rendered {machine_name}: {len(files)} files")
        return package

    def render_profile(
        self,
        profile: ProfileSettings,
        bundle: Bundle,
        packages: list[Package],
    ) -> Package:
        """Build the profile wrapping the exported packages."""
        machine_name = bundle.profile_name or profile.machine_name
        package = Package(
            machine_name=machine_name,
            name=profile.name,
            description=profile.description,
            status=PackageStatus.DEFAULT,
            dependencies={p.machine_name for p in packages},
            type="profile",
            bundle=None if bundle.is_default else bundle.machine_name,
        )

        info = {
            "name": package.name,
            "type": "profile",
            "description": package.description,
            "dependencies": sorted(package.dependencies),
        }
        package.files = [PackageFile(f"{machine_name}/{machine_name}.info.yml", _dump_info(info))]
        return package
