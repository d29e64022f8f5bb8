"""Base generation method.

A generation method commits the rendered files of packages (and an
optional profile) to an artifact. Packages are isolated from each other:
the first file that fails stops its own package only.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from ...config.settings import PackagerSettings
from ..schema import GenerationResult, Package, PackageFile

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when an artifact cannot be prepared at all."""
    pass


@dataclass
class WriteOutcome:
    """Result of one write step."""
    ok: bool
    error: Optional[str] = None
    details: dict[str, str] = field(default_factory=dict)

    @classmethod
    def failed(cls, error: str) -> "WriteOutcome":
        return cls(ok=False, error=error)


def unsafe_filename(filename: str) -> bool:
    """True for empty, absolute or parent-relative paths."""
    path = PurePosixPath(filename)
    return not filename or path.is_absolute() or ".." in path.parts


class GenerationMethod(ABC):
    """Abstract base class for generation methods."""

    method_id: str = ""
    name: str = ""
    description: str = ""
    weight: int = 0
    # Whether a successful export becomes the new packaged baseline
    redefines_baseline: bool = False

    success_message = "{type} {package} written."
    failure_message = "{type} {package} not written. Error: {error}."

    def __init__(self, settings: PackagerSettings, profile_name: Optional[str] = None):
        self.settings = settings
        self.profile_name = profile_name or settings.profile.machine_name

    def generate(
        self,
        packages: list[Package],
        include_profile: bool = False,
        profile: Optional[Package] = None,
    ) -> list[GenerationResult]:
        """
        Generate packages and optionally the profile.

        Args:
            packages: Packages with rendered files
            include_profile: Write the profile's files first
            profile: Rendered profile (required with include_profile)

        Returns:
            One GenerationResult per profile/package, in input order

        Raises:
            GenerationError: If the artifact cannot be prepared
        """
        if include_profile and profile is None:
            raise ValueError("include_profile requires a rendered profile")

        targets = ([profile] if include_profile else []) + list(packages)
        if include_profile:
            self.profile_name = profile.machine_name

        self.prepare(targets)
        try:
            results = [self._generate_package(package) for package in targets]
        finally:
            self.finish()
        return results

    def _generate_package(self, package: Package) -> GenerationResult:
        variables = {
            "type": "Profile" if package.is_profile else "Package",
            "package": package.name,
        }
        variables.update(self.template_variables(package))

        outcome = self.begin_package(package)
        if outcome.ok:
            for file in package.files:
                outcome = self.write_file(package, file)
                if not outcome.ok:
                    break
        if outcome.ok:
            outcome = self.end_package(package)
        variables.update(outcome.details)

        if not outcome.ok:
            variables["error"] = outcome.error or "unknown error"
            logger.warning(f"{self.method_id}: {package.machine_name} failed: {outcome.error}")
            return GenerationResult(
                package_name=package.machine_name,
                success=False,
                message_template=self.failure_message,
                variables=variables,
            )

        logger.info(f"{self.method_id}: {package.machine_name} written ({len(package.files)} files)")
        return GenerationResult(
            package_name=package.machine_name,
            success=True,
            message_template=self.success_message,
            variables=variables,
        )

    def prepare(self, packages: list[Package]) -> None:
        """Set up the artifact before any package is written."""
        pass

    def finish(self) -> None:
        """Release the artifact after all packages were processed."""
        pass

    def template_variables(self, package: Package) -> dict[str, str]:
        """Extra variables for this method's result messages."""
        return {}

    def begin_package(self, package: Package) -> WriteOutcome:
        return WriteOutcome(ok=True)

    def end_package(self, package: Package) -> WriteOutcome:
        return WriteOutcome(ok=True)

    @abstractmethod
    def write_file(self, package: Package, file: PackageFile) -> WriteOutcome:
        """Append one file to the artifact."""
        pass

    @abstractmethod
    def export_submit(self) -> str:
        """Location of the generated artifact, for the caller to present."""
        pass
