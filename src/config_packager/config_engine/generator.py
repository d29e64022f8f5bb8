"""Package generator: renders packages and hands them to a generation method."""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config.settings import PackagerSettings
from ..config_store.store import StorageError
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed_section
from .generation import GenerationError, create_generation_method
from .renderer import PackageRenderer
from .schema import (
    Bundle,
    ConfigCollection,
    GenerationResult,
    Package,
    PackageStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class ExportReport:
    """Results of one export run."""
    method_id: str
    results: list[GenerationResult] = field(default_factory=list)
    location: Optional[str] = None
    skipped: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    def to_dict(self) -> dict:
        return {
            "method": self.method_id,
            "success": self.success,
            "location": self.location,
            "skipped": list(self.skipped),
            "results": [r.to_dict() for r in self.results],
        }


class PackageGenerator:
    """Generate packages with a registered generation method."""

    def __init__(
        self,
        settings: PackagerSettings,
        renderer: PackageRenderer,
        tracker: Optional[ChangeTracker] = None,
    ):
        self.settings = settings
        self.renderer = renderer
        self.tracker = tracker or ChangeTracker()

    def generate(
        self,
        method_id: str,
        packages: list[Package],
        collection: ConfigCollection,
        bundle: Bundle,
        include_profile: bool = False,
    ) -> ExportReport:
        """
        Render and generate packages.

        Packages flagged NO_EXPORT are skipped. A package that cannot be
        rendered gets a failure result; the others are still generated.

        Args:
            method_id: Registered generation method id
            packages: Packages in the order results should be reported
            collection: Items of this operation
            bundle: Active bundle (decides the profile name)
            include_profile: Also generate the wrapping profile

        Returns:
            ExportReport with one result per profile/package

        Raises:
            GenerationError: If the profile shares a machine name with a package
        """
        method = create_generation_method(method_id, self.settings, bundle.profile_name)
        report = ExportReport(method_id=method.method_id)

        exportable = []
        for package in packages:
            if package.status == PackageStatus.NO_EXPORT:
                logger.info(f"Skipping {package.machine_name}: excluded from export")
                report.skipped.append(package.machine_name)
            else:
                exportable.append(package)

        if not exportable and not include_profile:
            logger.info("No packages selected for export")
            return report

        if include_profile:
            profile_name = bundle.profile_name or self.settings.profile.machine_name
            if any(p.machine_name == profile_name for p in exportable):
                raise GenerationError(
                    f"Profile {profile_name} has the same machine name as a package"
                )

        rendered = []
        # Render failures by position in exportable
        render_failures: dict[int, GenerationResult] = {}
        for index, package in enumerate(exportable):
            try:
                rendered.append(self.renderer.render(package, collection))
            except StorageError as e:
                render_failures[index] = GenerationResult(
                    package_name=package.machine_name,
                    success=False,
                    message_template="{type} {package} could not be rendered. Error: {error}.",
                    variables={"type": "Package", "package": package.name, "error": str(e)},
                )

        profile = None
        if include_profile:
            profile = self.renderer.render_profile(self.settings.profile, bundle, rendered)

        with timed_section(f"generate:{method.method_id}", target=bundle.machine_name,
                           packages=len(rendered)):
            method_results = method.generate(rendered, include_profile=include_profile, profile=profile)

        # Method results follow input order, profile first
        remaining = iter(method_results)
        if profile is not None:
            report.results.append(next(remaining))
        for index, package in enumerate(exportable):
            result = render_failures.get(index) or next(remaining)
            report.results.append(result)

            if result.success and method.redefines_baseline:
                package.status = PackageStatus.DEFAULT

        report.location = method.export_submit()

        for result in report.results:
            self.tracker.log_change(
                target=result.package_name,
                operation=f"export:{method.method_id}",
                success=result.success,
                message=result.message,
                parameters={"location": report.location},
            )

        return report
