"""Write packages and optional profile directly into the export folder."""
import logging
import shutil
from pathlib import Path

from ..schema import Package, PackageFile
from .base import GenerationError, GenerationMethod, WriteOutcome, unsafe_filename

logger = logging.getLogger(__name__)


class WriteGenerationMethod(GenerationMethod):
    """
    Write each package to <export folder>/<machine_name>/.

    A package's directory is replaced as a whole, so items dropped from
    a package disappear from its export.
    """

    method_id = "write"
    name = "Write"
    description = "Write packages and optional profile to the export folder."
    weight = 2
    redefines_baseline = True

    success_message = "{type} {package} written to {folder}."
    failure_message = "{type} {package} not written to {folder}. Error: {error}."

    @property
    def export_dir(self) -> Path:
        return self.settings.export_dir

    def template_variables(self, package: Package) -> dict[str, str]:
        return {"folder": str(self.export_dir)}

    def prepare(self, packages: list[Package]) -> None:
        try:
            self.export_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise GenerationError(f"Cannot create export folder {self.export_dir}: {e}") from e

    def begin_package(self, package: Package) -> WriteOutcome:
        package_dir = self.export_dir / package.machine_name
        if package_dir.exists():
            try:
                shutil.rmtree(package_dir)
            except OSError as e:
                return WriteOutcome.failed(f"Cannot remove {package_dir}: {e}")
        return WriteOutcome(ok=True)

    def write_file(self, package: Package, file: PackageFile) -> WriteOutcome:
        if unsafe_filename(file.filename):
            return WriteOutcome.failed(f"Failed to write file {file.filename}: unsafe path")

        path = self.export_dir / file.filename
        content = file.content
        if isinstance(content, str):
            content = content.encode("utf-8")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except (OSError, TypeError) as e:
            return WriteOutcome.failed(f"Failed to write file {path.name}: {e}")
        return WriteOutcome(ok=True)

    def export_submit(self) -> str:
        return str(self.export_dir)
