"""Generate packages and optional profile as a compressed archive."""
import gzip
import io
import logging
import tarfile
from pathlib import Path
from typing import Optional

from ..schema import Package, PackageFile
from .base import GenerationError, GenerationMethod, WriteOutcome, unsafe_filename

logger = logging.getLogger(__name__)

# Fixed timestamp so identical input yields an identical archive
ARCHIVE_MTIME = 0


class ArchiveGenerationMethod(GenerationMethod):
    """
    Write all packages into <temp_dir>/<profile>.tar.gz.

    The archive of a previous run is deleted first, so each run produces
    a fresh artifact.
    """

    method_id = "archive"
    name = "Archive"
    description = "Generate packages and optional profile as a compressed archive for download."
    weight = -2

    success_message = "{type} {package} written to archive."
    failure_message = "{type} {package} not written to archive. Error: {error}."

    def __init__(self, settings, profile_name: Optional[str] = None):
        super().__init__(settings, profile_name)
        self._gzip: Optional[gzip.GzipFile] = None
        self._archive: Optional[tarfile.TarFile] = None

    @property
    def archive_path(self) -> Path:
        return self.settings.temp_dir / f"{self.profile_name}.tar.gz"

    def prepare(self, packages: list[Package]) -> None:
        path = self.archive_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                path.unlink()
                logger.debug(f"Removed previous archive {path}")
            self._gzip = gzip.GzipFile(path, mode="wb", mtime=ARCHIVE_MTIME)
            self._archive = tarfile.open(fileobj=self._gzip, mode="w")
        except (OSError, tarfile.TarError) as e:
            self.finish()
            raise GenerationError(f"Cannot create archive {path}: {e}") from e

    def finish(self) -> None:
        if self._archive is not None:
            self._archive.close()
            self._archive = None
        if self._gzip is not None:
            self._gzip.close()
            self._gzip = None

    def write_file(self, package: Package, file: PackageFile) -> WriteOutcome:
        basename = Path(file.filename).name or file.filename
        if unsafe_filename(file.filename):
            return WriteOutcome.failed(f"Failed to archive file {basename}: unsafe path")

        try:
            content = file.content
            if isinstance(content, str):
                content = content.encode("utf-8")

            info = tarfile.TarInfo(name=file.filename)
            info.size = len(content)
            info.mtime = ARCHIVE_MTIME
            info.mode = 0o644
            self._archive.addfile(info, io.BytesIO(content))
        except (OSError, tarfile.TarError, ValueError, TypeError) as e:
            return WriteOutcome.failed(f"Failed to archive file {basename}: {e}")
        return WriteOutcome(ok=True)

    def export_submit(self) -> str:
        return str(self.archive_path)
