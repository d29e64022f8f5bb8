"""Write packages to the export folder and commit each one to git."""
import logging
from typing import Optional

from ...config_store.git_manager import GitError, GitManager
from ..schema import Package
from .base import GenerationError, WriteOutcome
from .write import WriteGenerationMethod

logger = logging.getLogger(__name__)


class VcsGenerationMethod(WriteGenerationMethod):
    """
    Write method plus one commit per package.

    The export folder becomes a git repository on first use.
    """

    method_id = "vcs"
    name = "Commit"
    description = "Write packages to the export folder and commit each package to git."
    weight = 4

    success_message = "{type} {package} committed to {folder} ({commit})."
    failure_message = "{type} {package} not committed to {folder}. Error: {error}."

    def __init__(self, settings, profile_name: Optional[str] = None, author: Optional[str] = None):
        super().__init__(settings, profile_name)
        self.author = author
        self.git = GitManager(self.export_dir)

    def prepare(self, packages: list[Package]) -> None:
        super().prepare(packages)
        try:
            self.git.init()
        except GitError as e:
            raise GenerationError(f"Cannot initialize git in {self.export_dir}: {e}") from e

    def end_package(self, package: Package) -> WriteOutcome:
        try:
            commit_hash = self.git.commit(
                message=f"Export {package.type} {package.machine_name}",
                paths=[package.machine_name],
                author=self.author,
            )
        except GitError as e:
            return WriteOutcome.failed(str(e))

        commit = commit_hash[:8] if commit_hash else "unchanged"
        return WriteOutcome(ok=True, details={"commit": commit})
