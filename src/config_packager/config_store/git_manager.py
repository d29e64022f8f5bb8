"""Git integration for versioned package exports.

Provides:
- Automatic git repository initialization of the export folder
- One commit per exported package
- History viewing
"""
import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CommitInfo:
    """Information about a git commit."""
    hash: str
    short_hash: str
    author: str
    date: datetime
    message: str


class GitManager:
    """
    Manages git operations for the export folder.

    The git repo is initialized in the export folder, so every package
    directory written there is tracked.
    """

    def __init__(self, repo_path: Path):
        """
        Initialize GitManager.

        Args:
            repo_path: Path to the export folder (will be git root)
        """
        self.repo_path = Path(repo_path)

    def _run_git(
        self,
        *args: str,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a git command in the repo directory."""
        cmd = ["git", "-C", str(self.repo_path)] + list(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,  # We'll handle errors ourselves
            )
        except OSError as e:
            raise GitError(f"Git is not available: {e}") from e

        if check and result.returncode != 0:
            logger.error(f"Git command failed: {result.stderr}")
            raise GitError(f"Git command failed: {result.stderr.strip()}")

        return result

    def is_initialized(self) -> bool:
        """Check if the git repo is initialized."""
        return (self.repo_path / ".git").exists()

    def init(self) -> bool:
        """
        Initialize git repo if not already done.

        Returns:
            True if newly initialized, False if already exists
        """
        if self.is_initialized():
            logger.debug("Git repo already initialized")
            return False

        self.repo_path.mkdir(parents=True, exist_ok=True)
        self._run_git("init")
        self._run_git("config", "user.name", "config-packager")
        self._run_git("config", "user.email", "config-packager@local")

        gitignore = self.repo_path / ".gitignore"
        gitignore.write_text(
            "# config-packager export gitignore\n"
            "*.tmp\n"
            "*.bak\n"
        )

        # Existing files stay unstaged for the first package commit
        self._run_git("add", ".gitignore")
        self._run_git("commit", "-m", "Initial export repository", "--allow-empty")

        logger.info(f"Initialized git repo at {self.repo_path}")
        return True

    def commit(
        self,
        message: str,
        paths: Optional[list[str]] = None,
        author: Optional[str] = None,
    ) -> Optional[str]:
        """
        Commit changes to the repo.

        Args:
            message: Commit message
            paths: Paths to stage, relative to the repo (default: all changes)
            author: Author name for audit trail

        Returns:
            Commit hash if successful, None if nothing to commit
        """
        if not self.is_initialized():
            self.init()

        if paths:
            self._run_git("add", "--all", "--", *paths)
        else:
            self._run_git("add", "--all")

        result = self._run_git("diff", "--cached", "--quiet", check=False)
        if result.returncode == 0:
            logger.debug("No changes to commit")
            return None

        full_message = message
        if author:
            full_message += f"\n\nExported by: {author}"

        self._run_git("commit", "-m", full_message)

        commit_hash = self._run_git("rev-parse", "HEAD").stdout.strip()
        logger.info(f"Committed: {commit_hash[:8]} - {message.split(chr(10))[0]}")
        return commit_hash

    def get_history(
        self,
        path: Optional[str] = None,
        limit: int = 20,
    ) -> list[CommitInfo]:
        """
        Get commit history.

        Args:
            path: Filter by path (e.g., "article")
            limit: Maximum commits to return

        Returns:
            List of CommitInfo objects, newest first
        """
        if not self.is_initialized():
            return []

        # Format: hash|short|author|date|subject
        args = ["log", "--format=%H|%h|%an|%aI|%s", f"-n{limit}"]
        if path:
            args.extend(["--", path])

        result = self._run_git(*args, check=False)
        if result.returncode != 0:
            return []

        commits = []
        for line in result.stdout.strip().split("\n"):
            if not line:
                continue

            parts = line.split("|", 4)
            if len(parts) < 5:
                continue

            try:
                commits.append(CommitInfo(
                    hash=parts[0],
                    short_hash=parts[1],
                    author=parts[2],
                    date=datetime.fromisoformat(parts[3]),
                    message=parts[4],
                ))
            except ValueError as e:
                logger.warning(f"Failed to parse commit: {e}")

        return commits


class GitError(Exception):
    """Exception raised for git operation failures."""
    pass
