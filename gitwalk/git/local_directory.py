"""Local checkout directory bookkeeping."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from gitwalk.errors import RepositoryStateError

logger = logging.getLogger(__name__)


class LocalDirectory:
    """A directory on the local file system that holds (or will hold) a clone.

    Args:
        base_path: Parent directory; created on demand.
        directory_name: Name of the clone directory under `base_path`.
    """

    def __init__(self, base_path: str | Path, directory_name: str):
        self.base_path = Path(base_path)
        self.path = self.base_path / directory_name

    def ensure_directory_exists_and_is_empty(self, delete_existing_contents: bool) -> None:
        """Make sure the directory exists and is empty, ready for a clone.

        Raises:
            RepositoryStateError: If the directory already exists and
                `delete_existing_contents` is False.
        """
        if self.path.exists():
            if not delete_existing_contents:
                raise RepositoryStateError(
                    f"Directory already exists: {self.path}. If you're re-running the walkthrough, "
                    "please confirm that you're comfortable with the directory being deleted and "
                    "recreated by setting GIT_DELETE_EXISTING_DIRECTORY_CONTENTS=true."
                )
            logger.info("Deleting existing directory: %s", self.path)
            if self.path.is_dir() and not self.path.is_symlink():
                shutil.rmtree(self.path)
            else:
                self.path.unlink()

        self.path.mkdir(parents=True)

    def ensure_directory_exists_and_is_git_repository(self) -> None:
        """Raise `RepositoryStateError` unless the directory holds a clone."""
        if not self.path.exists():
            raise RepositoryStateError(
                f"Directory does not exist: {self.path}. Please clone the repository first (gitwalk clone)."
            )
        # A cloned repository on your local machine will have a .git directory
        if not (self.path / ".git").exists():
            raise RepositoryStateError(
                f"Directory is not a git repository: {self.path}. Please clone the repository first (gitwalk clone)."
            )

    def __repr__(self) -> str:
        return f"LocalDirectory({str(self.path)!r})"
