"""Git helpers for codebase sources — shallow clones and remote lookup."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

logger = logging.getLogger(__name__)


@dataclass
class Checkout:
    """A working tree to scan, possibly a temporary clone.

    Use as a context manager so temp clones are removed::

        with clone_shallow(url) as checkout:
            scan(checkout.local_path)
    """

    local_path: Path
    source_url: str = ""
    is_temp_clone: bool = False

    def __enter__(self) -> "Checkout":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.is_temp_clone and self.local_path.exists():
            shutil.rmtree(self.local_path, ignore_errors=True)


def clone_shallow(url: str) -> Checkout:
    """Clone ``url`` at depth 1 into a temp directory.

    Raises ``GitCommandError`` when the clone fails; the temp directory is
    removed first.
    """
    clone_dir = Path(tempfile.mkdtemp(prefix="sc-clone-"))
    logger.debug("cloning %s into %s", url, clone_dir)
    try:
        Repo.clone_from(url, clone_dir, depth=1)
    except GitCommandError:
        shutil.rmtree(clone_dir, ignore_errors=True)
        raise
    return Checkout(local_path=clone_dir, source_url=url, is_temp_clone=True)


def remote_url(path: Path) -> str:
    """First remote URL of the repo at ``path``, or "" when there is none."""
    try:
        repo = Repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return ""
    try:
        return repo.remotes[0].url if repo.remotes else ""
    finally:
        repo.close()
