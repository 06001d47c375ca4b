"""Content cache — the most recent generated body per artifact."""

from __future__ import annotations

import logging
from pathlib import Path

from skillc.errors import CacheError
from skillc.utils.fs import atomic_write_text

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = ".sc-cache"


class ContentCache:
    """One file per artifact id under ``<project>/.sc-cache/``.

    Entries are not keyed by hash: writing an artifact replaces its previous
    body, so at most one generation per artifact is kept.
    """

    def __init__(self, project_dir: str | Path):
        self.project_dir = Path(project_dir)
        self.cache_dir = self.project_dir / CACHE_DIR_NAME

    def path_for(self, artifact_id: str) -> Path:
        if not artifact_id or "/" in artifact_id or "\\" in artifact_id or artifact_id in (".", ".."):
            raise ValueError(f"invalid artifact id: {artifact_id!r}")
        return self.cache_dir / artifact_id

    def read(self, artifact_id: str) -> str | None:
        """Return the cached body, or None when nothing is cached."""
        path = self.path_for(artifact_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"reading cache entry {path}: {e}") from e

    def write(self, artifact_id: str, content: str) -> Path:
        path = self.path_for(artifact_id)
        try:
            atomic_write_text(path, content)
        except OSError as e:
            raise CacheError(f"writing cache entry {path}: {e}") from e
        logger.debug("cached %s (%d bytes)", artifact_id, len(content))
        return path

    def has(self, artifact_id: str) -> bool:
        return self.path_for(artifact_id).is_file()
