"""Cache — lockfile provenance and last-generated artifact bodies.

Together these let the pipeline skip the external generator when nothing
relevant to an artifact has changed since it was last produced.
"""

from skillc.cache.content_cache import CACHE_DIR_NAME, ContentCache
from skillc.cache.lockfile import (
    LOCKFILE_NAME,
    LockEntry,
    LockFile,
    hash_input,
    hash_output,
    load_lockfile,
    save_lockfile,
)

__all__ = [
    "CACHE_DIR_NAME",
    "ContentCache",
    "LOCKFILE_NAME",
    "LockEntry",
    "LockFile",
    "hash_input",
    "hash_output",
    "load_lockfile",
    "save_lockfile",
]
