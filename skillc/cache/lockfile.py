"""Lockfile — provenance records that gate artifact regeneration.

Every time an artifact is generated and persisted, its input hash, output
hash, model and timestamp are recorded in ``.sc-lock.json`` at the project
root. An artifact is up to date only when the recorded input hash equals the
hash of the current inputs.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from skillc.errors import LockfileError
from skillc.utils.fs import atomic_write_text

logger = logging.getLogger(__name__)

LOCKFILE_NAME = ".sc-lock.json"


def hash_input(spec_content: str, relevant_sections: str, system_prompt: str) -> str:
    """SHA-256 over spec content, instruction sections and prompt, in that order."""
    h = hashlib.sha256()
    h.update(spec_content.encode("utf-8"))
    h.update(relevant_sections.encode("utf-8"))
    h.update(system_prompt.encode("utf-8"))
    return h.hexdigest()


def hash_output(content: str) -> str:
    """SHA-256 of generated content. Recorded for audit only."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass
class LockEntry:
    input_hash: str
    output_hash: str = ""
    timestamp: str = ""  # RFC 3339, UTC
    model: str = ""


@dataclass
class LockFile:
    artifacts: dict[str, LockEntry] = field(default_factory=dict)

    def is_up_to_date(self, artifact_id: str, input_hash: str) -> bool:
        entry = self.artifacts.get(artifact_id)
        if entry is None:
            return False
        return entry.input_hash == input_hash

    def update_entry(
        self, artifact_id: str, input_hash: str, output_hash: str, model: str
    ) -> LockEntry:
        entry = LockEntry(
            input_hash=input_hash,
            output_hash=output_hash,
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            model=model,
        )
        self.artifacts[artifact_id] = entry
        return entry


def lockfile_path(project_dir: str | Path) -> Path:
    return Path(project_dir) / LOCKFILE_NAME


def load_lockfile(project_dir: str | Path) -> LockFile:
    """Load the lockfile from ``project_dir``.

    A missing lockfile yields an empty one (everything is stale). An
    unreadable or malformed lockfile raises ``LockfileError``.
    """
    path = lockfile_path(project_dir)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("no lockfile at %s", path)
        return LockFile()
    except OSError as e:
        raise LockfileError(f"reading lockfile {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LockfileError(f"parsing lockfile {path}: {e}") from e
    if not isinstance(data, dict):
        raise LockfileError(f"parsing lockfile {path}: expected a JSON object")

    raw = data.get("artifacts") or {}
    if not isinstance(raw, dict):
        raise LockfileError(f"parsing lockfile {path}: 'artifacts' must be an object")

    artifacts = {}
    for artifact_id, entry in raw.items():
        if not isinstance(entry, dict) or not isinstance(entry.get("inputHash"), str):
            raise LockfileError(f"parsing lockfile {path}: bad entry for '{artifact_id}'")
        artifacts[artifact_id] = LockEntry(
            input_hash=entry["inputHash"],
            output_hash=entry.get("outputHash", ""),
            timestamp=entry.get("timestamp", ""),
            model=entry.get("model", ""),
        )
    return LockFile(artifacts=artifacts)


def save_lockfile(project_dir: str | Path, lockfile: LockFile) -> None:
    """Write the lockfile atomically."""
    data = {
        "artifacts": {
            artifact_id: {
                "inputHash": entry.input_hash,
                "outputHash": entry.output_hash,
                "timestamp": entry.timestamp,
                "model": entry.model,
            }
            for artifact_id, entry in lockfile.artifacts.items()
        }
    }
    path = lockfile_path(project_dir)
    try:
        atomic_write_text(path, json.dumps(data, indent=2) + "\n")
    except OSError as e:
        raise LockfileError(f"writing lockfile {path}: {e}") from e
