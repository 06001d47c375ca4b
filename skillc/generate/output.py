"""Writing generated artifacts into the output directory."""

from __future__ import annotations

import logging
import os
import re
from datetime import date
from pathlib import Path

from skillc.generate.artifacts import ALL_ARTIFACTS, ArtifactID, artifact_path
from skillc.instructions.models import Instructions
from skillc.utils.fs import atomic_write_text

logger = logging.getLogger(__name__)

# ```name.sh ... ``` blocks in scripts output
_SCRIPT_BLOCK_RE = re.compile(r"^```([\w.-]+\.(?:sh|bash|py))\s*\n(.*?)^```", re.MULTILINE | re.DOTALL)


def load_previous_artifacts(out_dir: Path, instructions: Instructions) -> dict[ArtifactID, str]:
    """Read artifacts left by an earlier run; missing files are skipped."""
    previous = {}
    for artifact in ALL_ARTIFACTS:
        if artifact is ArtifactID.SCRIPTS:
            continue
        path = out_dir / artifact_path(instructions, artifact)
        if path.is_file():
            previous[artifact] = path.read_text(encoding="utf-8")
    return previous


def prepend_changelog_entry(entry: str, existing: str, today: date | None = None) -> str:
    """Put a dated entry above the previous ones, keeping a top ``# `` header."""
    today = today or date.today()
    block = f"## {today:%Y-%m-%d} — {today:%A}\n\n{entry.strip()}\n"

    if not existing:
        return f"# CHANGELOG\n\n{block}"

    lines = existing.split("\n", 2)
    if lines[0].strip().startswith("# "):
        rest = lines[2] if len(lines) == 3 else ""
        return f"{lines[0]}\n\n{block}\n{rest}"
    return f"{block}\n{existing}"


def write_scripts(scripts_dir: Path, content: str) -> list[Path]:
    """Split fenced ``filename`` blocks into executable files."""
    written = []
    for name, body in _SCRIPT_BLOCK_RE.findall(content):
        path = scripts_dir / name
        atomic_write_text(path, body)
        os.chmod(path, 0o755)
        written.append(path)
    if not written:
        logger.warning("scripts output contained no fenced script blocks")
    return written


def write_artifact(
    out_dir: Path, instructions: Instructions, artifact: ArtifactID, content: str
) -> list[Path]:
    """Write one artifact under ``out_dir`` and return the files written."""
    path = out_dir / artifact_path(instructions, artifact)

    if artifact is ArtifactID.SCRIPTS:
        return write_scripts(path, content)

    if artifact is ArtifactID.CHANGELOG:
        existing = path.read_text(encoding="utf-8") if path.is_file() else ""
        content = prepend_changelog_entry(content, existing)

    atomic_write_text(path, content)
    return [path]
