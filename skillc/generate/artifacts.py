"""Artifact catalogue — ids, output paths and the instruction sections each uses."""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath

from skillc.instructions.models import Instructions


class ArtifactID(Enum):
    SKILL = "skill"
    REFERENCE = "reference"
    EXAMPLES = "examples"
    SCRIPTS = "scripts"
    LLMS = "llms"
    LLMS_API = "llms-api"
    LLMS_FULL = "llms-full"
    CHANGELOG = "changelog"


# Generation order; the changelog goes last so it can compare against the
# artifacts produced before it.
ALL_ARTIFACTS = list(ArtifactID)

# Instruction headings fed to each artifact. Artifacts not listed get every
# section; an empty list means none.
RELEVANT_SECTIONS: dict[ArtifactID, list[str]] = {
    ArtifactID.REFERENCE: [],
    ArtifactID.EXAMPLES: ["Workflows", "Examples", "Common patterns"],
    ArtifactID.SCRIPTS: ["Workflows", "Guardrails", "Conventions"],
    ArtifactID.LLMS: ["Product"],
    ArtifactID.LLMS_API: ["Product", "Conventions"],
    ArtifactID.CHANGELOG: [],
}


def relevant_sections(instructions: Instructions, artifact: ArtifactID) -> str:
    """Render the instruction sections an artifact depends on.

    Sections are emitted as ``# Heading`` blocks in document order, so the
    result is stable and can be hashed.
    """
    wanted = RELEVANT_SECTIONS.get(artifact)
    blocks = []
    for heading, content in instructions.sections.items():
        if wanted is not None and heading not in wanted:
            continue
        blocks.append(f"# {heading}\n\n{content}")
    return "\n\n".join(blocks)


def _default_path(name: str, artifact: ArtifactID) -> PurePosixPath:
    return {
        ArtifactID.SKILL: PurePosixPath(name, "SKILL.md"),
        ArtifactID.REFERENCE: PurePosixPath(name, "references", "reference.md"),
        ArtifactID.EXAMPLES: PurePosixPath(name, "references", "examples.md"),
        ArtifactID.SCRIPTS: PurePosixPath(name, "scripts"),
        ArtifactID.LLMS: PurePosixPath("llms.txt"),
        ArtifactID.LLMS_API: PurePosixPath("llms-api.txt"),
        ArtifactID.LLMS_FULL: PurePosixPath("llms-full.txt"),
        ArtifactID.CHANGELOG: PurePosixPath("CHANGELOG.md"),
    }[artifact]


def artifact_path(instructions: Instructions, artifact: ArtifactID) -> PurePosixPath:
    """Output path relative to the ``out`` directory.

    A ``filename`` override replaces the last path component.
    """
    path = _default_path(instructions.frontmatter.name, artifact)
    filename = instructions.artifact_settings(artifact.value).filename
    if filename:
        path = path.with_name(filename)
    return path


def enabled_artifacts(
    instructions: Instructions, only: list[str] | None = None
) -> list[ArtifactID]:
    """Artifacts to produce, honouring per-artifact toggles and an ``only`` filter."""
    result = []
    for artifact in ALL_ARTIFACTS:
        if only and artifact.value not in only:
            continue
        if not instructions.artifact_settings(artifact.value).is_enabled:
            continue
        result.append(artifact)
    return result
