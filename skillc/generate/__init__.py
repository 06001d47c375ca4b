"""Generation gate — staleness checks and bookkeeping around an external generator."""

from skillc.generate.artifacts import ArtifactID, artifact_path, enabled_artifacts, relevant_sections
from skillc.generate.pipeline import (
    ArtifactResult,
    ArtifactStatus,
    GenerationRequest,
    GenerationResponse,
    Generator,
    Outcome,
    Pipeline,
)
from skillc.generate.prompts import system_prompt_for

__all__ = [
    "ArtifactID",
    "ArtifactResult",
    "ArtifactStatus",
    "GenerationRequest",
    "GenerationResponse",
    "Generator",
    "Outcome",
    "Pipeline",
    "artifact_path",
    "enabled_artifacts",
    "relevant_sections",
    "system_prompt_for",
]
