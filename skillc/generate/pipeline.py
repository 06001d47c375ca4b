"""Generation pipeline — decides which artifacts need the generator, and records results.

The generator itself is an external collaborator behind the ``Generator``
protocol. For every enabled artifact the pipeline computes an input hash over
the serialized IR, the artifact's instruction sections and its system prompt.
Artifacts whose hash matches the lockfile and whose body is cached are
skipped; everything else is sent to the generator. A successful generation
is cached, written to the output directory, and only then recorded in the
lockfile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from skillc.cache.content_cache import ContentCache
from skillc.cache.lockfile import LockFile, hash_input, hash_output, load_lockfile, save_lockfile
from skillc.generate.artifacts import ArtifactID, artifact_path, enabled_artifacts, relevant_sections
from skillc.generate.output import load_previous_artifacts, write_artifact
from skillc.generate.prompts import system_prompt_for
from skillc.instructions.models import Instructions
from skillc.ir.models import IntermediateRepr, ir_to_json

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 16000


# ---------------------------------------------------------------------------
# Generator contract
# ---------------------------------------------------------------------------


@dataclass
class GenerationRequest:
    system_prompt: str
    user_message: str
    model: str = ""
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass
class GenerationResponse:
    content: str
    model: str = ""
    tokens_in: int = 0
    tokens_out: int = 0


class Generator(Protocol):
    def generate(self, request: GenerationRequest) -> GenerationResponse: ...


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class ArtifactStatus:
    artifact: ArtifactID
    input_hash: str
    up_to_date: bool


class Outcome(Enum):
    GENERATED = "generated"
    CACHED = "cached"
    FAILED = "failed"


@dataclass
class ArtifactResult:
    artifact: ArtifactID
    outcome: Outcome
    content: str = ""
    error: str = ""
    paths: list[Path] = field(default_factory=list)
    tokens_in: int = 0
    tokens_out: int = 0


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class Pipeline:
    def __init__(
        self,
        ir: IntermediateRepr,
        instructions: Instructions,
        project_dir: str | Path,
        only: list[str] | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        previous: dict[ArtifactID, str] | None = None,
    ):
        self.ir = ir
        self.instructions = instructions
        self.project_dir = Path(project_dir)
        self.out_dir = self.project_dir / instructions.frontmatter.out
        self.only = only
        self.max_tokens = max_tokens
        self.previous = previous
        self.cache = ContentCache(self.project_dir)
        self._spec_content = ir_to_json(ir)

    def artifacts(self) -> list[ArtifactID]:
        return enabled_artifacts(self.instructions, self.only)

    def input_hash(self, artifact: ArtifactID) -> str:
        return hash_input(
            self._spec_content,
            relevant_sections(self.instructions, artifact),
            system_prompt_for(artifact),
        )

    def plan(self, lockfile: LockFile | None = None) -> list[ArtifactStatus]:
        """Staleness of every enabled artifact, without generating anything."""
        lockfile = lockfile if lockfile is not None else load_lockfile(self.project_dir)
        statuses = []
        for artifact in self.artifacts():
            digest = self.input_hash(artifact)
            up_to_date = lockfile.is_up_to_date(artifact.value, digest) and self.cache.has(artifact.value)
            statuses.append(ArtifactStatus(artifact, digest, up_to_date))
        return statuses

    def run(self, generator: Generator, model: str, force: bool = False) -> list[ArtifactResult]:
        lockfile = load_lockfile(self.project_dir)
        if self.previous is None:
            self.previous = load_previous_artifacts(self.out_dir, self.instructions)

        results = []
        for status in self.plan(lockfile):
            artifact = status.artifact
            if status.up_to_date and not force:
                logger.info("%s is up to date, skipping", artifact.value)
                results.append(
                    ArtifactResult(artifact, Outcome.CACHED, content=self.cache.read(artifact.value) or "")
                )
                continue

            request = GenerationRequest(
                system_prompt=system_prompt_for(artifact),
                user_message=self.user_message(artifact),
                model=model,
                max_tokens=self.max_tokens,
            )
            logger.info("generating %s", artifact.value)
            try:
                response = generator.generate(request)
            except Exception as e:
                logger.error("generating %s failed: %s", artifact.value, e)
                results.append(ArtifactResult(artifact, Outcome.FAILED, error=str(e)))
                continue

            self.cache.write(artifact.value, response.content)
            paths = write_artifact(self.out_dir, self.instructions, artifact, response.content)
            lockfile.update_entry(
                artifact.value,
                status.input_hash,
                hash_output(response.content),
                response.model or model,
            )
            save_lockfile(self.project_dir, lockfile)

            results.append(
                ArtifactResult(
                    artifact,
                    Outcome.GENERATED,
                    content=response.content,
                    paths=paths,
                    tokens_in=response.tokens_in,
                    tokens_out=response.tokens_out,
                )
            )
        return results

    def user_message(self, artifact: ArtifactID) -> str:
        fm = self.instructions.frontmatter
        parts = [
            f"Skill name: {fm.name}",
            f"Environment variable prefix: {self.instructions.env_prefix()}_",
        ]

        if artifact is ArtifactID.SKILL:
            skill = fm.skill
            extra = []
            if skill.license:
                extra.append(f"license: {skill.license}")
            if skill.compatibility:
                extra.append(f"compatibility: {skill.compatibility}")
            if skill.allowed_tools:
                extra.append(f"allowed-tools: {skill.allowed_tools}")
            for key, value in skill.metadata.items():
                extra.append(f"metadata.{key}: {value}")
            if skill.env:
                extra.append(f"env: {', '.join(skill.env)}")
            if extra:
                parts.append("Frontmatter fields:\n" + "\n".join(f"- {line}" for line in extra))

        parts.append(f"## Interface\n\n```json\n{ir_to_json(self.ir, indent=2)}\n```")

        sections = relevant_sections(self.instructions, artifact)
        if sections:
            parts.append(f"## Instructions\n\n{sections}")

        if artifact is ArtifactID.CHANGELOG:
            parts.append(self._previous_artifacts_block())

        return "\n\n".join(parts)

    def _previous_artifacts_block(self) -> str:
        previous = {a: c for a, c in (self.previous or {}).items() if c}
        if not previous:
            return "This is the first generation; there are no previous artifacts."

        blocks = []
        for artifact, content in previous.items():
            if artifact is ArtifactID.CHANGELOG:
                label = "Previous CHANGELOG.md"
            else:
                label = f"Previous {artifact.value} ({artifact_path(self.instructions, artifact)})"
            blocks.append(f"## {label}\n\n{content}")
        return "\n\n".join(blocks)
