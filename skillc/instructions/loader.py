"""Instructions loader — parse an instructions markdown file.

The file starts with YAML frontmatter between ``---`` delimiters; the body is
split into sections on H1 headings. The ``spec`` frontmatter field may be a
path string, a single source mapping, or a list mixing both; it is decoded
once here into ``SingleSpec`` or ``SpecList``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from skillc.errors import InstructionsError
from skillc.instructions.models import (
    SOURCE_KEYS,
    ArtifactSettings,
    Frontmatter,
    Instructions,
    ProviderSettings,
    SingleSpec,
    SkillSettings,
    SpecConfig,
    SpecList,
    SpecSource,
)

logger = logging.getLogger(__name__)

DEFAULT_SPEC_PATH = "./openapi.yaml"
DEFAULT_OUT = "./sc-out/"
INSTRUCTIONS_FILE = "COMPILER_INSTRUCTIONS.md"


def parse_instructions(path: str | Path) -> Instructions:
    """Read and parse an instructions file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InstructionsError(f"reading instructions file {path}: {e}") from e
    return parse_instructions_text(text)


def parse_instructions_text(text: str) -> Instructions:
    """Parse instructions from a string."""
    fm_text, body = _split_frontmatter(text)

    try:
        data = yaml.safe_load(fm_text) or {}
    except yaml.YAMLError as e:
        raise InstructionsError(f"parsing frontmatter YAML: {e}") from e
    if not isinstance(data, dict):
        raise InstructionsError("parsing frontmatter YAML: expected a mapping")

    name = data.get("name")
    if not name:
        raise InstructionsError("frontmatter missing required field: name")

    frontmatter = Frontmatter(
        name=str(name),
        spec=decode_spec(data.get("spec")),
        out=data.get("out") or DEFAULT_OUT,
        artifacts=_decode_artifacts(data.get("artifacts") or {}),
        skill=_decode_skill(data.get("skill") or {}),
        provider=_decode_provider(data.get("provider") or {}),
        extra={
            k: v
            for k, v in data.items()
            if k not in ("name", "spec", "out", "artifacts", "skill", "provider")
        },
    )

    sections = extract_sections(body)
    logger.debug(
        "instructions %r: %d spec source(s), %d section(s)",
        frontmatter.name,
        len(frontmatter.spec.sources()),
        len(sections),
    )
    return Instructions(frontmatter=frontmatter, sections=sections, raw_body=body)


# ---------------------------------------------------------------------------
# Spec sources
# ---------------------------------------------------------------------------


def decode_spec(raw: Any) -> SpecConfig:
    """Decode the raw ``spec`` field into a tagged variant."""
    if raw is None:
        return SingleSpec(SpecSource(path=DEFAULT_SPEC_PATH))
    if isinstance(raw, list):
        return SpecList([_decode_source(item) for item in raw])
    return SingleSpec(_decode_source(raw))


def _decode_source(raw: Any) -> SpecSource:
    if isinstance(raw, str):
        return SpecSource(path=raw)
    if not isinstance(raw, dict):
        raise InstructionsError(f"unsupported spec source: {raw!r}")

    unknown = [k for k in raw if k not in SOURCE_KEYS]
    if unknown:
        raise InstructionsError(f"unknown spec source key(s): {', '.join(map(str, unknown))}")

    source = SpecSource()
    for key, value in raw.items():
        attr = SOURCE_KEYS[key]
        if attr in ("max_depth", "max_files"):
            try:
                value = int(value)
            except (TypeError, ValueError) as e:
                raise InstructionsError(f"spec source '{key}' must be an integer") from e
        elif attr in ("exclude", "include"):
            value = [str(v) for v in (value if isinstance(value, list) else [value])]
        else:
            value = "" if value is None else str(value)
        setattr(source, attr, value)
    return source


def _decode_artifacts(raw: dict) -> dict[str, ArtifactSettings]:
    artifacts = {}
    for artifact_id, settings in raw.items():
        settings = settings or {}
        artifacts[str(artifact_id)] = ArtifactSettings(
            enabled=settings.get("enabled"),
            filename=settings.get("filename", ""),
        )
    return artifacts


def _decode_skill(raw: dict) -> SkillSettings:
    return SkillSettings(
        license=raw.get("license", ""),
        compatibility=raw.get("compatibility", ""),
        metadata={str(k): str(v) for k, v in (raw.get("metadata") or {}).items()},
        env=list(raw.get("env") or []),
        allowed_tools=raw.get("allowed-tools", ""),
    )


def _decode_provider(raw: dict) -> ProviderSettings:
    return ProviderSettings(
        provider=raw.get("provider", ""),
        model=raw.get("model", ""),
        api_key=raw.get("api-key", ""),
        base_url=raw.get("base-url", ""),
    )


# ---------------------------------------------------------------------------
# Markdown helpers
# ---------------------------------------------------------------------------


def _split_frontmatter(text: str) -> tuple[str, str]:
    trimmed = text.strip()
    if not trimmed.startswith("---"):
        raise InstructionsError("instructions file must start with YAML frontmatter (---)")

    rest = trimmed[3:]
    idx = rest.find("\n---")
    if idx < 0:
        raise InstructionsError("instructions file missing closing frontmatter delimiter (---)")

    return rest[:idx].strip(), rest[idx + 4 :].strip()


def extract_sections(body: str) -> dict[str, str]:
    """Split a markdown body on H1 headings into ``{heading: content}``."""
    sections: dict[str, str] = {}
    current = ""
    lines: list[str] = []

    for line in body.splitlines():
        if line.startswith("# "):
            if current:
                sections[current] = "\n".join(lines).strip()
            current = line[2:].strip()
            lines = []
        else:
            lines.append(line)

    if current:
        sections[current] = "\n".join(lines).strip()
    return sections
