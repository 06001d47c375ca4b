"""Instruction models — spec sources, frontmatter, and named sections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class SpecSource:
    """One descriptor identifying a spec location and kind.

    Exactly one of ``path``, ``url``, ``command`` or ``binary`` normally
    locates the spec; ``type`` forces a parser (openapi, cli, codebase).
    """

    path: str = ""
    url: str = ""
    command: str = ""
    type: str = ""

    # CLI
    binary: str = ""
    help_flag: str = ""
    max_depth: int = 0
    exclude: list[str] = field(default_factory=list)

    # Codebase
    max_files: int = 0
    include: list[str] = field(default_factory=list)

    def describe(self) -> str:
        """Short human-readable label used in errors and warnings."""
        location = self.path or self.url or self.command or self.binary or "."
        return f"{self.type}:{location}" if self.type else location


# YAML key -> SpecSource attribute
SOURCE_KEYS = {
    "path": "path",
    "url": "url",
    "command": "command",
    "type": "type",
    "binary": "binary",
    "help-flag": "help_flag",
    "max-depth": "max_depth",
    "exclude": "exclude",
    "max-files": "max_files",
    "include": "include",
}


@dataclass
class SingleSpec:
    """The ``spec`` field held one source (a path string or one mapping)."""

    source: SpecSource

    def sources(self) -> list[SpecSource]:
        return [self.source]


@dataclass
class SpecList:
    """The ``spec`` field held a list of sources."""

    items: list[SpecSource] = field(default_factory=list)

    def sources(self) -> list[SpecSource]:
        return list(self.items)


SpecConfig = Union[SingleSpec, SpecList]


@dataclass
class ArtifactSettings:
    """Per-artifact toggle and filename override."""

    enabled: bool | None = None
    filename: str = ""

    @property
    def is_enabled(self) -> bool:
        return True if self.enabled is None else self.enabled


@dataclass
class SkillSettings:
    license: str = ""
    compatibility: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    env: list[str] = field(default_factory=list)
    allowed_tools: str = ""


@dataclass
class ProviderSettings:
    """Per-project provider overrides from the frontmatter."""

    provider: str = ""
    model: str = ""
    api_key: str = ""
    base_url: str = ""


@dataclass
class Frontmatter:
    name: str
    spec: SpecConfig
    out: str = "./sc-out/"
    artifacts: dict[str, ArtifactSettings] = field(default_factory=dict)
    skill: SkillSettings = field(default_factory=SkillSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Instructions:
    """A parsed instructions file: frontmatter plus H1 sections."""

    frontmatter: Frontmatter
    sections: dict[str, str] = field(default_factory=dict)
    raw_body: str = ""

    def spec_sources(self) -> list[SpecSource]:
        return self.frontmatter.spec.sources()

    def artifact_settings(self, artifact_id: str) -> ArtifactSettings:
        return self.frontmatter.artifacts.get(artifact_id, ArtifactSettings())

    def validate(self) -> list[str]:
        """Return warnings for missing recommended content."""
        warnings = []
        if "Product" not in self.sections:
            warnings.append("missing recommended section: # Product")
        return warnings

    def env_prefix(self) -> str:
        """Environment variable prefix derived from the name (my-app -> MY_APP)."""
        return self.frontmatter.name.replace("-", "_").upper()
