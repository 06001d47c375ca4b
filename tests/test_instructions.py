"""Tests for the instructions loader."""

import tempfile
from pathlib import Path

import pytest

from skillc.errors import InstructionsError
from skillc.instructions import (
    SingleSpec,
    SpecList,
    SpecSource,
    decode_spec,
    extract_sections,
    parse_instructions,
    parse_instructions_text,
)

FULL = """\
---
name: my-app
out: ./dist/
spec:
  - ./api.yaml
  - type: cli
    binary: kubectl
    help-flag: -h
    max-depth: 1
    exclude: [plugin]
  - type: codebase
    path: ./src
    max-files: 200
    include: ["*.go"]
artifacts:
  scripts:
    enabled: false
  skill:
    filename: custom.md
skill:
  license: MIT
  allowed-tools: Bash
  metadata:
    team: platform
provider:
  provider: anthropic
  model: some-model
  base-url: https://proxy.example.com
---

# Product

My app does things.

# Workflows

1. Do this
2. Then that
"""


def test_parse_full_frontmatter():
    inst = parse_instructions_text(FULL)
    fm = inst.frontmatter
    assert fm.name == "my-app"
    assert fm.out == "./dist/"
    assert isinstance(fm.spec, SpecList)

    api, cli, code = inst.spec_sources()
    assert api == SpecSource(path="./api.yaml")
    assert cli.type == "cli" and cli.binary == "kubectl"
    assert cli.help_flag == "-h" and cli.max_depth == 1
    assert cli.exclude == ["plugin"]
    assert code.max_files == 200 and code.include == ["*.go"]

    assert not inst.artifact_settings("scripts").is_enabled
    assert inst.artifact_settings("skill").filename == "custom.md"
    assert inst.artifact_settings("llms").is_enabled

    assert fm.skill.license == "MIT"
    assert fm.skill.allowed_tools == "Bash"
    assert fm.skill.metadata == {"team": "platform"}
    assert fm.provider.model == "some-model"
    assert fm.provider.base_url == "https://proxy.example.com"


def test_sections_split_on_h1():
    inst = parse_instructions_text(FULL)
    assert list(inst.sections) == ["Product", "Workflows"]
    assert inst.sections["Product"] == "My app does things."
    assert inst.sections["Workflows"] == "1. Do this\n2. Then that"
    assert inst.validate() == []


def test_defaults():
    inst = parse_instructions_text("---\nname: tool\n---\n")
    assert inst.frontmatter.out == "./sc-out/"
    assert inst.spec_sources() == [SpecSource(path="./openapi.yaml")]
    assert inst.validate() == ["missing recommended section: # Product"]


def test_spec_variants():
    assert decode_spec("api.yaml") == SingleSpec(SpecSource(path="api.yaml"))
    assert decode_spec({"url": "https://x/api.json"}) == SingleSpec(SpecSource(url="https://x/api.json"))
    assert decode_spec(["a.yaml", {"type": "cli", "binary": "git"}]).sources() == [
        SpecSource(path="a.yaml"),
        SpecSource(type="cli", binary="git"),
    ]
    assert decode_spec(None).sources() == [SpecSource(path="./openapi.yaml")]


def test_unknown_spec_key_raises():
    with pytest.raises(InstructionsError):
        decode_spec({"path": "a.yaml", "colour": "blue"})


def test_bad_integer_raises():
    with pytest.raises(InstructionsError):
        decode_spec({"type": "cli", "binary": "x", "max-depth": "deep"})


def test_missing_name_raises():
    with pytest.raises(InstructionsError) as exc:
        parse_instructions_text("---\nout: ./x/\n---\n# Product\n")
    assert "name" in str(exc.value)


def test_missing_frontmatter_raises():
    with pytest.raises(InstructionsError):
        parse_instructions_text("# Product\n\nNo frontmatter here.\n")
    with pytest.raises(InstructionsError):
        parse_instructions_text("---\nname: x\n# never closed\n")


def test_invalid_yaml_raises():
    with pytest.raises(InstructionsError) as exc:
        parse_instructions_text("---\nname: [x\n---\n")
    assert "frontmatter YAML" in str(exc.value)


def test_env_prefix():
    assert parse_instructions_text("---\nname: my-app\n---\n").env_prefix() == "MY_APP"


def test_extract_sections_ignores_h2_and_preamble():
    sections = extract_sections("preamble\n# One\nbody\n## Sub\nmore\n# Two\n")
    assert sections == {"One": "body\n## Sub\nmore", "Two": ""}


def test_parse_instructions_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "COMPILER_INSTRUCTIONS.md"
        path.write_text(FULL)
        assert parse_instructions(path).frontmatter.name == "my-app"


def test_parse_instructions_missing_file_raises():
    with pytest.raises(InstructionsError):
        parse_instructions("/nonexistent/COMPILER_INSTRUCTIONS.md")
