"""End-to-end: instructions file -> registry -> merged IR -> staleness."""

import subprocess
import tempfile
from pathlib import Path

from skillc.generate import Pipeline
from skillc.instructions import parse_instructions
from skillc.ir import Registry, ir_to_json
from skillc.parsers import CLIHelpParser, CodebaseScanner, OpenAPIParser

API_SPEC = """\
openapi: 3.0.0
info:
  title: Widgets
  version: "1.0"
paths:
  /widgets:
    get:
      operationId: listWidgets
      summary: List widgets
      parameters:
        - name: page
          in: query
          description: Page number
          schema: {type: integer}
      responses:
        "200":
          description: Widgets
          content:
            application/json:
              schema:
                type: array
                items:
                  $ref: "#/components/schemas/Widget"
components:
  schemas:
    Widget:
      type: object
      properties:
        id: {type: string}
"""

INSTRUCTIONS = """\
---
name: widgets
spec:
  - ./api.yaml
  - type: cli
    binary: kubectl
    max-depth: 1
---

# Product

Widgets and the clusters they run on.
"""

KUBECTL_PAGES = {
    "kubectl --help": (
        "kubectl controls the Kubernetes cluster manager.\n\n"
        "Basic Commands (Intermediate):\n  explain    Get documentation for a resource\n"
        "  get        Display one or many resources\n\n"
        "Flags:\n  -n, --namespace string   Namespace to use\n"
    ),
    "kubectl get --help": (
        "Display one or many resources.\n\nUsage:\n  kubectl get TYPE [NAME] [flags]\n\n"
        "Flags:\n  -o, --output string   Output format\n"
    ),
    "kubectl explain --help": (
        "Describe fields and structure of various resources.\n\n"
        "Usage:\n  kubectl explain TYPE [flags]\n"
    ),
}


def _runner(argv, timeout):
    return subprocess.CompletedProcess(argv, 0, KUBECTL_PAGES[" ".join(argv)], "")


def _registry() -> Registry:
    registry = Registry()
    registry.register(OpenAPIParser())
    registry.register(CLIHelpParser(runner=_runner))
    registry.register(CodebaseScanner())
    return registry


def _project(tmpdir: str) -> Path:
    root = Path(tmpdir)
    (root / "api.yaml").write_text(API_SPEC)
    (root / "COMPILER_INSTRUCTIONS.md").write_text(INSTRUCTIONS.replace("./api.yaml", str(root / "api.yaml")))
    return root


def test_openapi_and_cli_merge():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _project(tmpdir)
        instructions = parse_instructions(root / "COMPILER_INSTRUCTIONS.md")

        ir, warnings = _registry().process_sources(instructions.spec_sources())

        assert ir.operation_ids() == ["listWidgets", "kubectl", "kubectl_explain", "kubectl_get"]
        assert ir.type_names() == ["Widget"]
        assert [g.name for g in ir.groups] == ["kubectl"]
        assert ir.metadata["title"] == "Widgets"
        assert ir.metadata["binary"] == "kubectl"
        assert warnings == []

        get = ir.find_operation("kubectl_get")
        assert [p.name for p in get.parameters] == ["TYPE", "NAME", "--output"]


def test_serialization_is_stable_across_runs():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _project(tmpdir)
        sources = parse_instructions(root / "COMPILER_INSTRUCTIONS.md").spec_sources()
        first, _ = _registry().process_sources(sources)
        second, _ = _registry().process_sources(sources)
        assert ir_to_json(first) == ir_to_json(second)


def test_spec_change_marks_artifacts_stale():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _project(tmpdir)
        instructions = parse_instructions(root / "COMPILER_INSTRUCTIONS.md")
        ir, _ = _registry().process_sources(instructions.spec_sources())
        before = Pipeline(ir, instructions, root).input_hash

        (root / "api.yaml").write_text(API_SPEC.replace("List widgets", "List all widgets"))
        changed, _ = _registry().process_sources(instructions.spec_sources())
        after = Pipeline(changed, instructions, root).input_hash

        for artifact in Pipeline(ir, instructions, root).artifacts():
            assert before(artifact) != after(artifact)
        assert all(not s.up_to_date for s in Pipeline(changed, instructions, root).plan())
