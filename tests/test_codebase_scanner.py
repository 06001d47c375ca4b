"""Tests for the codebase scanner."""

import json
import logging
import tempfile
from pathlib import Path

import pytest
from git import Repo

from skillc.errors import FetchError, ParseError
from skillc.instructions.models import SpecSource
from skillc.ir.registry import Severity
from skillc.parsers.codebase_scanner import (
    MAX_CONTENT_FILES,
    SKIP_DIRS,
    CodebaseScanner,
    IgnoreRules,
    classify_key_file,
    detect_stack,
)


def _go_project(root: Path) -> None:
    (root / "go.mod").write_text(
        "module example.com/test\n\ngo 1.22\n\nrequire (\n"
        "\tgithub.com/spf13/cobra v1.8.0\n\tgithub.com/stretchr/testify v1.9.0 // indirect\n)\n"
    )
    (root / "main.go").write_text("package main\n\nfunc main() {}\n")
    (root / "internal").mkdir()
    (root / "internal" / "lib.go").write_text("package internal\n")
    (root / ".gitignore").write_text("dist/\n*.tmp\n")
    (root / "dist").mkdir()
    (root / "dist" / "binary").write_text("binary")
    (root / "test.tmp").write_text("tmp")
    (root / "README.md").write_text("# Test\n")


def _scan(root: Path, **kwargs):
    scanner = CodebaseScanner()
    source = SpecSource(type="codebase", path=str(root), **kwargs)
    ir = scanner.parse(scanner.fetch(source), source)
    return scanner, ir


def test_detect():
    scanner = CodebaseScanner()
    assert scanner.detect(SpecSource(type="codebase", path="."))
    assert scanner.detect(SpecSource(type="codebase"))
    assert not scanner.detect(SpecSource(type="openapi"))
    assert not scanner.detect(SpecSource(path="."))


def test_gitignored_files_excluded():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _go_project(root)
        _, ir = _scan(root)

        paths = [f.path for f in ir.structure.file_tree]
        assert "main.go" in paths
        assert "internal" in paths
        assert "internal/lib.go" in paths
        assert "dist/binary" not in paths
        assert "dist" not in paths
        assert "test.tmp" not in paths


def test_go_stack_detected():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _go_project(root)
        _, ir = _scan(root)

        stack = ir.structure.stack
        assert stack.languages == ["Go"]
        assert "Cobra" in stack.frameworks
        assert stack.dependencies["github.com/spf13/cobra"] == "v1.8.0"
        assert ir.metadata["projectName"] == "test"


def test_key_files_and_docs():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _go_project(root)
        _, ir = _scan(root)

        structure = ir.structure
        assert structure.entry_points == ["main.go"]
        key = {k.path: k for k in structure.key_files}
        assert key["main.go"].role == "entrypoint"
        assert "func main" in key["main.go"].content
        assert [d.path for d in structure.docs] == ["README.md"]
        assert structure.docs[0].content == "# Test\n"


def test_max_files_truncates_deterministically():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        for i in range(20):
            (root / f"file{chr(ord('a') + i)}.txt").write_text("content")

        scanner, ir = _scan(root, max_files=5)
        paths = [f.path for f in ir.structure.file_tree]
        assert paths == ["filea.txt", "fileb.txt", "filec.txt", "filed.txt", "filee.txt"]

        _, again = _scan(root, max_files=5)
        assert [f.path for f in again.structure.file_tree] == paths

        warnings = scanner.validate(ir)
        infos = [w for w in warnings if w.severity is Severity.INFO]
        assert len(infos) == 1
        assert "5 of 20" in infos[0].message
        assert any(w.message == "no language stack detected" for w in warnings)


def test_content_cap_is_reported(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "docs").mkdir()
        for i in range(MAX_CONTENT_FILES + 3):
            (root / "docs" / f"page{i:03d}.md").write_text(f"# Page {i}\n")

        with caplog.at_level(logging.WARNING, logger="skillc.parsers.codebase_scanner"):
            scanner, ir = _scan(root)

        docs = ir.structure.docs
        assert len(docs) == MAX_CONTENT_FILES + 3
        assert docs[0].content == "# Page 0\n"
        assert docs[-1].content == ""
        assert ir.metadata["contentsOmitted"] == "3"
        assert "3 more listed without content" in caplog.text

        infos = [w for w in scanner.validate(ir) if w.severity is Severity.INFO]
        assert [w.message for w in infos] == ["3 key/config/doc file(s) listed without content"]


def test_exclude_and_include():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "src").mkdir()
        (root / "src" / "app.py").write_text("pass")
        (root / "src" / "app_test.py").write_text("pass")
        (root / "notes.md").write_text("notes")
        (root / "generated").mkdir()
        (root / "generated" / "big.py").write_text("pass")

        _, ir = _scan(root, exclude=["generated/", "*_test.py"])
        paths = [f.path for f in ir.structure.file_tree]
        assert paths == ["notes.md", "src", "src/app.py"]

        _, ir = _scan(root, include=["*.py"])
        paths = [f.path for f in ir.structure.file_tree]
        assert paths == ["generated/big.py", "src/app.py", "src/app_test.py"]


def test_skip_dirs_pruned():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "node_modules" / "left-pad").mkdir(parents=True)
        (root / "node_modules" / "left-pad" / "index.js").write_text("")
        (root / "index.js").write_text("")
        _, ir = _scan(root)
        assert [f.path for f in ir.structure.file_tree] == ["index.js"]
    assert "node_modules" in SKIP_DIRS
    assert ".git" in SKIP_DIRS


def test_package_json_stack():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "package.json").write_text(
            json.dumps(
                {
                    "name": "shop-api",
                    "scripts": {"start": "node server.js"},
                    "dependencies": {"express": "^4.19.0"},
                    "devDependencies": {"typescript": "^5.4.0"},
                }
            )
        )
        (root / "yarn.lock").write_text("")
        (root / "routes").mkdir()
        (root / "routes" / "users.ts").write_text("export {}")
        _, ir = _scan(root)

        stack = ir.structure.stack
        assert stack.languages == ["TypeScript"]
        assert stack.frameworks == ["Express"]
        assert stack.build_tools == ["yarn"]
        assert stack.scripts == {"start": "node server.js"}
        assert ir.metadata["projectName"] == "shop-api"
        assert {k.path: k.role for k in ir.structure.key_files} == {"routes/users.ts": "routes"}


def test_python_stack():
    stack = detect_stack(
        {"pyproject.toml": '[project]\nname = "svc"\ndependencies = ["fastapi>=0.110", "httpx"]\n'},
        ["pyproject.toml"],
    )
    assert stack.languages == ["Python"]
    assert stack.frameworks == ["FastAPI"]
    assert stack.build_tools == ["pip"]


def test_extension_fallback_when_no_markers():
    stack = detect_stack({}, ["a.rb", "b.rb", "c.py"])
    assert stack.languages == ["Ruby", "Python"]


def test_classify_key_file():
    assert classify_key_file("cmd/server/main.go").value == "entrypoint"
    assert classify_key_file("app/urls.py").value == "routes"
    assert classify_key_file("api/service.proto").value == "schema"
    assert classify_key_file("tests/conftest.py").value == "test-setup"
    assert classify_key_file("lib/util.go") is None
    assert classify_key_file("routes/README.md") is None


def test_ignore_rules():
    rules = IgnoreRules.from_lines(
        ["# comment", "*.log", "!keep.log", "build/", "/docs/internal", "**/fixtures"]
    )
    assert rules.ignored("server.log", is_dir=False)
    assert rules.ignored("logs/app.log", is_dir=False)
    assert not rules.ignored("keep.log", is_dir=False)
    assert rules.ignored("build", is_dir=True)
    assert not rules.ignored("build", is_dir=False)
    assert rules.ignored("docs/internal", is_dir=True)
    assert not rules.ignored("src/docs/internal", is_dir=True)
    assert rules.ignored("tests/data/fixtures", is_dir=True)


def test_repository_metadata_from_git_remote():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        repo = Repo.init(root)
        repo.create_remote("origin", "https://github.com/acme/widget.git")
        repo.close()
        (root / "main.py").write_text("print('hi')\n")

        _, ir = _scan(root)
        assert ir.metadata["repository"] == "https://github.com/acme/widget.git"
        assert ".git" not in [f.path for f in ir.structure.file_tree]


def test_fetch_missing_directory_raises():
    with pytest.raises(FetchError):
        CodebaseScanner().fetch(SpecSource(type="codebase", path="/nonexistent/project"))


def test_fetch_bad_clone_url_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        url = (Path(tmpdir) / "missing-repo").as_uri()
        with pytest.raises(FetchError):
            CodebaseScanner().fetch(SpecSource(type="codebase", url=url))


def test_parse_rejects_garbage():
    source = SpecSource(type="codebase")
    with pytest.raises(ParseError):
        CodebaseScanner().parse(b"not json", source)
    with pytest.raises(ParseError):
        CodebaseScanner().parse(b"{}", source)
