"""Codebase scanner — describes a source tree as a ProjectStructure.

``fetch`` does all the filesystem work: it walks the tree (or a shallow clone
when the source has a ``url``), applies ignore rules, and reads the handful of
files worth showing a model. The result is a JSON snapshot, so ``parse`` is
a pure function of its input bytes.

Snapshot layout::

    {"root": "myproj", "repository": "", "truncated": false, "total": 12,
     "entries": [{"path": "cmd", "isDir": true, "size": 0}, ...],
     "contents": {"go.mod": "module ...", ...}, "contentsOmitted": 0}
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

from git import GitCommandError

from skillc.errors import FetchError, ParseError
from skillc.instructions.models import SpecSource
from skillc.ir.models import (
    ConfigFile,
    DocFile,
    FileEntry,
    IntermediateRepr,
    KeyFile,
    KeyFileRole,
    ProjectStructure,
    StackInfo,
)
from skillc.ir.registry import Severity, SpecParser, ValidationWarning
from skillc.utils.git_ops import clone_shallow, remote_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 1000
MAX_CONTENT_BYTES = 64 * 1024
MAX_CONTENT_FILES = 50

# Directories never worth walking
SKIP_DIRS = {
    ".git", ".hg", ".svn", "__pycache__", "node_modules", ".venv", "venv",
    "env", ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache", "dist",
    "build", "target", "vendor", ".next", ".nuxt", "coverage", ".idea",
    ".vscode", ".sc-cache",
}

# Root-level files that identify a stack
MARKER_FILES = {
    "go.mod", "package.json", "tsconfig.json", "pyproject.toml", "requirements.txt",
    "setup.py", "Pipfile", "Cargo.toml", "pom.xml", "build.gradle",
    "build.gradle.kts", "Gemfile", "composer.json", "mix.exs", "Makefile",
    "Dockerfile", "yarn.lock", "pnpm-lock.yaml", "package-lock.json", "poetry.lock",
}

CONFIG_NAMES = {
    ".env.example", "tsconfig.json", "setup.cfg", "tox.ini", ".editorconfig",
    "docker-compose.yml", "docker-compose.yaml", "config.yaml", "config.yml",
    "config.json", "config.toml", "settings.py", "application.yml",
    "application.properties", ".eslintrc.json", ".prettierrc",
}
CONFIG_PATTERNS = ("*.config.js", "*.config.ts", "*.config.mjs", ".eslintrc*")

DOC_PREFIXES = ("README", "CONTRIBUTING", "ARCHITECTURE")
DOC_SUFFIXES = {".md", ".rst", ".txt", ""}

ENTRYPOINT_NAMES = {
    "main.go", "main.py", "__main__.py", "app.py", "server.py", "cli.py",
    "manage.py", "main.rs", "index.js", "index.ts", "server.js", "server.ts",
    "main.ts", "main.js", "app.js", "app.ts",
}
ROUTE_DIRS = {"routes", "routers", "handlers", "controllers"}
ROUTE_STEMS = {"routes", "router", "urls", "views", "handlers", "endpoints"}
SCHEMA_NAMES = {"schema.sql", "models.py", "schema.py", "schema.prisma", "schema.graphql"}
SCHEMA_SUFFIXES = {".proto", ".graphql", ".gql", ".prisma"}
TEST_SETUP_NAMES = {
    "conftest.py", "pytest.ini", "jest.config.js", "jest.config.ts",
    "vitest.config.ts", "vitest.config.js", "karma.conf.js", "setup_test.go",
    "main_test.go", "spec_helper.rb", "rails_helper.rb",
}

# Extension -> language, for trees without marker files
LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".kt": "Kotlin",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".swift": "Swift",
    ".ex": "Elixir",
    ".exs": "Elixir",
    ".c": "C",
    ".cpp": "C++",
}

JS_FRAMEWORKS = {
    "react": "React",
    "next": "Next.js",
    "vue": "Vue",
    "svelte": "Svelte",
    "@angular/core": "Angular",
    "express": "Express",
    "fastify": "Fastify",
    "koa": "Koa",
    "hono": "Hono",
    "@nestjs/core": "NestJS",
}
GO_FRAMEWORKS = {
    "github.com/gin-gonic/gin": "Gin",
    "github.com/labstack/echo": "Echo",
    "github.com/go-chi/chi": "Chi",
    "github.com/gofiber/fiber": "Fiber",
    "github.com/spf13/cobra": "Cobra",
    "google.golang.org/grpc": "gRPC",
}
PY_FRAMEWORKS = {
    "django": "Django",
    "flask": "Flask",
    "fastapi": "FastAPI",
    "starlette": "Starlette",
    "click": "Click",
    "typer": "Typer",
}
RUST_FRAMEWORKS = {"actix-web": "Actix Web", "axum": "Axum", "rocket": "Rocket", "clap": "Clap"}


class CodebaseScanner(SpecParser):
    """Spec parser for ``type: codebase`` sources."""

    name = "codebase"

    def detect(self, source: SpecSource) -> bool:
        return source.type == "codebase"

    def fetch(self, source: SpecSource) -> bytes:
        if source.url:
            try:
                checkout = clone_shallow(source.url)
            except GitCommandError as e:
                raise FetchError(source, f"cloning repository: {e}") from e
            with checkout:
                snapshot = scan_tree(checkout.local_path, source, repository=source.url)
        else:
            root = Path(source.path or ".").expanduser().resolve()
            if not root.is_dir():
                raise FetchError(source, f"not a directory: {root}")
            snapshot = scan_tree(root, source, repository=remote_url(root))
        return json.dumps(snapshot).encode("utf-8")

    def parse(self, data: bytes, source: SpecSource) -> IntermediateRepr:
        try:
            snapshot = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(source, f"invalid codebase snapshot: {e}") from e
        if not isinstance(snapshot, dict) or "entries" not in snapshot:
            raise ParseError(source, "invalid codebase snapshot: missing entries")

        contents: dict[str, str] = snapshot.get("contents") or {}
        structure = ProjectStructure(
            file_tree=[
                FileEntry(path=e["path"], is_dir=bool(e.get("isDir")), size=int(e.get("size", 0)))
                for e in snapshot["entries"]
            ]
        )
        paths = [e.path for e in structure.file_tree if not e.is_dir]
        structure.stack = detect_stack(contents, paths)

        for path in paths:
            role = classify_key_file(path)
            if role is not None:
                structure.key_files.append(KeyFile(path=path, content=contents.get(path, ""), role=role.value))
                if role is KeyFileRole.ENTRYPOINT:
                    structure.entry_points.append(path)
            if _is_config(path):
                structure.config_files.append(ConfigFile(path=path, content=contents.get(path, "")))
            if _is_doc(path):
                structure.docs.append(DocFile(path=path, content=contents.get(path, "")))

        metadata = {"projectName": _project_name(contents) or snapshot.get("root", "")}
        if snapshot.get("repository"):
            metadata["repository"] = snapshot["repository"]
        if snapshot.get("truncated"):
            metadata["truncatedFrom"] = str(snapshot.get("total", ""))
        if snapshot.get("contentsOmitted"):
            metadata["contentsOmitted"] = str(snapshot["contentsOmitted"])

        return IntermediateRepr(structure=structure, metadata=metadata)

    def validate(self, ir: IntermediateRepr) -> list[ValidationWarning]:
        warnings = []
        if "truncatedFrom" in ir.metadata:
            kept = len(ir.structure.file_tree) if ir.structure else 0
            warnings.append(
                ValidationWarning(
                    self.name,
                    f"file tree truncated to {kept} of {ir.metadata['truncatedFrom']} entries (max-files)",
                    Severity.INFO,
                )
            )
        if "contentsOmitted" in ir.metadata:
            warnings.append(
                ValidationWarning(
                    self.name,
                    f"{ir.metadata['contentsOmitted']} key/config/doc file(s) listed without content",
                    Severity.INFO,
                )
            )
        if ir.structure is None or ir.structure.stack is None or not ir.structure.stack.languages:
            warnings.append(ValidationWarning(self.name, "no language stack detected"))
        return warnings


# ---------------------------------------------------------------------------
# Ignore rules
# ---------------------------------------------------------------------------


@dataclass
class IgnoreRule:
    pattern: str
    negate: bool = False
    dir_only: bool = False
    anchored: bool = False

    @classmethod
    def from_line(cls, line: str) -> IgnoreRule | None:
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        rule = cls(pattern=line)
        if rule.pattern.startswith("!"):
            rule.negate, rule.pattern = True, rule.pattern[1:]
        if rule.pattern.endswith("/"):
            rule.dir_only, rule.pattern = True, rule.pattern.rstrip("/")
        if "/" in rule.pattern:
            rule.anchored, rule.pattern = True, rule.pattern.lstrip("/")
        return rule if rule.pattern else None

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        if self.anchored:
            if self.pattern.startswith("**/"):
                tail = self.pattern[3:]
                parts = rel_path.split("/")
                return any(fnmatchcase("/".join(parts[i:]), tail) for i in range(len(parts)))
            return fnmatchcase(rel_path, self.pattern)
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


class IgnoreRules:
    """Ordered ignore rules; the last matching rule decides."""

    def __init__(self, rules: list[IgnoreRule] | None = None):
        self.rules = rules or []

    @classmethod
    def from_lines(cls, lines) -> IgnoreRules:
        return cls([r for r in (IgnoreRule.from_line(line) for line in lines) if r is not None])

    @classmethod
    def for_root(cls, root: Path, extra: list[str]) -> IgnoreRules:
        lines: list[str] = []
        gitignore = root / ".gitignore"
        if gitignore.is_file():
            lines.extend(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())
        lines.extend(extra)
        return cls.from_lines(lines)

    def ignored(self, rel_path: str, is_dir: bool) -> bool:
        result = False
        for rule in self.rules:
            if rule.matches(rel_path, is_dir):
                result = not rule.negate
        return result


# ---------------------------------------------------------------------------
# Tree walk
# ---------------------------------------------------------------------------


def scan_tree(root: Path, source: SpecSource, repository: str = "") -> dict:
    """Walk ``root`` and build the snapshot dict ``parse`` consumes."""
    rules = IgnoreRules.for_root(root, source.exclude)
    max_files = source.max_files or DEFAULT_MAX_FILES
    entries: list[dict] = []

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept_dirs = []
        for name in sorted(dirnames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if name in SKIP_DIRS or rules.ignored(rel, is_dir=True):
                continue
            kept_dirs.append(name)
            if not source.include:
                entries.append({"path": rel, "isDir": True, "size": 0})
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if rules.ignored(rel, is_dir=False):
                continue
            if source.include and not _included(rel, source.include):
                continue
            try:
                size = (Path(dirpath) / name).lstat().st_size
            except OSError as e:
                logger.debug("skipping %s: %s", rel, e)
                continue
            entries.append({"path": rel, "isDir": False, "size": size})

    entries.sort(key=lambda e: e["path"])
    total = len(entries)
    truncated = total > max_files
    entries = entries[:max_files]

    to_read = [name for name in sorted(MARKER_FILES) if (root / name).is_file()]
    for entry in entries:
        if not entry["isDir"] and _wants_content(entry["path"]) and entry["path"] not in to_read:
            to_read.append(entry["path"])

    contents = {}
    for rel in to_read[:MAX_CONTENT_FILES]:
        text = _read_capped(root / rel)
        if text is not None:
            contents[rel] = text
    omitted = to_read[MAX_CONTENT_FILES:]
    if omitted:
        logger.warning(
            "%s: read %d files, %d more listed without content (first: %s)",
            root,
            MAX_CONTENT_FILES,
            len(omitted),
            omitted[0],
        )

    logger.debug("scanned %s: %d of %d entries, %d file(s) read", root, len(entries), total, len(contents))
    return {
        "root": root.name,
        "repository": repository,
        "truncated": truncated,
        "total": total,
        "entries": entries,
        "contents": contents,
        "contentsOmitted": len(omitted),
    }


def _included(rel_path: str, patterns: list[str]) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    return any(fnmatchcase(rel_path, p) or fnmatchcase(name, p) for p in patterns)


def _read_capped(path: Path) -> str | None:
    try:
        with open(path, "rb") as f:
            data = f.read(MAX_CONTENT_BYTES)
    except OSError as e:
        logger.warning("could not read %s: %s", path, e)
        return None
    return data.decode("utf-8", errors="replace")


def _wants_content(rel_path: str) -> bool:
    return classify_key_file(rel_path) is not None or _is_config(rel_path) or _is_doc(rel_path)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_key_file(rel_path: str) -> KeyFileRole | None:
    """Role of a file worth reading in full, or None."""
    path = PurePosixPath(rel_path)
    name = path.name
    if name in TEST_SETUP_NAMES:
        return KeyFileRole.TEST_SETUP
    if name in ENTRYPOINT_NAMES or (len(path.parts) == 3 and path.parts[0] == "cmd" and name == "main.go"):
        return KeyFileRole.ENTRYPOINT
    if name in SCHEMA_NAMES or path.suffix in SCHEMA_SUFFIXES:
        return KeyFileRole.SCHEMA
    if path.stem in ROUTE_STEMS or any(part in ROUTE_DIRS for part in path.parts[:-1]):
        if path.suffix in LANGUAGE_BY_SUFFIX:
            return KeyFileRole.ROUTES
    return None


def _is_config(rel_path: str) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    return name in CONFIG_NAMES or any(fnmatchcase(name, p) for p in CONFIG_PATTERNS)


def _is_doc(rel_path: str) -> bool:
    path = PurePosixPath(rel_path)
    if path.parts[0] == "docs" and path.suffix == ".md":
        return True
    return path.name.upper().startswith(DOC_PREFIXES) and path.suffix.lower() in DOC_SUFFIXES


# ---------------------------------------------------------------------------
# Stack detection
# ---------------------------------------------------------------------------


def detect_stack(contents: dict[str, str], paths: list[str]) -> StackInfo:
    """Infer languages, frameworks, build tools and dependencies from markers."""
    stack = StackInfo()
    names = set(paths)

    def add(target: list[str], value: str) -> None:
        if value not in target:
            target.append(value)

    if "go.mod" in contents:
        add(stack.languages, "Go")
        add(stack.build_tools, "go")
        for module, version in _go_requires(contents["go.mod"]).items():
            stack.dependencies[module] = version
            for prefix, framework in GO_FRAMEWORKS.items():
                if module.startswith(prefix):
                    add(stack.frameworks, framework)

    if "package.json" in contents:
        try:
            pkg = json.loads(contents["package.json"])
        except json.JSONDecodeError:
            pkg = {}
        deps = {**(pkg.get("dependencies") or {}), **(pkg.get("devDependencies") or {})}
        typescript = "tsconfig.json" in contents or "typescript" in deps
        add(stack.languages, "TypeScript" if typescript else "JavaScript")
        stack.dependencies.update({str(k): str(v) for k, v in deps.items()})
        stack.scripts.update({str(k): str(v) for k, v in (pkg.get("scripts") or {}).items()})
        for dep, framework in JS_FRAMEWORKS.items():
            if dep in deps:
                add(stack.frameworks, framework)
        if "pnpm-lock.yaml" in names:
            add(stack.build_tools, "pnpm")
        elif "yarn.lock" in names:
            add(stack.build_tools, "yarn")
        else:
            add(stack.build_tools, "npm")

    python_markers = [m for m in ("pyproject.toml", "requirements.txt", "setup.py", "Pipfile") if m in contents]
    if python_markers:
        add(stack.languages, "Python")
        if "requirements.txt" in contents:
            stack.dependencies.update(_requirements(contents["requirements.txt"]))
        pyproject = contents.get("pyproject.toml", "")
        add(stack.build_tools, "poetry" if "[tool.poetry]" in pyproject or "poetry.lock" in names else "pip")
        text = " ".join(contents[m] for m in python_markers).lower()
        for dep, framework in PY_FRAMEWORKS.items():
            if re.search(rf"(?<![\w-]){re.escape(dep)}(?![\w-])", text):
                add(stack.frameworks, framework)

    if "Cargo.toml" in contents:
        add(stack.languages, "Rust")
        add(stack.build_tools, "cargo")
        for dep, framework in RUST_FRAMEWORKS.items():
            if re.search(rf"^{re.escape(dep)}\s*=", contents["Cargo.toml"], re.MULTILINE):
                add(stack.frameworks, framework)

    if "pom.xml" in contents:
        add(stack.languages, "Java")
        add(stack.build_tools, "maven")
    gradle = contents.get("build.gradle") or contents.get("build.gradle.kts")
    if gradle is not None:
        add(stack.languages, "Kotlin" if "build.gradle.kts" in contents else "Java")
        add(stack.build_tools, "gradle")
    if "spring-boot" in (contents.get("pom.xml", "") + (gradle or "")):
        add(stack.frameworks, "Spring Boot")

    if "Gemfile" in contents:
        add(stack.languages, "Ruby")
        add(stack.build_tools, "bundler")
        if re.search(r"gem\s+['\"]rails['\"]", contents["Gemfile"]):
            add(stack.frameworks, "Rails")

    if "composer.json" in contents:
        add(stack.languages, "PHP")
        add(stack.build_tools, "composer")
    if "mix.exs" in contents:
        add(stack.languages, "Elixir")
        add(stack.build_tools, "mix")
    if "Makefile" in contents:
        add(stack.build_tools, "make")
    if "Dockerfile" in contents:
        add(stack.build_tools, "docker")

    # Fall back to file extensions when no marker named a language
    if not stack.languages:
        counts: dict[str, int] = {}
        for path in paths:
            language = LANGUAGE_BY_SUFFIX.get(PurePosixPath(path).suffix)
            if language:
                counts[language] = counts.get(language, 0) + 1
        stack.languages = sorted(counts, key=lambda lang: (-counts[lang], lang))

    return stack


def _go_requires(go_mod: str) -> dict[str, str]:
    requires = {}
    in_block = False
    for raw in go_mod.splitlines():
        line = raw.split("//", 1)[0].strip()
        if line.startswith("require ("):
            in_block = True
            continue
        if in_block and line == ")":
            in_block = False
            continue
        if line.startswith("require "):
            line = line[len("require "):].strip()
        elif not in_block:
            continue
        parts = line.split()
        if len(parts) >= 2:
            requires[parts[0]] = parts[1]
    return requires


def _requirements(text: str) -> dict[str, str]:
    deps = {}
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        m = re.match(r"([A-Za-z0-9][A-Za-z0-9._-]*)(\[[^\]]*\])?\s*(.*)", line)
        if m:
            deps[m.group(1)] = m.group(3).strip()
    return deps


def _project_name(contents: dict[str, str]) -> str:
    if "package.json" in contents:
        try:
            name = json.loads(contents["package.json"]).get("name")
        except (json.JSONDecodeError, AttributeError):
            name = None
        if name:
            return str(name)
    if "go.mod" in contents:
        m = re.search(r"^module\s+(\S+)", contents["go.mod"], re.MULTILINE)
        if m:
            return m.group(1).rstrip("/").rsplit("/", 1)[-1]
    for marker in ("pyproject.toml", "Cargo.toml"):
        m = re.search(r'^name\s*=\s*["\']([^"\']+)["\']', contents.get(marker, ""), re.MULTILINE)
        if m:
            return m.group(1)
    return ""
