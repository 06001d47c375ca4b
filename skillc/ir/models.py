"""IR data models — the normalized, format-agnostic interface description.

These models are the canonical form that every spec parser builds and that
the generation gate serializes and hashes. The JSON form uses the camelCase
wire names of the lockfile era (``requestBody``, ``rawHelpText``, ...) and
omits empty fields, so the serialized IR is stable across runs.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any


class ParameterLocation(Enum):
    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    COOKIE = "cookie"
    FLAG = "flag"  # CLI --flag
    ARGUMENT = "argument"  # CLI positional


class AuthType(Enum):
    API_KEY = "apiKey"
    HTTP = "http"
    OAUTH2 = "oauth2"
    OPEN_ID_CONNECT = "openIdConnect"


class KeyFileRole(Enum):
    ENTRYPOINT = "entrypoint"
    ROUTES = "routes"
    SCHEMA = "schema"
    TEST_SETUP = "test-setup"


# --- Operations ---


@dataclass
class Parameter:
    """A query/path/header/cookie parameter, or a CLI flag/argument."""

    name: str
    location: str = ""
    description: str = ""
    required: bool = False
    type: str = ""
    default: str = ""
    shorthand: str = ""  # CLI short flag, e.g. "-v"


@dataclass
class TypeRef:
    """A non-owning reference to a TypeDef by name."""

    type_name: str = ""
    description: str = ""
    content_type: str = ""
    is_array: bool = False


@dataclass
class Response:
    """An HTTP response or a command exit convention."""

    status_code: str
    description: str = ""
    body: TypeRef | None = None


@dataclass
class Operation:
    """One endpoint, command, or RPC."""

    id: str
    name: str = ""
    description: str = ""
    method: str = ""  # HTTP method, empty for CLI
    path: str = ""  # HTTP path or command path
    parameters: list[Parameter] = field(default_factory=list)
    request_body: TypeRef | None = None
    responses: list[Response] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    deprecated: bool = False
    auth: list[str] = field(default_factory=list)  # AuthScheme ids

    # CLI only
    aliases: list[str] = field(default_factory=list)
    raw_help_text: str = ""

    def parameters_in(self, location: str) -> list[Parameter]:
        return [p for p in self.parameters if p.location == location]


# --- Types ---


@dataclass
class TypeField:
    name: str
    type: str = ""
    description: str = ""
    required: bool = False


@dataclass
class TypeDef:
    """A named schema: a record with fields, or an enumeration."""

    name: str
    description: str = ""
    fields: list[TypeField] = field(default_factory=list)
    enum: list[str] = field(default_factory=list)

    @property
    def is_enum(self) -> bool:
        return bool(self.enum)


@dataclass
class AuthScheme:
    id: str
    type: str
    name: str = ""
    location: str = ""  # header, query, cookie
    scheme: str = ""  # bearer, basic
    description: str = ""


@dataclass
class Group:
    """A named collection of operation ids (tag, resource, subcommand tree)."""

    name: str
    description: str = ""
    operations: list[str] = field(default_factory=list)


# --- Project structure (codebase scans) ---


@dataclass
class FileEntry:
    path: str
    is_dir: bool = False
    size: int = 0


@dataclass
class StackInfo:
    languages: list[str] = field(default_factory=list)
    frameworks: list[str] = field(default_factory=list)
    build_tools: list[str] = field(default_factory=list)
    dependencies: dict[str, str] = field(default_factory=dict)
    scripts: dict[str, str] = field(default_factory=dict)


@dataclass
class ConfigFile:
    path: str
    content: str = ""


@dataclass
class DocFile:
    path: str
    content: str = ""


@dataclass
class KeyFile:
    path: str
    content: str = ""
    role: str = ""


@dataclass
class ProjectStructure:
    file_tree: list[FileEntry] = field(default_factory=list)
    stack: StackInfo | None = None
    entry_points: list[str] = field(default_factory=list)
    config_files: list[ConfigFile] = field(default_factory=list)
    docs: list[DocFile] = field(default_factory=list)
    key_files: list[KeyFile] = field(default_factory=list)


# --- Root aggregate ---


@dataclass
class IntermediateRepr:
    """The complete IR for one compilation.

    Built incrementally by the registry; ``merge`` is the only mutation the
    pipeline performs on it.
    """

    operations: list[Operation] = field(default_factory=list)
    types: list[TypeDef] = field(default_factory=list)
    auth: list[AuthScheme] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    structure: ProjectStructure | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def merge(self, other: IntermediateRepr | None) -> None:
        """Fold ``other`` into this IR.

        Sequences are appended in order without deduplication. Metadata keys
        from ``other`` overwrite existing keys, so merge order matters.
        """
        if other is None:
            return
        self.operations.extend(other.operations)
        self.types.extend(other.types)
        self.auth.extend(other.auth)
        self.groups.extend(other.groups)

        if other.structure is not None:
            if self.structure is None:
                self.structure = other.structure
            else:
                self.structure.file_tree.extend(other.structure.file_tree)
                self.structure.entry_points.extend(other.structure.entry_points)
                self.structure.config_files.extend(other.structure.config_files)
                self.structure.docs.extend(other.structure.docs)
                self.structure.key_files.extend(other.structure.key_files)

        self.metadata.update(other.metadata)

    def operation_ids(self) -> list[str]:
        return [op.id for op in self.operations]

    def type_names(self) -> list[str]:
        return [t.name for t in self.types]

    def find_type(self, name: str) -> TypeDef | None:
        for t in self.types:
            if t.name == name:
                return t
        return None

    def find_operation(self, op_id: str) -> Operation | None:
        for op in self.operations:
            if op.id == op_id:
                return op
        return None


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

# Python field name -> wire name, where camelCase conversion is not enough.
_WIRE_OVERRIDES = {"location": "in"}


def _wire_name(name: str) -> str:
    if name in _WIRE_OVERRIDES:
        return _WIRE_OVERRIDES[name]
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _to_wire(value: Any) -> Any:
    if is_dataclass(value):
        out: dict[str, Any] = {}
        for f in fields(value):
            item = _to_wire(getattr(value, f.name))
            if item in (None, "", False, [], {}):
                # Required identity fields are always written
                if f.name not in ("id", "name", "path", "status_code", "type"):
                    continue
                if item is None:
                    continue
            out[_wire_name(f.name)] = item
        return out
    if isinstance(value, list):
        return [_to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    return value


def ir_to_dict(ir: IntermediateRepr) -> dict[str, Any]:
    """Convert an IR to its JSON-ready wire form."""
    return _to_wire(ir)


def ir_to_json(ir: IntermediateRepr, indent: int | None = None) -> str:
    """Serialize an IR deterministically.

    Key order follows field declaration order, so two equal IRs always
    serialize to the same string.
    """
    return json.dumps(ir_to_dict(ir), indent=indent, ensure_ascii=False)


def _type_ref(data: dict | None) -> TypeRef | None:
    if not data:
        return None
    return TypeRef(
        type_name=data.get("typeName", ""),
        description=data.get("description", ""),
        content_type=data.get("contentType", ""),
        is_array=data.get("isArray", False),
    )


def _operation(data: dict) -> Operation:
    return Operation(
        id=data["id"],
        name=data.get("name", ""),
        description=data.get("description", ""),
        method=data.get("method", ""),
        path=data.get("path", ""),
        parameters=[
            Parameter(
                name=p["name"],
                location=p.get("in", ""),
                description=p.get("description", ""),
                required=p.get("required", False),
                type=p.get("type", ""),
                default=p.get("default", ""),
                shorthand=p.get("shorthand", ""),
            )
            for p in data.get("parameters", [])
        ],
        request_body=_type_ref(data.get("requestBody")),
        responses=[
            Response(
                status_code=r["statusCode"],
                description=r.get("description", ""),
                body=_type_ref(r.get("body")),
            )
            for r in data.get("responses", [])
        ],
        tags=data.get("tags", []),
        deprecated=data.get("deprecated", False),
        auth=data.get("auth", []),
        aliases=data.get("aliases", []),
        raw_help_text=data.get("rawHelpText", ""),
    )


def _structure(data: dict | None) -> ProjectStructure | None:
    if data is None:
        return None
    stack_data = data.get("stack")
    stack = None
    if stack_data is not None:
        stack = StackInfo(
            languages=stack_data.get("languages", []),
            frameworks=stack_data.get("frameworks", []),
            build_tools=stack_data.get("buildTools", []),
            dependencies=stack_data.get("dependencies", {}),
            scripts=stack_data.get("scripts", {}),
        )
    return ProjectStructure(
        file_tree=[
            FileEntry(path=f["path"], is_dir=f.get("isDir", False), size=f.get("size", 0))
            for f in data.get("fileTree", [])
        ],
        stack=stack,
        entry_points=data.get("entryPoints", []),
        config_files=[
            ConfigFile(path=c["path"], content=c.get("content", ""))
            for c in data.get("configFiles", [])
        ],
        docs=[DocFile(path=d["path"], content=d.get("content", "")) for d in data.get("docs", [])],
        key_files=[
            KeyFile(path=k["path"], content=k.get("content", ""), role=k.get("role", ""))
            for k in data.get("keyFiles", [])
        ],
    )


def ir_from_dict(data: dict[str, Any]) -> IntermediateRepr:
    """Rebuild an IR from its wire form (inverse of ``ir_to_dict``)."""
    return IntermediateRepr(
        operations=[_operation(o) for o in data.get("operations", [])],
        types=[
            TypeDef(
                name=t["name"],
                description=t.get("description", ""),
                fields=[
                    TypeField(
                        name=f["name"],
                        type=f.get("type", ""),
                        description=f.get("description", ""),
                        required=f.get("required", False),
                    )
                    for f in t.get("fields", [])
                ],
                enum=t.get("enum", []),
            )
            for t in data.get("types", [])
        ],
        auth=[
            AuthScheme(
                id=a["id"],
                type=a.get("type", ""),
                name=a.get("name", ""),
                location=a.get("in", ""),
                scheme=a.get("scheme", ""),
                description=a.get("description", ""),
            )
            for a in data.get("auth", [])
        ],
        groups=[
            Group(
                name=g["name"],
                description=g.get("description", ""),
                operations=g.get("operations", []),
            )
            for g in data.get("groups", [])
        ],
        structure=_structure(data.get("structure")),
        metadata=dict(data.get("metadata", {})),
    )
