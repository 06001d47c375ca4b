"""OpenAPI parser — builds IR from OpenAPI 3.x and Swagger 2.0 documents.

Every path+method pair becomes one Operation. Schema references
(``#/components/schemas/X`` or ``#/definitions/X``) become TypeDefs named by
the last pointer segment, and are resolved transitively before the parser
returns, so every TypeRef in the result names a TypeDef in the same IR.

Operations without an ``operationId`` get a derived id: the lower-cased
method, then the path with braces dropped and each run of non-alphanumeric
characters turned into ``_`` (``GET /pets/{petId}`` -> ``get_pets_petId``).
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlparse

import httpx
import yaml

from skillc.errors import FetchError, ParseError
from skillc.instructions.models import SpecSource
from skillc.ir.models import (
    AuthScheme,
    AuthType,
    Group,
    IntermediateRepr,
    Operation,
    Parameter,
    Response,
    TypeDef,
    TypeField,
    TypeRef,
)
from skillc.ir.registry import SpecParser, ValidationWarning

logger = logging.getLogger(__name__)

SPEC_EXTENSIONS = {".yaml", ".yml", ".json"}

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Pointer prefixes whose direct children are named schemas
SCHEMA_PREFIXES = ("#/components/schemas/", "#/definitions/")

DEFAULT_CONTENT_TYPE = "application/json"

_MAX_DEREF_DEPTH = 32


class OpenAPIParser(SpecParser):
    """Spec parser for OpenAPI / Swagger documents (YAML or JSON)."""

    name = "openapi"

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def detect(self, source: SpecSource) -> bool:
        if source.type == "openapi":
            return True
        if source.type:
            return False
        if source.path:
            return PurePosixPath(source.path).suffix.lower() in SPEC_EXTENSIONS
        if source.url:
            return PurePosixPath(urlparse(source.url).path).suffix.lower() in SPEC_EXTENSIONS
        return False

    def fetch(self, source: SpecSource) -> bytes:
        if source.path:
            try:
                return Path(source.path).expanduser().read_bytes()
            except OSError as e:
                raise FetchError(source, f"reading spec file: {e}") from e

        if source.url:
            try:
                response = httpx.get(source.url, timeout=self.timeout, follow_redirects=True)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise FetchError(source, f"downloading spec: {e}") from e
            return response.content

        if source.command:
            try:
                proc = subprocess.run(
                    source.command,
                    shell=True,
                    capture_output=True,
                    timeout=self.timeout,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                raise FetchError(source, f"running spec command: {e}") from e
            if proc.returncode != 0:
                stderr = proc.stderr.decode("utf-8", errors="replace").strip()
                raise FetchError(
                    source, f"spec command exited with status {proc.returncode}: {stderr[-500:]}"
                )
            return proc.stdout

        raise FetchError(source, "openapi source needs a path, url or command")

    def parse(self, data: bytes, source: SpecSource) -> IntermediateRepr:
        try:
            doc = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise ParseError(source, f"invalid YAML/JSON: {e}") from e

        if not isinstance(doc, dict) or not ("openapi" in doc or "swagger" in doc or "paths" in doc):
            raise ParseError(source, "not an OpenAPI document")

        ir = _DocumentParser(doc, source).run()
        logger.debug(
            "parsed %s: %d operation(s), %d type(s), %d auth scheme(s)",
            source.describe(),
            len(ir.operations),
            len(ir.types),
            len(ir.auth),
        )
        return ir

    def validate(self, ir: IntermediateRepr) -> list[ValidationWarning]:
        warnings = []
        for op in ir.operations:
            if not op.description:
                warnings.append(
                    ValidationWarning(self.name, f"operation '{op.id}' has no description")
                )
            for p in op.parameters:
                if not p.description:
                    warnings.append(
                        ValidationWarning(
                            self.name,
                            f"operation '{op.id}': parameter '{p.name}' has no description",
                        )
                    )
            for r in op.responses:
                if not r.description:
                    warnings.append(
                        ValidationWarning(
                            self.name,
                            f"operation '{op.id}': response {r.status_code} has no description",
                        )
                    )
        return warnings


# ---------------------------------------------------------------------------
# Document walk
# ---------------------------------------------------------------------------


class _DocumentParser:
    """Single-use walker over one parsed document."""

    def __init__(self, doc: dict, source: SpecSource):
        self.doc = doc
        self.source = source
        # Insertion order is the emission order; None marks a reserved slot
        self._types: dict[str, TypeDef | None] = {}
        self._building: set[str] = set()
        # Unnamed refs currently being followed by _schema_type/_body_ref
        self._following: set[str] = set()

    def run(self) -> IntermediateRepr:
        ir = IntermediateRepr()

        # Reserve named schemas in document order, so synthesized names never
        # shadow them, then build them.
        containers = self._schema_containers()
        for _, container in containers:
            for name in container:
                self._types.setdefault(str(name), None)
        for prefix, container in containers:
            for name in container:
                self._named_type(prefix + _escape_pointer(str(name)))

        ir.operations = self._operations()
        ir.types = [t for t in self._types.values() if t is not None]
        ir.auth = self._auth_schemes()
        ir.groups = self._groups(ir.operations)
        ir.metadata = self._metadata()
        return ir

    # -- references ----------------------------------------------------------

    def _schema_containers(self) -> list[tuple[str, dict]]:
        containers = []
        components = self.doc.get("components") or {}
        if isinstance(components.get("schemas"), dict):
            containers.append(("#/components/schemas/", components["schemas"]))
        if isinstance(self.doc.get("definitions"), dict):
            containers.append(("#/definitions/", self.doc["definitions"]))
        return containers

    def _resolve_pointer(self, ref: str) -> Any:
        if not isinstance(ref, str) or not ref.startswith("#/"):
            raise ParseError(self.source, f"unresolvable reference '{ref}' (only local refs are supported)")
        node: Any = self.doc
        for raw in ref[2:].split("/"):
            part = _unescape_pointer(raw)
            if isinstance(node, dict) and part in node:
                node = node[part]
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                raise ParseError(self.source, f"unresolvable reference '{ref}'")
        return node

    def _deref(self, obj: Any) -> Any:
        """Follow a chain of structural ``$ref``s (parameters, responses, ...)."""
        depth = 0
        while isinstance(obj, dict) and "$ref" in obj:
            depth += 1
            if depth > _MAX_DEREF_DEPTH:
                raise ParseError(self.source, f"reference chain too deep at '{obj['$ref']}'")
            obj = self._resolve_pointer(obj["$ref"])
        return obj

    @staticmethod
    def _is_named(ref: str) -> bool:
        for prefix in SCHEMA_PREFIXES:
            if ref.startswith(prefix) and "/" not in ref[len(prefix):]:
                return True
        return False

    def _named_type(self, ref: str) -> str:
        """Register the TypeDef behind ``ref`` (transitively) and return its name."""
        name = _unescape_pointer(ref.rsplit("/", 1)[-1])
        if self._types.get(name) is not None or name in self._building:
            return name
        schema = self._resolve_pointer(ref)
        self._building.add(name)
        self._types.setdefault(name, None)
        self._types[name] = self._build_typedef(name, schema if isinstance(schema, dict) else {})
        self._building.discard(name)
        return name

    def _enter_inline(self, ref: str) -> None:
        if ref in self._following:
            raise ParseError(self.source, f"circular reference '{ref}'")
        self._following.add(ref)

    def _unique_name(self, base: str) -> str:
        if base not in self._types:
            return base
        n = 2
        while f"{base}{n}" in self._types:
            n += 1
        return f"{base}{n}"

    # -- schemas -------------------------------------------------------------

    def _build_typedef(self, name: str, schema: dict) -> TypeDef:
        flat = self._flatten(schema, set())
        typedef = TypeDef(
            name=name,
            description=schema.get("description", "") or schema.get("title", "") or "",
        )

        if "enum" in flat:
            typedef.enum = [_stringify(v) for v in flat["enum"] if v is not None]
            return typedef

        required = set(flat.get("required") or [])
        for prop, prop_schema in (flat.get("properties") or {}).items():
            prop_schema = prop_schema if isinstance(prop_schema, dict) else {}
            typedef.fields.append(
                TypeField(
                    name=str(prop),
                    type=self._schema_type(prop_schema),
                    description=prop_schema.get("description", "") or "",
                    required=prop in required,
                )
            )

        # Follow references that do not surface as fields
        for key in ("items", "additionalProperties"):
            if isinstance(flat.get(key), dict):
                self._schema_type(flat[key])
        for key in ("oneOf", "anyOf"):
            for sub in flat.get(key) or []:
                self._schema_type(sub)
        return typedef

    def _flatten(self, schema: dict, seen: set[str]) -> dict:
        """Merge ``allOf`` parts into one schema with combined properties."""
        if "$ref" in schema:
            ref = schema["$ref"]
            if ref in seen:
                return {}
            seen = seen | {ref}
            if self._is_named(ref):
                self._named_type(ref)
            target = self._resolve_pointer(ref)
            return self._flatten(target if isinstance(target, dict) else {}, seen)

        if "allOf" not in schema:
            return schema

        merged: dict[str, Any] = {k: v for k, v in schema.items() if k != "allOf"}
        properties: dict[str, Any] = {}
        required: list[str] = []
        for part in schema.get("allOf") or []:
            if not isinstance(part, dict):
                continue
            flat = self._flatten(part, seen)
            properties.update(flat.get("properties") or {})
            required.extend(r for r in flat.get("required") or [] if r not in required)
            if "enum" in flat and "enum" not in merged:
                merged["enum"] = flat["enum"]
        properties.update(schema.get("properties") or {})
        required.extend(r for r in schema.get("required") or [] if r not in required)
        merged["properties"] = properties
        merged["required"] = required
        return merged

    def _schema_type(self, schema: Any) -> str:
        """Free-form type name for a field or parameter schema."""
        if not isinstance(schema, dict):
            return ""
        if "$ref" in schema:
            ref = schema["$ref"]
            if self._is_named(ref):
                return self._named_type(ref)
            self._enter_inline(ref)
            try:
                return self._schema_type(self._resolve_pointer(ref))
            finally:
                self._following.discard(ref)

        for combo, sep in (("allOf", " & "), ("oneOf", " | "), ("anyOf", " | ")):
            if combo in schema:
                parts = [self._schema_type(s) for s in schema[combo] or []]
                return sep.join(p for p in parts if p) or "object"

        t = schema.get("type", "")
        if isinstance(t, list):
            t = next((x for x in t if x != "null"), "")

        if t == "array" or "items" in schema:
            inner = self._schema_type(schema.get("items") or {})
            return f"array[{inner}]" if inner else "array"

        if t == "object" or (not t and "properties" in schema):
            for prop_schema in (schema.get("properties") or {}).values():
                self._schema_type(prop_schema)
            extra = schema.get("additionalProperties")
            if isinstance(extra, dict) and not schema.get("properties"):
                inner = self._schema_type(extra)
                return f"map[string]{inner}" if inner else "object"
            return "object"

        fmt = schema.get("format")
        if t and fmt:
            return f"{t}({fmt})"
        return t or ""

    def _body_ref(
        self, schema: Any, synthetic_name: str, content_type: str, description: str
    ) -> TypeRef | None:
        """TypeRef for a request/response body, synthesizing inline objects."""
        if not isinstance(schema, dict) or not schema:
            return None

        if "$ref" in schema:
            ref = schema["$ref"]
            if self._is_named(ref):
                return TypeRef(
                    type_name=self._named_type(ref),
                    description=description,
                    content_type=content_type,
                )
            self._enter_inline(ref)
            try:
                return self._body_ref(self._resolve_pointer(ref), synthetic_name, content_type, description)
            finally:
                self._following.discard(ref)

        t = schema.get("type", "")
        if t == "array" or "items" in schema:
            inner = self._body_ref(schema.get("items") or {}, synthetic_name + "Item", content_type, description)
            if inner is not None:
                inner.is_array = True
            return inner

        for combo in ("oneOf", "anyOf"):
            if combo in schema:
                names = [self._schema_type(s) for s in schema[combo] or []]
                refs = [s for s in schema[combo] or [] if isinstance(s, dict) and "$ref" in s]
                if len(refs) == 1 and len(names) == 1:
                    return self._body_ref(refs[0], synthetic_name, content_type, description)
                name = self._unique_name(synthetic_name)
                self._types[name] = TypeDef(
                    name=name, description=f"one of: {', '.join(n for n in names if n)}"
                )
                return TypeRef(type_name=name, description=description, content_type=content_type)

        if t == "object" or "properties" in schema or "allOf" in schema:
            name = self._unique_name(synthetic_name)
            self._types[name] = None
            self._types[name] = self._build_typedef(name, schema)
            return TypeRef(type_name=name, description=description, content_type=content_type)

        return None

    # -- operations ----------------------------------------------------------

    def _operations(self) -> list[Operation]:
        operations = []
        paths = self.doc.get("paths") or {}
        if not isinstance(paths, dict):
            raise ParseError(self.source, "'paths' must be a mapping")

        for path, path_item in paths.items():
            path_item = self._deref(path_item)
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                op = path_item.get(method)
                if isinstance(op, dict):
                    operations.append(self._operation(str(path), method, path_item, op))
        return operations

    def _operation(self, path: str, method: str, path_item: dict, op: dict) -> Operation:
        raw_id = op.get("operationId")
        op_id = str(raw_id) if raw_id not in (None, "") else derive_operation_id(method, path)
        pascal = _pascal(op_id)
        summary = op.get("summary", "") or ""

        operation = Operation(
            id=op_id,
            name=summary or op_id,
            description=op.get("description", "") or summary,
            method=method.upper(),
            path=path,
            tags=[str(t) for t in op.get("tags") or []],
            deprecated=bool(op.get("deprecated", False)),
            auth=self._operation_auth(op),
        )

        raw_params = self._merged_parameters(path_item, op)
        body_params = [p for p in raw_params if p.get("in") == "body"]
        form_params = [p for p in raw_params if p.get("in") == "formData"]
        operation.parameters = [
            self._parameter(p) for p in raw_params if p.get("in") not in ("body", "formData")
        ]

        if "requestBody" in op:
            operation.request_body = self._request_body(op["requestBody"], pascal)
        elif body_params:
            body = body_params[0]
            operation.request_body = self._body_ref(
                body.get("schema"),
                f"{pascal}Request",
                self._swagger_media(op, "consumes"),
                body.get("description", "") or "",
            )
        elif form_params:
            operation.request_body = self._form_body(form_params, op, pascal)

        for code, resp in (op.get("responses") or {}).items():
            operation.responses.append(self._response(str(code), resp, op, pascal))

        return operation

    def _merged_parameters(self, path_item: dict, op: dict) -> list[dict]:
        merged: dict[tuple[str, str], dict] = {}
        for raw in list(path_item.get("parameters") or []) + list(op.get("parameters") or []):
            param = self._deref(raw)
            if not isinstance(param, dict):
                continue
            merged[(str(param.get("name", "")), str(param.get("in", "")))] = param
        return list(merged.values())

    def _parameter(self, p: dict) -> Parameter:
        # OpenAPI 3 nests the type in "schema"; Swagger 2 puts it inline
        schema = p.get("schema") if isinstance(p.get("schema"), dict) else p
        location = str(p.get("in", ""))
        return Parameter(
            name=str(p.get("name", "")),
            location=location,
            description=p.get("description", "") or "",
            required=bool(p.get("required", False)) or location == "path",
            type=self._schema_type(schema),
            default=_stringify(schema.get("default")) if isinstance(schema, dict) else "",
        )

    def _request_body(self, raw: Any, pascal: str) -> TypeRef | None:
        body = self._deref(raw)
        if not isinstance(body, dict):
            return None
        content_type, media = _pick_media(body.get("content") or {})
        if media is None:
            return None
        return self._body_ref(
            media.get("schema"), f"{pascal}Request", content_type, body.get("description", "") or ""
        )

    def _form_body(self, params: list[dict], op: dict, pascal: str) -> TypeRef:
        name = self._unique_name(f"{pascal}Request")
        self._types[name] = TypeDef(
            name=name,
            fields=[
                TypeField(
                    name=str(p.get("name", "")),
                    type=self._schema_type(p),
                    description=p.get("description", "") or "",
                    required=bool(p.get("required", False)),
                )
                for p in params
            ],
        )
        consumes = op.get("consumes") or self.doc.get("consumes") or []
        return TypeRef(
            type_name=name,
            content_type=consumes[0] if consumes else "application/x-www-form-urlencoded",
        )

    def _response(self, status: str, raw: Any, op: dict, pascal: str) -> Response:
        resp = self._deref(raw)
        if not isinstance(resp, dict):
            return Response(status_code=status)
        description = resp.get("description", "") or ""
        synthetic = f"{pascal}Response{_pascal(status)}"

        if "content" in resp:
            content_type, media = _pick_media(resp.get("content") or {})
            body = None
            if media is not None:
                body = self._body_ref(media.get("schema"), synthetic, content_type, description)
        else:
            body = self._body_ref(
                resp.get("schema"), synthetic, self._swagger_media(op, "produces"), description
            )
        return Response(status_code=status, description=description, body=body)

    def _swagger_media(self, op: dict, key: str) -> str:
        media = op.get(key) or self.doc.get(key) or []
        return media[0] if media else DEFAULT_CONTENT_TYPE

    # -- auth, groups, metadata ------------------------------------------------

    def _operation_auth(self, op: dict) -> list[str]:
        requirements = op["security"] if "security" in op else self.doc.get("security") or []
        names: list[str] = []
        for requirement in requirements or []:
            if not isinstance(requirement, dict):
                continue
            for scheme_id in requirement:
                if scheme_id not in names:
                    names.append(str(scheme_id))
        return names

    def _auth_schemes(self) -> list[AuthScheme]:
        components = self.doc.get("components") or {}
        declared = components.get("securitySchemes") or self.doc.get("securityDefinitions") or {}
        schemes = []
        for scheme_id, raw in declared.items():
            s = self._deref(raw)
            if not isinstance(s, dict):
                continue
            auth_type = str(s.get("type", ""))
            scheme = str(s.get("scheme", "") or "")
            if auth_type == "basic":
                auth_type, scheme = AuthType.HTTP.value, "basic"
            schemes.append(
                AuthScheme(
                    id=str(scheme_id),
                    type=auth_type,
                    name=str(s.get("name", "") or ""),
                    location=str(s.get("in", "") or ""),
                    scheme=scheme,
                    description=s.get("description", "") or "",
                )
            )
        return schemes

    def _groups(self, operations: list[Operation]) -> list[Group]:
        groups: dict[str, Group] = {}
        for tag in self.doc.get("tags") or []:
            if isinstance(tag, dict) and tag.get("name"):
                name = str(tag["name"])
                groups[name] = Group(name=name, description=tag.get("description", "") or "")
        for op in operations:
            for tag in op.tags:
                groups.setdefault(tag, Group(name=tag)).operations.append(op.id)
        return [g for g in groups.values() if g.operations]

    def _metadata(self) -> dict[str, str]:
        info = self.doc.get("info") or {}
        metadata = {}
        for key in ("title", "version", "description"):
            if info.get(key):
                metadata[key] = _stringify(info[key])

        spec_version = self.doc.get("openapi") or self.doc.get("swagger")
        if spec_version:
            metadata["specVersion"] = _stringify(spec_version)

        servers = self.doc.get("servers") or []
        if servers and isinstance(servers[0], dict) and servers[0].get("url"):
            metadata["baseUrl"] = str(servers[0]["url"])
        elif self.doc.get("host"):
            schemes = self.doc.get("schemes") or ["https"]
            metadata["baseUrl"] = f"{schemes[0]}://{self.doc['host']}{self.doc.get('basePath', '')}"
        return metadata


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def derive_operation_id(method: str, path: str) -> str:
    """Stable id for operations without an ``operationId``."""
    slug = re.sub(r"[^A-Za-z0-9]+", "_", path.replace("{", "").replace("}", "")).strip("_")
    return f"{method.lower()}_{slug}" if slug else method.lower()


def _pascal(value: str) -> str:
    parts = re.split(r"[^A-Za-z0-9]+", value)
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def _pick_media(content: dict) -> tuple[str, dict | None]:
    if not isinstance(content, dict) or not content:
        return "", None
    content_type = DEFAULT_CONTENT_TYPE if DEFAULT_CONTENT_TYPE in content else next(iter(content))
    media = content[content_type]
    return str(content_type), media if isinstance(media, dict) else {}


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _escape_pointer(name: str) -> str:
    return name.replace("~", "~0").replace("/", "~1")


def _unescape_pointer(part: str) -> str:
    return part.replace("~1", "/").replace("~0", "~")
