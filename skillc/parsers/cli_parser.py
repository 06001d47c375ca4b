"""CLI parser — builds IR from a command-line tool's help output.

``fetch`` runs the binary's help flag and walks discovered subcommands
breadth-first, concatenating every help screen into marked blocks::

    === COMMAND: mytool serve ===
    <help text>
    === END ===

``parse`` turns each block into one Operation. Help text layouts vary a lot
between tool families (cobra, click, argparse, GNU); the heuristics here
target the common ``Heading:`` + indented two-column layout and fall back to
keeping the raw text on every operation.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from skillc.errors import FetchError, ParseError
from skillc.instructions.models import SpecSource
from skillc.ir.models import (
    Group,
    IntermediateRepr,
    Operation,
    Parameter,
    ParameterLocation,
)
from skillc.ir.registry import SpecParser, ValidationWarning

logger = logging.getLogger(__name__)

DEFAULT_HELP_FLAG = "--help"
DEFAULT_MAX_DEPTH = 2
DEFAULT_TIMEOUT = 10.0

BLOCK_START = "=== COMMAND: {command} ==="
BLOCK_END = "=== END ==="

_BLOCK_START_RE = re.compile(r"^=== COMMAND: (.+?) ===\s*$")
_BLOCK_END_RE = re.compile(r"^=== END ===\s*$")

# Column-0 "Heading:" or "Heading (Qualifier):" with optional inline content
_HEADING_RE = re.compile(r"^([A-Za-z][A-Za-z0-9 /_-]*?)(?:\s*\([^)]*\))?:(?:\s+(.*))?$")
_INLINE_HEADINGS = {"usage", "aliases"}
_MAX_HEADING_WORDS = 4

_FLAG_LINE_RE = re.compile(r"^\s+(-{1,2}[A-Za-z0-9?][^\s,=]*.*)$")
_COLUMN_SPLIT_RE = re.compile(r"\s{2,}|\t+")
_DEFAULT_RE = re.compile(r"\s*\(default:?\s*([^)]*)\)", re.IGNORECASE)
_REQUIRED_RE = re.compile(r"\s*\(required\)", re.IGNORECASE)

TYPE_WORDS = {
    "bool",
    "boolean",
    "string",
    "strings",
    "int",
    "int32",
    "int64",
    "uint",
    "uint32",
    "uint64",
    "float",
    "float32",
    "float64",
    "duration",
    "stringArray",
    "stringSlice",
    "intSlice",
    "list",
    "path",
    "file",
    "integer",
    "number",
}

# Usage tokens that stand for "some subcommand/options", not positional args
_USAGE_PLACEHOLDERS = {
    "flags",
    "options",
    "option",
    "cmd",
    "command",
    "commands",
    "subcommand",
    "args",
}

Runner = Callable[[list, float], subprocess.CompletedProcess]


def _run(argv: list[str], timeout: float) -> subprocess.CompletedProcess:
    return subprocess.run(argv, capture_output=True, text=True, timeout=timeout)


# ---------------------------------------------------------------------------
# Help text model
# ---------------------------------------------------------------------------


@dataclass
class CommandBlock:
    command: str
    text: str


@dataclass
class HelpFlag:
    name: str  # long spelling when present, e.g. "--verbose"
    shorthand: str = ""
    type: str = ""
    description: str = ""
    default: str = ""
    required: bool = False


@dataclass
class HelpText:
    """Structured view of one help screen."""

    description: str = ""
    usage: str = ""
    subcommands: list[str] = field(default_factory=list)
    subcommand_descriptions: dict[str, str] = field(default_factory=dict)
    flags: list[HelpFlag] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    examples: str = ""


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class CLIHelpParser(SpecParser):
    """Spec parser for ``type: cli`` sources."""

    name = "cli"

    def __init__(self, runner: Runner | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.runner = runner or _run
        self.timeout = timeout

    def detect(self, source: SpecSource) -> bool:
        return source.type == "cli" and bool(source.binary)

    def fetch(self, source: SpecSource) -> bytes:
        help_flag = source.help_flag or DEFAULT_HELP_FLAG
        max_depth = source.max_depth or DEFAULT_MAX_DEPTH

        queue: deque[list[str]] = deque([[]])
        seen: set[tuple[str, ...]] = {()}
        chunks: list[str] = []

        while queue:
            sub_path = queue.popleft()
            command = " ".join([source.binary, *sub_path])
            text = self._help_text(source, [source.binary, *sub_path, help_flag])
            chunks.append(format_command_block(command, text))

            if len(sub_path) >= max_depth:
                continue
            for name in parse_help_output(text).subcommands:
                child = [*sub_path, name]
                if name == "help" or _excluded(source, child) or tuple(child) in seen:
                    continue
                seen.add(tuple(child))
                queue.append(child)

        logger.debug("collected help for %d command(s) of %s", len(chunks), source.binary)
        return "".join(chunks).encode("utf-8")

    def _help_text(self, source: SpecSource, argv: list[str]) -> str:
        try:
            proc = self.runner(argv, self.timeout)
        except FileNotFoundError as e:
            raise FetchError(source, f"binary not found: {argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise FetchError(source, f"'{' '.join(argv)}' timed out after {self.timeout}s") from e
        except OSError as e:
            raise FetchError(source, f"running '{' '.join(argv)}': {e}") from e

        if proc.returncode != 0:
            stderr = _as_text(proc.stderr).strip()
            raise FetchError(
                source, f"'{' '.join(argv)}' exited with status {proc.returncode}: {stderr[-500:]}"
            )
        stdout = _as_text(proc.stdout)
        return stdout if stdout.strip() else _as_text(proc.stderr)

    def parse(self, data: bytes, source: SpecSource) -> IntermediateRepr:
        text = data.decode("utf-8", errors="replace")
        blocks = split_command_blocks(text, default_command=source.binary)
        if not blocks:
            raise ParseError(source, "no help output to parse")

        ir = IntermediateRepr(metadata={"binary": source.binary} if source.binary else {})
        for block in blocks:
            ir.operations.append(_block_operation(block))
        ir.groups = _command_groups(ir.operations)
        return ir

    def validate(self, ir: IntermediateRepr) -> list[ValidationWarning]:
        warnings = []
        for op in ir.operations:
            if not op.description:
                warnings.append(ValidationWarning(self.name, f"command '{op.name}' has no description"))
            for p in op.parameters_in(ParameterLocation.FLAG.value):
                if not p.description:
                    warnings.append(
                        ValidationWarning(
                            self.name, f"command '{op.name}': flag '{p.name}' has no description"
                        )
                    )
        return warnings


def _excluded(source: SpecSource, sub_path: list[str]) -> bool:
    candidates = {sub_path[-1], " ".join(sub_path), " ".join([source.binary, *sub_path])}
    return any(c in source.exclude for c in candidates)


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def format_command_block(command: str, text: str) -> str:
    return f"{BLOCK_START.format(command=command)}\n{text.rstrip()}\n{BLOCK_END}\n"


def split_command_blocks(text: str, default_command: str = "") -> list[CommandBlock]:
    """Split concatenated help output into per-command blocks, in order.

    Text without any block marker is one block for ``default_command``.
    """
    blocks: list[CommandBlock] = []
    current: str | None = None
    lines: list[str] = []
    saw_marker = False

    for line in text.splitlines():
        start = _BLOCK_START_RE.match(line)
        if start:
            saw_marker = True
            if current is not None:
                blocks.append(CommandBlock(current, "\n".join(lines).strip("\n")))
            current, lines = start.group(1).strip(), []
        elif _BLOCK_END_RE.match(line):
            if current is not None:
                blocks.append(CommandBlock(current, "\n".join(lines).strip("\n")))
            current, lines = None, []
        elif current is not None:
            lines.append(line)

    if current is not None:
        blocks.append(CommandBlock(current, "\n".join(lines).strip("\n")))

    if not saw_marker and text.strip():
        return [CommandBlock(default_command, text.strip("\n"))]
    return blocks


# ---------------------------------------------------------------------------
# Help screens
# ---------------------------------------------------------------------------


def _heading(line: str) -> tuple[str, str] | None:
    if not line or line[0].isspace():
        return None
    m = _HEADING_RE.match(line.rstrip())
    if not m:
        return None
    title, inline = m.group(1).strip(), (m.group(2) or "").strip()
    if len(title.split()) > _MAX_HEADING_WORDS:
        return None
    if inline and title.lower() not in _INLINE_HEADINGS:
        return None
    return title, inline


def _section_kind(title: str) -> str:
    lower = title.lower()
    if lower in ("usage", "aliases"):
        return lower
    if lower.startswith("example"):
        return "examples"
    if lower.endswith("commands") or lower == "subcommands":
        return "commands"
    if lower.endswith("flags") or lower.endswith("options") or lower == "arguments":
        return "flags"
    return "other"


def parse_help_output(text: str) -> HelpText:
    """Extract description, usage, subcommands, flags, aliases and examples."""
    result = HelpText()
    section = "description"
    description: list[str] = []
    examples: list[str] = []
    # After an inline "Usage: ..." line: wrapped usage, blank gap, then the
    # description paragraph that click and argparse print there
    usage_tail = "done"

    for line in text.splitlines():
        heading = _heading(line)
        if heading:
            title, inline = heading
            section = _section_kind(title)
            usage_tail = "wrap" if section == "usage" and inline and not description else "done"
            if inline and section == "usage" and not result.usage:
                result.usage = inline
            elif inline and section == "aliases":
                result.aliases.extend(_split_aliases(inline))
            continue

        stripped = line.strip()
        if section == "description":
            if stripped:
                description.append(stripped)
        elif section == "usage":
            if not stripped:
                if usage_tail == "wrap":
                    usage_tail = "gap"
                elif usage_tail == "desc":
                    usage_tail = "done"
            elif not result.usage:
                result.usage = stripped
            elif usage_tail in ("gap", "desc"):
                description.append(stripped)
                usage_tail = "desc"
        elif section == "aliases":
            if stripped:
                result.aliases.extend(_split_aliases(stripped))
        elif section == "examples":
            examples.append(line)
        elif section == "commands":
            _add_subcommand(result, line)
        elif section == "flags" or (section == "other" and _FLAG_LINE_RE.match(line)):
            _add_flag_line(result, line)

    result.description = " ".join(description)
    result.examples = _dedent("\n".join(examples)).strip("\n")
    return result


def _split_aliases(value: str) -> list[str]:
    return [a.strip() for a in value.split(",") if a.strip()]


def _add_subcommand(result: HelpText, line: str) -> None:
    if not line.strip() or not line[0].isspace():
        return
    parts = _COLUMN_SPLIT_RE.split(line.strip(), maxsplit=1)
    name = parts[0].split(",")[0].strip().rstrip(":")
    if not name or name.startswith("-") or name in result.subcommands:
        return
    result.subcommands.append(name)
    if len(parts) > 1:
        result.subcommand_descriptions[name] = parts[1].strip()


def _add_flag_line(result: HelpText, line: str) -> None:
    if not line.strip():
        return
    if not _FLAG_LINE_RE.match(line):
        # Continuation of the previous flag's description
        if result.flags and line[0].isspace():
            prev = result.flags[-1]
            prev.description = f"{prev.description} {line.strip()}".strip()
            _extract_markers(prev)
        return

    columns = _COLUMN_SPLIT_RE.split(line.strip())
    flag = _parse_flag_spelling(columns[0])
    rest = columns[1:]
    if rest and rest[0] in TYPE_WORDS and not flag.type:
        flag.type = rest[0]
        rest = rest[1:]
    flag.description = " ".join(rest).strip()
    _extract_markers(flag)
    if not flag.type:
        flag.type = "bool"
    result.flags.append(flag)


def _parse_flag_spelling(spec: str) -> HelpFlag:
    """Parse ``-v, --verbose`` / ``-o, --output string`` / ``--out=FILE``."""
    long_name = short_name = value = ""
    for piece in spec.split(","):
        tokens = piece.strip().split()
        if not tokens:
            continue
        spelling = tokens[0]
        if "=" in spelling:
            spelling, value = spelling.split("=", 1)
        elif len(tokens) > 1:
            value = tokens[1]
        if spelling.startswith("--"):
            long_name = long_name or spelling
        elif spelling.startswith("-"):
            short_name = short_name or spelling

    flag = HelpFlag(name=long_name or short_name, shorthand=short_name if long_name else "")
    if value.endswith(":"):
        # kubectl: "--name=default:" with the description on the next line
        flag.default = value[:-1].strip("'\"")
        if flag.default == "[]":
            flag.type, flag.default = "strings", ""
        elif flag.default in ("true", "false"):
            flag.type = "bool"
        elif flag.default.lstrip("-").isdigit():
            flag.type = "int"
        else:
            flag.type = "string"
    elif value:
        value = value.strip("[]<>")
        flag.type = value if value in TYPE_WORDS else "string"
    return flag


def _extract_markers(flag: HelpFlag) -> None:
    m = _DEFAULT_RE.search(flag.description)
    if m:
        flag.default = m.group(1).strip().strip("\"'")
        flag.description = _DEFAULT_RE.sub("", flag.description).strip()
    if _REQUIRED_RE.search(flag.description):
        flag.required = True
        flag.description = _REQUIRED_RE.sub("", flag.description).strip()


def _dedent(text: str) -> str:
    lines = text.splitlines()
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    cut = min(indents) if indents else 0
    return "\n".join(line[cut:] for line in lines)


# ---------------------------------------------------------------------------
# IR construction
# ---------------------------------------------------------------------------


def usage_arguments(usage: str, command: str) -> list[Parameter]:
    """Positional arguments named in a usage line (``<name>``, ``[name]``, ``NAME``)."""
    tokens = usage.split()
    skip = set(command.split())
    args: list[Parameter] = []
    seen: set[str] = set()

    for token in tokens:
        if token in skip:
            continue
        required = None
        bare = token.rstrip(".")
        if bare.startswith("<") and bare.endswith(">"):
            name, required = bare[1:-1], True
        elif bare.startswith("[") and bare.endswith("]"):
            name, required = bare[1:-1], False
        elif re.fullmatch(r"[A-Z][A-Z0-9_]*", bare):
            name, required = bare, True
        else:
            continue

        name = name.rstrip(".").strip("<>[]")
        if (
            not name
            or name.startswith("-")
            or name.lower() in _USAGE_PLACEHOLDERS
            or not re.fullmatch(r"[A-Za-z][A-Za-z0-9_-]*", name)
            or name in seen
        ):
            continue
        seen.add(name)
        args.append(
            Parameter(
                name=name,
                location=ParameterLocation.ARGUMENT.value,
                required=required,
                type="string",
            )
        )
    return args


def _block_operation(block: CommandBlock) -> Operation:
    help_text = parse_help_output(block.text)
    command = block.command
    own_name = command.split()[-1] if command else ""

    parameters = usage_arguments(help_text.usage, command)
    parameters.extend(
        Parameter(
            name=f.name,
            location=ParameterLocation.FLAG.value,
            description=f.description,
            required=f.required,
            type=f.type,
            default=f.default,
            shorthand=f.shorthand,
        )
        for f in help_text.flags
    )

    return Operation(
        id=command.replace(" ", "_"),
        name=command,
        description=help_text.description,
        path=command,
        parameters=parameters,
        aliases=[a for a in help_text.aliases if a != own_name],
        raw_help_text=block.text,
    )


def _command_groups(operations: list[Operation]) -> list[Group]:
    by_path = {op.path: op for op in operations}
    groups: dict[str, Group] = {}
    for op in operations:
        parent = op.path.rsplit(" ", 1)[0] if " " in op.path else ""
        if not parent or parent not in by_path:
            continue
        if parent not in groups:
            groups[parent] = Group(name=parent, description=by_path[parent].description)
        groups[parent].operations.append(op.id)
    return list(groups.values())
