"""Parser registry — route sources to spec parsers and fold their output.

Each parser implements the same four-step lifecycle (detect, fetch, parse,
validate). The registry selects parsers by a linear scan in registration
order, so the first parser that claims a source wins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from enum import Enum

from skillc.errors import DetectionError
from skillc.instructions.models import SpecSource
from skillc.ir.models import IntermediateRepr

logger = logging.getLogger(__name__)


class Severity(Enum):
    WARNING = "warning"  # Completeness gap worth fixing
    INFO = "info"  # Informational only


@dataclass
class ValidationWarning:
    """A non-fatal finding from a parser's validate step."""

    source: str
    message: str
    severity: Severity = Severity.WARNING

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.source}: {self.message}"


class SpecParser(ABC):
    """Capability set shared by every spec parser."""

    name: str = ""

    @abstractmethod
    def detect(self, source: SpecSource) -> bool:
        """Return True if this parser handles ``source``.

        Must inspect only the descriptor and never perform I/O.
        """

    @abstractmethod
    def fetch(self, source: SpecSource) -> bytes:
        """Read the raw spec bytes. Raises FetchError on I/O failure."""

    @abstractmethod
    def parse(self, data: bytes, source: SpecSource) -> IntermediateRepr:
        """Turn raw bytes into a partial IR. Raises ParseError."""

    @abstractmethod
    def validate(self, ir: IntermediateRepr) -> list[ValidationWarning]:
        """Report completeness gaps in a partial IR."""


class Registry:
    """Holds registered parsers and compiles a list of sources into one IR."""

    def __init__(self) -> None:
        self._parsers: list[SpecParser] = []

    def register(self, parser: SpecParser) -> None:
        self._parsers.append(parser)

    @property
    def parsers(self) -> list[SpecParser]:
        return list(self._parsers)

    def detect(self, source: SpecSource) -> SpecParser:
        """Return the first registered parser that claims ``source``."""
        for parser in self._parsers:
            if parser.detect(source):
                return parser
        raise DetectionError(source, "no registered parser handles this source")

    def process_sources(
        self, sources: list[SpecSource]
    ) -> tuple[IntermediateRepr, list[ValidationWarning]]:
        """Compile ``sources`` into one IR, in list order.

        Detection, fetch and parse errors abort the whole call; there is no
        partial-success mode. Validation warnings are collected and returned
        with the merged IR.
        """
        result = IntermediateRepr()
        warnings: list[ValidationWarning] = []

        for source in sources:
            parser = self.detect(source)
            logger.debug("source %s -> parser %s", source.describe(), parser.name)

            data = parser.fetch(source)
            partial = parser.parse(data, source)
            found = parser.validate(partial)
            logger.debug(
                "%s: %d operation(s), %d type(s), %d warning(s)",
                source.describe(),
                len(partial.operations),
                len(partial.types),
                len(found),
            )

            warnings.extend(found)
            result.merge(partial)

        warnings.extend(_duplicate_id_warnings(result))
        return result, warnings


def _duplicate_id_warnings(ir: IntermediateRepr) -> list[ValidationWarning]:
    # Duplicates are kept as-is; downstream consumers decide what to do.
    counts = Counter(op.id for op in ir.operations)
    return [
        ValidationWarning(
            source="registry",
            message=f"operation id '{op_id}' appears {n} times",
            severity=Severity.INFO,
        )
        for op_id, n in counts.items()
        if n > 1
    ]


def default_registry() -> Registry:
    """Registry with the OpenAPI, CLI and codebase parsers, in that order."""
    from skillc.parsers.cli_parser import CLIHelpParser
    from skillc.parsers.codebase_scanner import CodebaseScanner
    from skillc.parsers.openapi_parser import OpenAPIParser

    registry = Registry()
    registry.register(OpenAPIParser())
    registry.register(CLIHelpParser())
    registry.register(CodebaseScanner())
    return registry
