"""Spec parsers — one per source kind (OpenAPI, CLI help text, codebase)."""

from skillc.parsers.cli_parser import CLIHelpParser
from skillc.parsers.codebase_scanner import CodebaseScanner
from skillc.parsers.openapi_parser import OpenAPIParser

__all__ = ["CLIHelpParser", "CodebaseScanner", "OpenAPIParser"]
