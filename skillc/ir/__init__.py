"""Intermediate Representation (IR) for interface descriptions.

Every spec parser produces a partial IR; the registry folds the partials into
one aggregate in source order. The IR normalizes:
- Operations (HTTP endpoints, CLI commands) with parameters and responses
- Named types referenced from request and response bodies
- Authentication schemes and operation groups
- Project structure for scanned source trees
"""

from skillc.ir.models import IntermediateRepr, ir_from_dict, ir_to_dict, ir_to_json
from skillc.ir.registry import Registry, Severity, SpecParser, ValidationWarning, default_registry

__all__ = [
    "IntermediateRepr",
    "Registry",
    "Severity",
    "SpecParser",
    "ValidationWarning",
    "default_registry",
    "ir_from_dict",
    "ir_to_dict",
    "ir_to_json",
]
