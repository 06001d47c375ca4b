"""Instructions — the project file naming spec sources and document sections."""

from skillc.instructions.loader import (
    INSTRUCTIONS_FILE,
    decode_spec,
    extract_sections,
    parse_instructions,
    parse_instructions_text,
)
from skillc.instructions.models import Instructions, SingleSpec, SpecList, SpecSource

__all__ = [
    "INSTRUCTIONS_FILE",
    "Instructions",
    "SingleSpec",
    "SpecList",
    "SpecSource",
    "decode_spec",
    "extract_sections",
    "parse_instructions",
    "parse_instructions_text",
]
