"""skill-compiler — compile interface descriptions into one normalized IR.

Sources (OpenAPI documents, CLI help output, source trees) are parsed into a
format-agnostic intermediate representation, merged in source order, and
hashed to decide whether previously generated artifacts are still current.
"""

__version__ = "0.3.0"
