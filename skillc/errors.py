"""Error taxonomy for the compilation core.

Detection, fetch and parse errors are fatal for a whole compilation run and
carry the offending source descriptor. Validation findings are not errors;
they are returned as warnings alongside a successful result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skillc.instructions.models import SpecSource


class SkillcError(Exception):
    """Structured, user-facing error.

    ``code`` is a short machine-readable tag; ``message`` is safe to print
    without a traceback.
    """

    code = "error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class SourceError(SkillcError):
    """An error tied to one spec source."""

    def __init__(self, source: SpecSource, message: str, code: str | None = None):
        self.source = source
        super().__init__(f"{source.describe()}: {message}", code)


class DetectionError(SourceError):
    code = "detect"


class FetchError(SourceError):
    code = "fetch"


class ParseError(SourceError):
    code = "parse"


class LockfileError(SkillcError):
    code = "lockfile"


class CacheError(SkillcError):
    code = "cache"


class InstructionsError(SkillcError):
    code = "instructions"


class ConfigError(SkillcError):
    code = "config"
