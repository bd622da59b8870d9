"""
exceptions raised while reading or writing (C)RINEX observation data.

All derive from ValueError, consistent with the rest of the reader
which reports invalid files as ValueError.
"""

from __future__ import annotations


class CrinexError(ValueError):
    pass


class GrammarError(CrinexError):
    """malformed column layout or field count mismatch against the header"""

    def __init__(self, message: str, lineno: int = None, revision: int = None):
        super().__init__(message)
        self.message = message
        self.lineno = lineno
        self.revision = revision

    def __str__(self) -> str:
        where = []
        if self.lineno is not None:
            where.append(f"line {self.lineno}")
        if self.revision is not None:
            where.append(f"RINEX {self.revision}")
        if not where:
            return self.message
        return f"{', '.join(where)}: {self.message}"


class StateError(CrinexError):
    """differencing state is inconsistent for one (satellite, observable)"""


class TruncationError(CrinexError):
    """stream ended inside an epoch block or inside the header"""
