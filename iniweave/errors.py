"""
iniweave errors.

Structural failures (parse, duplicate names, envelope) are raised and abort
the operation that hit them. Conversion failures and lookup misses are not
errors: they come back as ``(False, None)`` and ``None``.
"""

from __future__ import annotations


class IniError(Exception):
    """Base class for every error raised by iniweave."""


class ParseError(IniError, ValueError):
    """A malformed line. Carries the 1-based line number."""

    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"line {line}: {reason}")
        self.line = line
        self.reason = reason


class DuplicateNameError(IniError, ValueError):
    """A section or key name collides under the REJECT policy (or on rename)."""

    def __init__(self, name: str, kind: str = "key", line: int | None = None) -> None:
        where = f"line {line}: " if line is not None else ""
        super().__init__(f"{where}duplicate {kind} name: {name!r}")
        self.name = name
        self.kind = kind
        self.line = line


class EnvelopeError(IniError, ValueError):
    """The byte envelope around a document could not be removed."""


class DecryptionError(EnvelopeError):
    """Wrong password, tampered ciphertext or a malformed encrypted payload."""


class DecompressionError(EnvelopeError):
    """Corrupt, truncated or non-compressed input to decompress()."""
