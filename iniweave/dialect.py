"""
iniweave Dialect - format constants and the per-document dialect value.

Layout of a document in the default dialect:

    ;comment above the section          <- leading comment of [Section]
    [Section] ;inline comment           <- header + trailing comment
    ;comment above the key              <- leading comment of Key
    Key=Value ;inline comment           <- key line + trailing comment
    ;closing comment                    <- document trailing comment

Design Decisions:
    - A Dialect is frozen; a document copies it on construction so later
      edits to the caller's object cannot change how the document is written
    - Comment markers, delimiters and wrappers are single characters
    - Key lines before the first header form the global section, which is
      written without a header and always sits first
    - Name comparison is case-insensitive unless the dialect says otherwise

Envelope:
    - save: serialize -> compress (if enabled) -> encrypt (if password)
    - load: decrypt (if password) -> decompress (if enabled) -> parse
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum

# Name under which the header-less section is stored
GLOBAL_SECTION_NAME = "__global__"

# Placeholder markers used by value binding
PLACEHOLDER_START = "@{"
PLACEHOLDER_END = "}"

# Maximum nesting for placeholders whose values contain placeholders
MAX_BINDING_DEPTH = 16

# Safety limits
MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB max input for the reader

# Encrypted envelope header and key derivation cost
ENCRYPTED_HEADER = b"#!INI-ENC/1.0\n"
PBKDF2_ITERATIONS = 600_000  # OWASP recommended minimum


class CommentStarter(str, Enum):
    SEMICOLON = ";"
    HASH = "#"


class KeyDelimiter(str, Enum):
    EQUAL = "="
    COLON = ":"


class SectionWrapper(Enum):
    SQUARE_BRACKETS = ("[", "]")
    ANGLE_BRACKETS = ("<", ">")
    CURLY_BRACKETS = ("{", "}")
    PARENTHESES = ("(", ")")

    @property
    def start(self) -> str:
        return self.value[0]

    @property
    def end(self) -> str:
        return self.value[1]


class DuplicatePolicy(Enum):
    """What happens when a section or key name is added twice."""

    OVERWRITE = "overwrite"  # last value wins, first position kept
    IGNORE = "ignore"        # first occurrence wins, later ones are dropped
    REJECT = "reject"        # DuplicateNameError


@dataclass(frozen=True)
class Dialect:
    """How a document is read and written.

    Usage:
        dialect = Dialect(comment_starter=CommentStarter.HASH,
                          key_delimiter=KeyDelimiter.COLON,
                          key_space_around_delimiter=True)
        doc = IniDocument(dialect)
    """

    comment_starter: CommentStarter = CommentStarter.SEMICOLON
    key_delimiter: KeyDelimiter = KeyDelimiter.EQUAL
    key_space_around_delimiter: bool = False
    section_wrapper: SectionWrapper = SectionWrapper.SQUARE_BRACKETS
    encoding: str | None = "utf-8"  # None = detect on read, utf-8 on write
    newline: str = "\n"

    allow_global_section: bool = True
    global_section_name: str = GLOBAL_SECTION_NAME

    key_duplicate: DuplicatePolicy = DuplicatePolicy.OVERWRITE
    section_duplicate: DuplicatePolicy = DuplicatePolicy.OVERWRITE
    key_name_case_sensitive: bool = False
    section_name_case_sensitive: bool = False

    encryption_password: str | None = field(default=None, repr=False)
    compression: bool = False

    def __post_init__(self) -> None:
        if self.newline not in ("\n", "\r\n", "\r"):
            raise ValueError(f"Unsupported newline: {self.newline!r}")
        if not self.global_section_name:
            raise ValueError("global_section_name cannot be empty")

    @property
    def comment(self) -> str:
        return self.comment_starter.value

    @property
    def delimiter(self) -> str:
        return self.key_delimiter.value

    @property
    def is_encrypted(self) -> bool:
        return bool(self.encryption_password)

    def replace(self, **changes) -> Dialect:
        """Return a copy with some fields changed."""
        return dataclasses.replace(self, **changes)

    def names_equal(self, a: str, b: str, *, sections: bool = False) -> bool:
        sensitive = self.section_name_case_sensitive if sections else self.key_name_case_sensitive
        if sensitive:
            return a == b
        return a.casefold() == b.casefold()
