"""
iniweave Reader - line-oriented parser for INI text.

Every line is kept: comment lines become the leading comment of the next
section or key, inline comments become trailing comments, and blank lines
are counted so the writer can put them back.

Parsing rules:
  - Leading spaces and tabs are the indentation (each counts as 1)
  - A header name runs to the last wrapper end before the first comment
    marker that follows some wrapper end, so "[;]" and "[[;]];" both work
  - A key value runs to the first comment marker outside a leading
    double-quoted span, and is right-stripped
  - Malformed lines raise ParseError with the 1-based line number; nothing
    is returned for a document that failed to parse
"""

from __future__ import annotations

import logging
from pathlib import Path

import chardet

from iniweave.dialect import Dialect, DuplicatePolicy, MAX_FILE_SIZE
from iniweave.document import IniDocument, IniKey, IniSection, StyledLine
from iniweave.envelope import unseal
from iniweave.errors import DuplicateNameError, ParseError

logger = logging.getLogger(__name__)

# Below this chardet confidence the input is decoded as UTF-8
MIN_DETECTION_CONFIDENCE = 0.8


def decode_text(data: bytes, encoding: str | None) -> str:
    """Decode bytes, detecting the encoding with chardet when it is None."""
    if encoding is None:
        encoding = "utf-8"
        if data:
            guess = chardet.detect(data)
            if guess["encoding"] and guess["confidence"] >= MIN_DETECTION_CONFIDENCE:
                encoding = guess["encoding"]
                logger.debug("Detected encoding %s (confidence %.2f)", encoding, guess["confidence"])
            else:
                logger.warning(
                    "Encoding detection unsure (%s, confidence %.2f); using utf-8",
                    guess["encoding"], guess["confidence"] or 0.0,
                )
    text = data.decode(encoding)
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


class IniReader:
    """
    INI text parser.

    Usage:
        doc = IniReader.read("settings.ini")
        doc = IniReader.parse(data, Dialect(comment_starter=CommentStarter.HASH))
        doc = IniReader.parse_text("[Server]\\nHost=localhost\\n")
    """

    def __init__(self, dialect: Dialect | None = None) -> None:
        self.dialect = dialect if dialect is not None else Dialect()
        self.document = IniDocument(self.dialect)
        self._section: IniSection | None = None
        self._pending_comment = StyledLine()
        self._pending_blank = 0
        self._line_no = 0

    @classmethod
    def read(cls, path: str | Path, dialect: Dialect | None = None, max_size: int = MAX_FILE_SIZE) -> IniDocument:
        """Parse an INI file into an IniDocument."""
        path = Path(path)
        file_size = path.stat().st_size
        if file_size > max_size:
            raise ValueError(
                f"File size {file_size} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        with open(path, "rb") as f:
            data = f.read()
        return cls.parse(data, dialect, max_size=max_size)

    @classmethod
    def parse(cls, data: bytes, dialect: Dialect | None = None, max_size: int = MAX_FILE_SIZE) -> IniDocument:
        """Parse raw bytes (envelope included) into an IniDocument."""
        if len(data) > max_size:
            raise ValueError(
                f"Input size {len(data)} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        dialect = dialect if dialect is not None else Dialect()
        data = unseal(data, dialect)
        return cls.parse_text(decode_text(data, dialect.encoding), dialect)

    @classmethod
    def parse_text(cls, text: str, dialect: Dialect | None = None) -> IniDocument:
        """Parse decoded text into an IniDocument."""
        reader = cls(dialect)
        if text.startswith("\ufeff"):
            text = text[1:]
        # Normalize CRLF/CR to LF to handle Windows line endings
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()

        for line in lines:
            reader._line_no += 1
            if not line.strip():
                reader._pending_blank += 1
            else:
                reader._read_line(line)

        reader._finish()
        doc = reader.document
        logger.debug(
            "Parsed %d lines into %d sections (%d keys)",
            reader._line_no, len(doc.sections), sum(len(s.keys) for s in doc.sections),
        )
        return doc

    # =========================================================================
    # Line handlers
    # =========================================================================

    def _read_line(self, line: str) -> None:
        indent = len(line) - len(line.lstrip(" \t"))
        first = line[indent]

        if first == self.dialect.comment:
            self._read_comment(indent, line[indent + 1:])
        elif first == self.dialect.section_wrapper.start:
            self._read_section(indent, line)
        else:
            self._read_key(indent, line)

    def _read_comment(self, indent: int, text: str) -> None:
        pending = self._pending_comment
        if pending.text is None:
            self._pending_comment = StyledLine(text, indent, self._pending_blank)
        else:
            # Blank lines inside a comment block are not kept
            pending.text += "\n" + text
        self._pending_blank = 0

    def _take_comments(self) -> tuple[StyledLine, StyledLine]:
        """Hand the pending comment block and blank lines to a new element."""
        leading = self._pending_comment
        if leading.text is None:
            leading = StyledLine(None, 0, self._pending_blank)
            trailing = StyledLine()
        else:
            trailing = StyledLine(None, 0, self._pending_blank)
        self._pending_comment = StyledLine()
        self._pending_blank = 0
        return leading, trailing

    def _find_header_end(self, line: str, start: int) -> int:
        comment = self.dialect.comment
        wrapper_end = self.dialect.section_wrapper.end
        search_from = start + 1
        while True:
            marker = line.find(comment, search_from)
            limit = marker if marker != -1 else len(line)
            end = line.rfind(wrapper_end, start + 1, limit)
            if end != -1 or marker == -1:
                return end
            search_from = marker + 1

    def _read_section(self, indent: int, line: str) -> None:
        end = self._find_header_end(line, indent)
        if end == -1:
            raise ParseError(self._line_no, "section header is not closed")

        name = line[indent + 1:end]
        if self.dialect.names_equal(name, self.dialect.global_section_name, sections=True):
            raise ParseError(self._line_no, f"section name {name!r} is reserved for the global section")

        leading, trailing = self._take_comments()
        self._read_inline_comment(line[end + 1:], trailing, "after section header")

        section = IniSection(name, left_indentation=indent, leading_comment=leading, trailing_comment=trailing)
        try:
            added = self.document.sections.add(section)
        except DuplicateNameError:
            raise DuplicateNameError(name, "section", self._line_no) from None

        if added is not section and self.dialect.section_duplicate is DuplicatePolicy.IGNORE:
            # Keys of an ignored section are read into a detached copy and dropped
            self._section = IniSection(name)
        else:
            self._section = added

    def _read_inline_comment(self, rest: str, trailing: StyledLine, where: str) -> None:
        stripped = rest.lstrip(" \t")
        if not stripped:
            return
        if not stripped.startswith(self.dialect.comment):
            raise ParseError(self._line_no, f"unexpected text {stripped!r} {where}")
        trailing.text = stripped[1:]
        trailing.left_indentation = len(rest) - len(stripped)

    def _read_key(self, indent: int, line: str) -> None:
        delimiter = line.find(self.dialect.delimiter, indent)
        if delimiter == -1:
            raise ParseError(self._line_no, f"expected {self.dialect.delimiter!r} in key line")

        if self._section is None:
            if not self.dialect.allow_global_section:
                raise ParseError(self._line_no, "key outside of any section")
            self._section = self.document.sections.add(self.dialect.global_section_name)

        spaced = delimiter > indent and line[delimiter - 1] == " "
        name = line[indent:delimiter - 1 if spaced else delimiter]
        value_start = delimiter + 1
        if spaced and line[value_start:value_start + 1] == " ":
            value_start += 1

        leading, trailing = self._take_comments()
        value = self._read_value(line[value_start:], trailing)

        key = IniKey(name, value, left_indentation=indent, leading_comment=leading, trailing_comment=trailing)
        try:
            self._section.keys.add(key)
        except DuplicateNameError:
            raise DuplicateNameError(name, "key", self._line_no) from None

    def _read_value(self, rest: str, trailing: StyledLine) -> str:
        comment = self.dialect.comment
        marker = rest.find(comment)

        # Comment markers inside a leading quoted span belong to the value
        if rest.startswith('"'):
            quote_end = rest.find('"', 1)
            while marker != -1 and marker < quote_end:
                marker = rest.find(comment, marker + 1)

        if marker == -1:
            return rest.rstrip()

        before = rest[:marker]
        value = before.rstrip()
        trailing.text = rest[marker + 1:]
        trailing.left_indentation = len(before) - len(value)
        return value

    def _finish(self) -> None:
        leftover = self._pending_comment
        if leftover.text is None:
            leftover = StyledLine(None, 0, self._pending_blank)
        # Blank lines after a closing comment block are not kept
        self.document.trailing_comment = leftover
        self._pending_comment = StyledLine()
        self._pending_blank = 0
