"""
iniweave Writer - serializes an IniDocument back to INI text.

Each element is written as:
  1. blank lines and comment lines of its leading comment
  2. blank lines recorded between that comment block and the element
  3. the header or key line, then its inline trailing comment

The global section has no header and only its keys are written. Names that
would read back as something else (a key containing the delimiter, a key
starting with a comment marker or header bracket) raise ValueError.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from iniweave.document import StyledLine
from iniweave.envelope import seal

if TYPE_CHECKING:
    from iniweave.dialect import Dialect
    from iniweave.document import IniDocument, IniSection

logger = logging.getLogger(__name__)


def _check_single_line(text: str, what: str) -> None:
    if "\n" in text or "\r" in text:
        raise ValueError(f"{what} cannot contain line breaks: {text!r}")


def _check_key_name(name: str, dialect: Dialect) -> None:
    _check_single_line(name, "Key name")
    if dialect.delimiter in name:
        raise ValueError(f"Key name cannot contain {dialect.delimiter!r}: {name!r}")
    if name.lstrip(" \t")[:1] in (dialect.comment, dialect.section_wrapper.start):
        raise ValueError(f"Key name would be read back as a comment or header: {name!r}")
    if not name and dialect.key_space_around_delimiter:
        raise ValueError("Empty key names cannot be written with spaces around the delimiter")


def _check_section_name(name: str, dialect: Dialect) -> None:
    _check_single_line(name, "Section name")
    # A wrapper end followed later by a comment marker closes the header early
    end = name.find(dialect.section_wrapper.end)
    if end != -1 and dialect.comment in name[end + 1:]:
        raise ValueError(
            f"Section name cannot contain {dialect.section_wrapper.end!r} "
            f"followed by {dialect.comment!r}: {name!r}"
        )


def _check_global_section(section: IniSection) -> None:
    if (
        section.left_indentation
        or section.leading_comment != StyledLine()
        or section.trailing_comment != StyledLine()
    ):
        raise ValueError(
            "The global section has no header line; put comments and blank "
            "lines on its first key instead"
        )


class IniWriter:

    @staticmethod
    def render(doc: IniDocument) -> str:
        """Render a document to text. Pure: does not mutate the document."""
        dialect = doc.dialect
        lines: list[str] = []

        for section in doc.sections:
            if section.is_global:
                _check_global_section(section)
            else:
                _check_section_name(section.name, dialect)
                IniWriter._emit_leading(lines, section.leading_comment, section.trailing_comment, dialect)
                header = (
                    " " * section.left_indentation
                    + dialect.section_wrapper.start
                    + section.name
                    + dialect.section_wrapper.end
                )
                lines.append(header + IniWriter._inline(section.trailing_comment, dialect))

            for key in section.keys:
                _check_key_name(key.name, dialect)
                _check_single_line(key.value, "Key value")
                IniWriter._emit_leading(lines, key.leading_comment, key.trailing_comment, dialect)
                delimiter = dialect.delimiter
                if dialect.key_space_around_delimiter:
                    delimiter = f" {delimiter} "
                line = " " * key.left_indentation + key.name + delimiter + key.value
                lines.append(line + IniWriter._inline(key.trailing_comment, dialect))

        IniWriter._emit_leading(lines, doc.trailing_comment, None, dialect)

        if not lines:
            return ""
        return dialect.newline.join(lines) + dialect.newline

    @staticmethod
    def _emit_leading(
        lines: list[str], comment: StyledLine, trailing: StyledLine | None, dialect: Dialect,
    ) -> None:
        """Blank lines, the comment block, then the blank lines below it.

        Without a comment block both blank counts land in one run, which
        reads back as ``comment.empty_lines_before``.
        """
        between = trailing.empty_lines_before if trailing is not None else 0
        if comment.text is None:
            lines.extend([""] * (comment.empty_lines_before + between))
            return
        _check_single_line(comment.text.replace("\n", ""), "Comment line")
        lines.extend([""] * comment.empty_lines_before)
        prefix = " " * comment.left_indentation + dialect.comment
        for text in comment.lines:
            lines.append(prefix + text)
        lines.extend([""] * between)

    @staticmethod
    def _inline(comment: StyledLine, dialect: Dialect) -> str:
        if comment.text is None:
            return ""
        _check_single_line(comment.text, "Inline comment")
        return " " * comment.left_indentation + dialect.comment + comment.text

    @staticmethod
    def serialize(doc: IniDocument) -> bytes:
        """Serialize to bytes: encode, then compress/encrypt per the dialect."""
        dialect = doc.dialect
        text = IniWriter.render(doc)
        data = text.encode(dialect.encoding or "utf-8")
        logger.debug("Serialized %d sections into %d bytes", len(doc.sections), len(data))
        return seal(data, dialect)

    @staticmethod
    def write(doc: IniDocument, path: str | Path, mode: int = 0o644) -> int:
        """Write an IniDocument to a file atomically. Returns bytes written.

        Uses write-to-temp-then-rename so the target is never partially
        written. For sensitive files, pass mode=0o600.
        """
        data = IniWriter.serialize(doc)
        path = os.fspath(path)
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".ini.tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except BaseException:
            # Clean up temp file on failure
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return len(data)
