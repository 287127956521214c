"""
iniweave Converters - plain-data and JSON views of a document.

Both directions keep every formatting detail (comments, blank lines,
indentation), so a document survives to_dict -> from_dict unchanged:
  - to_dict / from_dict
  - to_json / from_json

The encryption password is never exported.
"""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any

from iniweave.dialect import CommentStarter, Dialect, DuplicatePolicy, KeyDelimiter, SectionWrapper
from iniweave.document import IniDocument, IniKey, IniSection, StyledLine

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "comment_starter": CommentStarter,
    "key_delimiter": KeyDelimiter,
    "section_wrapper": SectionWrapper,
    "key_duplicate": DuplicatePolicy,
    "section_duplicate": DuplicatePolicy,
}
_PRIVATE_FIELDS = {"encryption_password"}


# =============================================================================
# dict
# =============================================================================

def _styled_to_dict(line: StyledLine) -> dict[str, Any]:
    return dataclasses.asdict(line)


def dialect_to_dict(dialect: Dialect) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for f in dataclasses.fields(dialect):
        if f.name in _PRIVATE_FIELDS:
            continue
        value = getattr(dialect, f.name)
        data[f.name] = value.name if isinstance(value, Enum) else value
    return data


def to_dict(doc: IniDocument) -> dict[str, Any]:
    """Convert a document to nested dicts and lists of plain values."""
    sections = []
    for section in doc.sections:
        sections.append({
            "name": section.name,
            "left_indentation": section.left_indentation,
            "leading_comment": _styled_to_dict(section.leading_comment),
            "trailing_comment": _styled_to_dict(section.trailing_comment),
            "keys": [
                {
                    "name": key.name,
                    "value": key.value,
                    "left_indentation": key.left_indentation,
                    "leading_comment": _styled_to_dict(key.leading_comment),
                    "trailing_comment": _styled_to_dict(key.trailing_comment),
                }
                for key in section.keys
            ],
        })
    return {
        "dialect": dialect_to_dict(doc.dialect),
        "sections": sections,
        "trailing_comment": _styled_to_dict(doc.trailing_comment),
    }


def _require(data: Any, kind: type, what: str) -> Any:
    if not isinstance(data, kind) or (kind is int and isinstance(data, bool)):
        raise ValueError(f"Invalid document data: {what} must be {kind.__name__}")
    return data


def _styled_from_dict(data: Any, what: str) -> StyledLine:
    if data is None:
        return StyledLine()
    _require(data, dict, what)
    text = data.get("text")
    if text is not None:
        _require(text, str, f"{what}.text")
    return StyledLine(
        text=text,
        left_indentation=_require(data.get("left_indentation", 0), int, f"{what}.left_indentation"),
        empty_lines_before=_require(data.get("empty_lines_before", 0), int, f"{what}.empty_lines_before"),
    )


def dialect_from_dict(data: Any) -> Dialect:
    _require(data, dict, "dialect")
    known = {f.name for f in dataclasses.fields(Dialect)} - _PRIVATE_FIELDS
    changes: dict[str, Any] = {}
    for name, value in data.items():
        if name not in known:
            raise ValueError(f"Invalid document data: unknown dialect field {name!r}")
        enum_type = _ENUM_FIELDS.get(name)
        if enum_type is not None:
            try:
                value = enum_type[value]
            except (KeyError, TypeError):
                raise ValueError(f"Invalid document data: bad {name} {value!r}") from None
        changes[name] = value
    try:
        return Dialect(**changes)
    except TypeError as exc:
        raise ValueError(f"Invalid document data: {exc}") from exc


def from_dict(data: Any, password: str | None = None) -> IniDocument:
    """Create a document from to_dict() output. Validates every shape."""
    _require(data, dict, "top level")
    dialect = dialect_from_dict(data.get("dialect", {}))
    if password:
        dialect = dialect.replace(encryption_password=password)

    doc = IniDocument(dialect)
    for i, sec in enumerate(_require(data.get("sections", []), list, "sections")):
        where = f"sections[{i}]"
        _require(sec, dict, where)
        section = IniSection(
            _require(sec.get("name"), str, f"{where}.name"),
            left_indentation=_require(sec.get("left_indentation", 0), int, f"{where}.left_indentation"),
            leading_comment=_styled_from_dict(sec.get("leading_comment"), f"{where}.leading_comment"),
            trailing_comment=_styled_from_dict(sec.get("trailing_comment"), f"{where}.trailing_comment"),
        )
        section = doc.sections.add(section)

        for j, item in enumerate(_require(sec.get("keys", []), list, f"{where}.keys")):
            kwhere = f"{where}.keys[{j}]"
            _require(item, dict, kwhere)
            section.keys.add(IniKey(
                _require(item.get("name"), str, f"{kwhere}.name"),
                _require(item.get("value", ""), str, f"{kwhere}.value"),
                left_indentation=_require(item.get("left_indentation", 0), int, f"{kwhere}.left_indentation"),
                leading_comment=_styled_from_dict(item.get("leading_comment"), f"{kwhere}.leading_comment"),
                trailing_comment=_styled_from_dict(item.get("trailing_comment"), f"{kwhere}.trailing_comment"),
            ))

    doc.trailing_comment = _styled_from_dict(data.get("trailing_comment"), "trailing_comment")
    return doc


# =============================================================================
# JSON
# =============================================================================

def to_json(doc: IniDocument, indent: int = 2) -> str:
    """Convert an INI document to a JSON string."""
    return json.dumps(to_dict(doc), indent=indent, ensure_ascii=False)


def from_json(json_str: str, password: str | None = None) -> IniDocument:
    """Create an INI document from a to_json() string."""
    return from_dict(json.loads(json_str), password)
