"""
iniweave Document - in-memory representation of an INI file.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import IO, TYPE_CHECKING, Any, Iterable, Iterator, Mapping

from iniweave.dialect import Dialect, DuplicatePolicy, MAX_FILE_SIZE
from iniweave.errors import DuplicateNameError
from iniweave import values as _values

if TYPE_CHECKING:
    from pathlib import Path

    from iniweave.binding import ValueBinding
    from iniweave.mapper import SectionSchema

logger = logging.getLogger(__name__)

_DEFAULT_DIALECT = Dialect()


@dataclass
class StyledLine:
    """Comment text plus the whitespace around it.

    ``text`` is None when there is no comment at all; an empty string is a
    bare comment marker. Multi-line text (joined by "\\n") is only written
    for leading comments, one marker per line.
    """
    text: str | None = None
    left_indentation: int = 0
    empty_lines_before: int = 0

    @property
    def lines(self) -> list[str]:
        if self.text is None:
            return []
        return self.text.split("\n")

    def copy(self) -> StyledLine:
        return dataclasses.replace(self)


# =============================================================================
# Keys
# =============================================================================

class IniKey:
    """A name/value pair. The value is always text; typed views are derived."""

    def __init__(
        self,
        name: str,
        value: str | None = "",
        *,
        left_indentation: int = 0,
        leading_comment: StyledLine | None = None,
        trailing_comment: StyledLine | None = None,
    ) -> None:
        if not isinstance(name, str):
            raise TypeError("Key name must be a string")
        self._name = name
        self._value = ""
        self.value = value
        self.left_indentation = left_indentation
        self.leading_comment = leading_comment if leading_comment is not None else StyledLine()
        self.trailing_comment = trailing_comment if trailing_comment is not None else StyledLine()
        self._parent: KeyCollection | None = None

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, new_name: str) -> None:
        if self._parent is not None:
            self._parent._verify_rename(self, new_name)
        self._name = new_name

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, new_value: str | None) -> None:
        if new_value is None:
            new_value = ""
        if not isinstance(new_value, str) or isinstance(new_value, Enum):
            raise TypeError(
                f"Key values are stored as text, got {type(new_value).__name__}; "
                f"use iniweave.values.format_value()"
            )
        self._value = str.__str__(new_value)

    @property
    def section(self) -> IniSection | None:
        return self._parent.owner if self._parent is not None else None

    @property
    def document(self) -> IniDocument | None:
        section = self.section
        return section.document if section is not None else None

    def _mappings(self) -> _values.ValueMappings | None:
        doc = self.document
        return doc.value_mappings if doc is not None else None

    # --- typed access ---

    def try_parse_value(self, kind: type) -> tuple[bool, Any]:
        """(success, value) using the owning document's alias table."""
        return _values.try_parse(self._value, kind, self._mappings())

    @property
    def is_value_array(self) -> bool:
        return _values.parse_array(self._value) is not None

    @property
    def values(self) -> list[str] | None:
        """Array view of ``{a, b, c}`` values, or None for scalar values."""
        return _values.parse_array(self._value)

    @values.setter
    def values(self, items: Iterable[Any] | None) -> None:
        self.value = None if items is None else _values.format_array(items)

    def try_parse_values(self, kind: type) -> tuple[bool, list | None]:
        return _values.try_parse_array(self._value, kind, self._mappings())

    def copy(self) -> IniKey:
        """Deep, detached copy. Add it to any section (of any document)."""
        return IniKey(
            self._name,
            self._value,
            left_indentation=self.left_indentation,
            leading_comment=self.leading_comment.copy(),
            trailing_comment=self.trailing_comment.copy(),
        )

    def __repr__(self) -> str:
        return f"IniKey(name={self._name!r}, value={self._value!r})"


# =============================================================================
# Collections
# =============================================================================

class _ItemCollection:
    """Ordered, name-indexed list of keys or sections.

    Integer indexing works like a list. Indexing by name returns the first
    match or None (a miss is not an error).
    """

    _kind = "item"
    _sections = False

    def __init__(self, owner: Any) -> None:
        self.owner = owner
        self._items: list = []

    # --- dialect plumbing ---

    def _dialect(self) -> Dialect:
        raise NotImplementedError

    def _policy(self) -> DuplicatePolicy:
        raise NotImplementedError

    def _same(self, a: str, b: str) -> bool:
        return self._dialect().names_equal(a, b, sections=self._sections)

    # --- lookup ---

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator:
        return iter(list(self._items))

    def __getitem__(self, index):
        if isinstance(index, str):
            return self.get(index)
        return self._items[index]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return self._index_of_name(item) != -1
        return any(existing is item for existing in self._items)

    def _index_of_name(self, name: str, start: int = 0) -> int:
        dialect = self._dialect()
        for i in range(start, len(self._items)):
            if dialect.names_equal(self._items[i].name, name, sections=self._sections):
                return i
        return -1

    def get(self, name: str):
        i = self._index_of_name(name)
        return self._items[i] if i != -1 else None

    def index(self, item) -> int:
        if isinstance(item, str):
            i = self._index_of_name(item)
        else:
            i = next((n for n, existing in enumerate(self._items) if existing is item), -1)
        if i == -1:
            raise ValueError(f"{self._kind} not in collection: {item!r}")
        return i

    def names(self) -> list[str]:
        return [item.name for item in self._items]

    # --- mutation ---

    def _attach(self, item, index: int | None) -> Any:
        if item._parent is not None:
            raise ValueError(
                f"{self._kind} {item.name!r} already belongs to a collection; add a copy() instead"
            )

        existing_at = self._index_of_name(item.name)
        if existing_at != -1:
            policy = self._policy()
            if policy is DuplicatePolicy.REJECT:
                raise DuplicateNameError(item.name, self._kind)
            existing = self._items[existing_at]
            if policy is DuplicatePolicy.IGNORE:
                logger.debug("Ignoring duplicate %s %r", self._kind, item.name)
                return existing
            self._merge(existing, item)
            return existing

        item._parent = self
        if index is None:
            self._items.append(item)
        else:
            self._items.insert(index, item)
        return item

    def _merge(self, existing, incoming) -> None:
        raise NotImplementedError

    def _verify_rename(self, item, new_name: str) -> None:
        for other in self._items:
            if other is not item and self._same(other.name, new_name):
                raise DuplicateNameError(new_name, self._kind)

    def _detach(self, item) -> None:
        item._parent = None

    def remove(self, item) -> bool:
        """Remove by name or by item. Returns False when nothing matched."""
        try:
            i = self.index(item)
        except ValueError:
            return False
        self._detach(self._items.pop(i))
        return True

    def pop(self, index: int = -1):
        item = self._items.pop(index)
        self._detach(item)
        return item

    def clear(self) -> None:
        for item in self._items:
            self._detach(item)
        self._items.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.names()!r})"


class KeyCollection(_ItemCollection):
    """Keys of one section."""

    _kind = "key"

    def _dialect(self) -> Dialect:
        doc = self.owner.document
        return doc.dialect if doc is not None else _DEFAULT_DIALECT

    def _policy(self) -> DuplicatePolicy:
        return self._dialect().key_duplicate

    def _merge(self, existing: IniKey, incoming: IniKey) -> None:
        existing.value = incoming.value

    def add(self, key: IniKey | str, value: str | None = "") -> IniKey:
        """Append a key (or name/value). Returns the key now holding the value."""
        if not isinstance(key, IniKey):
            key = IniKey(key, value)
        return self._attach(key, None)

    def insert(self, index: int, key: IniKey | str, value: str | None = "") -> IniKey:
        if not isinstance(key, IniKey):
            key = IniKey(key, value)
        return self._attach(key, index)

    def to_dict(self) -> dict[str, str]:
        return {key.name: key.value for key in self._items}


class SectionCollection(_ItemCollection):
    """Sections of one document. The global section, if any, stays first."""

    _kind = "section"
    _sections = True

    def _dialect(self) -> Dialect:
        return self.owner.dialect

    def _policy(self) -> DuplicatePolicy:
        return self._dialect().section_duplicate

    def _is_global_name(self, name: str) -> bool:
        return self._same(name, self._dialect().global_section_name)

    def _merge(self, existing: IniSection, incoming: IniSection) -> None:
        if self._dialect().key_duplicate is DuplicatePolicy.REJECT:
            # All or nothing: find any collision before moving a single key
            seen: list[str] = []
            for key in incoming.keys:
                if existing.keys.get(key.name) is not None or any(
                    self._dialect().names_equal(key.name, name) for name in seen
                ):
                    raise DuplicateNameError(key.name, "key")
                seen.append(key.name)
        for key in list(incoming.keys):
            incoming.keys.remove(key)
            existing.keys.add(key)

    def _attach(self, item, index: int | None):
        if self._is_global_name(item.name):
            if not self._dialect().allow_global_section:
                raise ValueError("Global section is disabled by the dialect")
            index = 0
        elif index is not None and self._items and self._items[0].is_global and index <= 0:
            index = 1
        return super()._attach(item, index)

    def _verify_rename(self, item, new_name: str) -> None:
        if self._is_global_name(new_name) != self._is_global_name(item.name):
            raise ValueError("Sections cannot be renamed to or from the global section name")
        super()._verify_rename(item, new_name)

    def add(self, section: IniSection | str, keys=None) -> IniSection:
        if not isinstance(section, IniSection):
            section = IniSection(section, keys)
        return self._attach(section, None)

    def insert(self, index: int, section: IniSection | str, keys=None) -> IniSection:
        if not isinstance(section, IniSection):
            section = IniSection(section, keys)
        return self._attach(section, index)


# =============================================================================
# Sections
# =============================================================================

class IniSection:
    """A named, ordered group of keys with its own formatting."""

    def __init__(
        self,
        name: str,
        keys: Mapping[str, str] | Iterable[IniKey | tuple[str, str]] | None = None,
        *,
        left_indentation: int = 0,
        leading_comment: StyledLine | None = None,
        trailing_comment: StyledLine | None = None,
    ) -> None:
        if not isinstance(name, str):
            raise TypeError("Section name must be a string")
        self._name = name
        self.left_indentation = left_indentation
        self.leading_comment = leading_comment if leading_comment is not None else StyledLine()
        self.trailing_comment = trailing_comment if trailing_comment is not None else StyledLine()
        self._parent: SectionCollection | None = None
        self.keys = KeyCollection(self)

        if keys is not None:
            items = keys.items() if isinstance(keys, Mapping) else keys
            for item in items:
                if isinstance(item, IniKey):
                    self.keys.add(item)
                else:
                    name_, value = item
                    self.keys.add(name_, value)

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, new_name: str) -> None:
        if self._parent is not None:
            self._parent._verify_rename(self, new_name)
        self._name = new_name

    @property
    def document(self) -> IniDocument | None:
        return self._parent.owner if self._parent is not None else None

    @property
    def is_global(self) -> bool:
        doc = self.document
        dialect = doc.dialect if doc is not None else _DEFAULT_DIALECT
        return dialect.names_equal(self._name, dialect.global_section_name, sections=True)

    def get_key(self, name: str) -> IniKey | None:
        return self.keys.get(name)

    def copy(self) -> IniSection:
        """Deep, detached copy including every key and comment."""
        clone = IniSection(
            self._name,
            left_indentation=self.left_indentation,
            leading_comment=self.leading_comment.copy(),
            trailing_comment=self.trailing_comment.copy(),
        )
        for key in self.keys:
            clone.keys.add(key.copy())
        return clone

    # --- object mapping ---

    def serialize(self, obj: Any, schema: SectionSchema | None = None) -> None:
        """Write ``obj``'s fields into this section as keys."""
        from iniweave.mapper import serialize_into
        serialize_into(self, obj, schema)

    def deserialize(self, target: type | SectionSchema) -> Any:
        """Build a new object from this section's keys."""
        from iniweave.mapper import deserialize_from
        return deserialize_from(self, target)

    def __repr__(self) -> str:
        return f"IniSection(name={self._name!r}, keys={self.keys.names()!r})"


# =============================================================================
# Document
# =============================================================================

class IniDocument:
    """
    In-memory representation of an INI file.

    Usage:
        doc = IniDocument()
        section = doc.add_section("Server")
        section.keys.add("Host", "localhost")
        data = doc.to_bytes()

        doc = IniDocument.from_bytes(data)
        doc.sections["Server"].keys["Host"].value    # 'localhost'
    """

    def __init__(self, dialect: Dialect | None = None) -> None:
        self._dialect = dialect if dialect is not None else Dialect()
        self.sections = SectionCollection(self)
        self.value_mappings = _values.ValueMappings()
        # Comment/blank lines after the last section or key
        self.trailing_comment = StyledLine()
        self._value_binding: ValueBinding | None = None

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def value_binding(self) -> ValueBinding:
        if self._value_binding is None:
            from iniweave.binding import ValueBinding
            self._value_binding = ValueBinding(self)
        return self._value_binding

    @property
    def global_section(self) -> IniSection | None:
        if self.sections and self.sections[0].is_global:
            return self.sections[0]
        return None

    def add_section(self, name: str, keys=None) -> IniSection:
        """Add a section by name. Returns the section for chaining."""
        return self.sections.add(name, keys)

    def get_section(self, name: str) -> IniSection | None:
        return self.sections.get(name)

    # --- reading ---

    @classmethod
    def from_bytes(cls, data: bytes, dialect: Dialect | None = None) -> IniDocument:
        from iniweave.reader import IniReader
        return IniReader.parse(data, dialect)

    @classmethod
    def from_text(cls, text: str, dialect: Dialect | None = None) -> IniDocument:
        """Parse already-decoded text (no envelope)."""
        from iniweave.reader import IniReader
        return IniReader.parse_text(text, dialect)

    @classmethod
    def load(cls, stream: IO[bytes], dialect: Dialect | None = None, max_size: int = MAX_FILE_SIZE) -> IniDocument:
        """Parse everything left in a binary stream."""
        from iniweave.reader import IniReader
        data = stream.read(max_size + 1)
        return IniReader.parse(data, dialect, max_size=max_size)

    @classmethod
    def read(cls, path: str | Path, dialect: Dialect | None = None, max_size: int = MAX_FILE_SIZE) -> IniDocument:
        from iniweave.reader import IniReader
        return IniReader.read(path, dialect, max_size=max_size)

    # --- writing ---

    def to_text(self) -> str:
        """Render to text without the envelope."""
        from iniweave.writer import IniWriter
        return IniWriter.render(self)

    def to_bytes(self) -> bytes:
        """Serialize this document to bytes (encoded, compressed/encrypted per dialect)."""
        from iniweave.writer import IniWriter
        return IniWriter.serialize(self)

    def save(self, stream: IO[bytes]) -> int:
        """Write to a binary stream. Returns bytes written."""
        data = self.to_bytes()
        stream.write(data)
        stream.flush()
        return len(data)

    def write(self, path: str | Path, mode: int = 0o644) -> int:
        """Write this document to a file atomically. Returns bytes written."""
        from iniweave.writer import IniWriter
        return IniWriter.write(self, path, mode)

    def __repr__(self) -> str:
        return f"IniDocument(sections={self.sections.names()!r})"
