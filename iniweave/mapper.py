"""
iniweave Mapper - copies object fields to section keys and back.

Dataclasses describe themselves; field metadata renames or excludes:

    @dataclass
    class Player:
        name: str = ""
        attack: str = field(default="", metadata=ini_key("Sword"))
        health: int = field(default=100, metadata=ini_exclude())

    section.serialize(player)          # name=..., Sword=...
    player = section.deserialize(Player)

Any other type can be mapped with an explicit SectionSchema.

Design Decisions:
    - Fields whose type has no text grammar are skipped, not rejected
    - Deserialization starts from factory() defaults; a missing key keeps
      the default, and a value that fails to convert keeps it too (logged)
    - Key names default to the attribute name unchanged
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import types
import typing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from iniweave.values import format_value, is_supported_kind

if TYPE_CHECKING:
    from iniweave.document import IniSection

logger = logging.getLogger(__name__)

KEY_METADATA = "ini_key"
EXCLUDE_METADATA = "ini_exclude"


def ini_key(name: str) -> dict[str, Any]:
    """Field metadata: store this attribute under another key name."""
    return {KEY_METADATA: name}


def ini_exclude() -> dict[str, Any]:
    """Field metadata: never map this attribute."""
    return {EXCLUDE_METADATA: True}


@dataclass(frozen=True)
class FieldMapping:
    attribute: str
    key_name: str
    kind: type
    is_list: bool = False
    include: bool = True
    optional: bool = False


@dataclass(frozen=True)
class SectionSchema:
    """How one type maps onto a section: a factory plus ordered fields."""

    factory: Callable[[], Any]
    fields: tuple[FieldMapping, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def included(self) -> list[FieldMapping]:
        return [f for f in self.fields if f.include]

    @classmethod
    def for_dataclass(cls, target: type) -> SectionSchema:
        """Build (once per type) the schema of a dataclass."""
        if not (isinstance(target, type) and dataclasses.is_dataclass(target)):
            raise TypeError(f"{target!r} is not a dataclass type")
        return _dataclass_schema(target)


def _unwrap_hint(hint: Any) -> tuple[Any, bool, bool]:
    """Return (kind, is_list, optional) for a field's type hint."""
    optional = False
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            optional = True
            hint = args[0]
            origin = typing.get_origin(hint)

    if origin is list:
        args = typing.get_args(hint)
        return (args[0] if args else str), True, optional
    return hint, False, optional


@functools.lru_cache(maxsize=None)
def _dataclass_schema(target: type) -> SectionSchema:
    hints = typing.get_type_hints(target)
    mappings = []
    for f in dataclasses.fields(target):
        kind, is_list, optional = _unwrap_hint(hints.get(f.name, str))
        include = not f.metadata.get(EXCLUDE_METADATA, False)
        if include and not is_supported_kind(kind):
            logger.debug("Skipping %s.%s: no text form for %r", target.__name__, f.name, kind)
            include = False
        mappings.append(FieldMapping(
            attribute=f.name,
            key_name=f.metadata.get(KEY_METADATA, f.name),
            kind=kind,
            is_list=is_list,
            include=include,
            optional=optional,
        ))
    return SectionSchema(target, tuple(mappings))


def _resolve_schema(target: Any) -> SectionSchema:
    if isinstance(target, SectionSchema):
        return target
    if isinstance(target, type):
        return SectionSchema.for_dataclass(target)
    return SectionSchema.for_dataclass(type(target))


def serialize_into(section: IniSection, obj: Any, schema: SectionSchema | None = None) -> None:
    """Write one key per included field of ``obj``, in field order."""
    schema = schema if schema is not None else _resolve_schema(obj)
    for mapping in schema.included:
        value = getattr(obj, mapping.attribute)
        text = format_value(value)

        key = section.keys.get(mapping.key_name)
        if key is not None:
            key.value = text
        else:
            section.keys.add(mapping.key_name, text)


def deserialize_from(section: IniSection, target: type | SectionSchema) -> Any:
    """Create an object from factory() defaults and the section's keys."""
    schema = _resolve_schema(target)
    obj = schema.factory()

    for mapping in schema.included:
        key = section.keys.get(mapping.key_name)
        if key is None:
            continue

        if mapping.optional and key.value == "":
            setattr(obj, mapping.attribute, None)
            continue

        if mapping.is_list:
            ok, value = key.try_parse_values(mapping.kind)
        else:
            ok, value = key.try_parse_value(mapping.kind)

        if not ok:
            logger.warning(
                "Cannot convert %s=%r to %s for %s; keeping default",
                key.name, key.value, getattr(mapping.kind, "__name__", mapping.kind),
                mapping.attribute,
            )
            continue
        setattr(obj, mapping.attribute, value)

    return obj
