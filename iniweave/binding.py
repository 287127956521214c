"""
iniweave Binding - placeholder substitution inside key values.

A placeholder is ``@{name}`` (markers configurable per ValueBinding). Names
are resolved against, in order:
  1. the external source passed to bind(), by full name
  2. ``section|key``: that key of that section
  3. a bare ``key``: the key's own section first, then every section in order

Resolved values are themselves bound, so ``A=@{B}`` with ``B=@{C}`` works.
A name that leads back onto itself, or nests deeper than ``max_depth``,
counts as not found and the placeholder is left as written.

Usage:
    doc.value_binding.bind()
    doc.value_binding.bind({"User Alias": "Johny"}, section="User")
    doc.value_binding.bind(hook=lambda event: ...)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Hashable, Iterable, Mapping

from iniweave.dialect import MAX_BINDING_DEPTH, PLACEHOLDER_END, PLACEHOLDER_START
from iniweave.values import format_value

if TYPE_CHECKING:
    from iniweave.document import IniDocument, IniKey, IniSection

logger = logging.getLogger(__name__)

QUALIFIER = "|"


@dataclass
class BindingEvent:
    """One placeholder occurrence, handed to the bind() hook.

    Whatever the hook leaves in ``value`` is substituted (non-text values go
    through format_value); None keeps the placeholder text, "" removes it.
    """
    key: IniKey
    placeholder_name: str
    is_value_found: bool
    value: Any


class _Unresolvable(Exception):
    """Cycle or depth limit hit while expanding a nested placeholder."""


class ValueBinding:
    """Placeholder binder for one document (``document.value_binding``)."""

    def __init__(self, document: IniDocument) -> None:
        self.document = document
        self.placeholder_start = PLACEHOLDER_START
        self.placeholder_end = PLACEHOLDER_END
        self.max_depth = MAX_BINDING_DEPTH

    def _pattern(self) -> re.Pattern:
        forbidden = set(self.placeholder_start + self.placeholder_end + "\r\n")
        name_chars = "".join(re.escape(c) for c in sorted(forbidden))
        return re.compile(
            re.escape(self.placeholder_start)
            + f"(?P<name>[^{name_chars}]+)"
            + re.escape(self.placeholder_end)
        )

    @staticmethod
    def _source_dict(source: Any) -> dict[str, str] | None:
        if source is None:
            return None
        if isinstance(source, Mapping):
            pairs: Iterable = source.items()
        elif isinstance(source, tuple) and len(source) == 2 and isinstance(source[0], str):
            pairs = [source]
        else:
            pairs = source

        result: dict[str, str] = {}
        for name, value in pairs:
            # First occurrence wins
            if name not in result:
                result[name] = format_value(value)
        return result

    def bind(
        self,
        source: Mapping[str, Any] | Iterable[tuple[str, Any]] | tuple[str, Any] | None = None,
        *,
        section: str | IniSection | None = None,
        hook: Callable[[BindingEvent], None] | None = None,
    ) -> int:
        """Replace placeholders in key values. Returns the number substituted."""
        external = self._source_dict(source)

        if section is None:
            sections = list(self.document.sections)
        else:
            target = self.document.sections.get(section) if isinstance(section, str) else section
            if target is None:
                logger.debug("Binding skipped: no section %r", section)
                return 0
            sections = [target]

        pattern = self._pattern()
        substituted = 0

        for sec in sections:
            for key in sec.keys:
                if self.placeholder_start not in key.value:
                    continue

                def replace(match: re.Match, key: IniKey = key, sec: IniSection = sec) -> str:
                    nonlocal substituted
                    name = match["name"]
                    found, value = self._resolve(name, sec, external, pattern, (id(key),))
                    event = BindingEvent(key, name, found, value)
                    if hook is not None:
                        hook(event)
                    if event.value is None:
                        return match.group(0)
                    substituted += 1
                    return format_value(event.value)

                key.value = pattern.sub(replace, key.value)

        logger.debug("Bound %d placeholders in %d sections", substituted, len(sections))
        return substituted

    # =========================================================================
    # Resolution
    # =========================================================================

    def _lookup(
        self, name: str, context: IniSection | None, external: dict[str, str] | None,
    ) -> tuple[Hashable, str, IniSection | None] | None:
        if external is not None and name in external:
            return ("external", name), external[name], context

        if QUALIFIER in name:
            section_name, key_name = name.split(QUALIFIER, 1)
            target = self.document.sections.get(section_name)
            key = target.keys.get(key_name) if target is not None else None
        else:
            key = context.keys.get(name) if context is not None else None
            if key is None:
                for candidate in self.document.sections:
                    key = candidate.keys.get(name)
                    if key is not None:
                        break

        if key is None:
            return None
        return id(key), key.value, key.section

    def _resolve(
        self,
        name: str,
        context: IniSection | None,
        external: dict[str, str] | None,
        pattern: re.Pattern,
        chain: tuple,
    ) -> tuple[bool, str | None]:
        try:
            return True, self._expand(name, context, external, pattern, chain)
        except LookupError:
            return False, None
        except _Unresolvable as exc:
            logger.debug("Placeholder %r left unresolved: %s", name, exc)
            return False, None

    def _expand(
        self,
        name: str,
        context: IniSection | None,
        external: dict[str, str] | None,
        pattern: re.Pattern,
        chain: tuple,
    ) -> str:
        found = self._lookup(name, context, external)
        if found is None:
            raise LookupError(name)
        ident, raw, origin = found

        if ident in chain:
            raise _Unresolvable(f"cycle through {name!r}")
        if len(chain) > self.max_depth:
            raise _Unresolvable(f"nesting deeper than {self.max_depth}")
        if self.placeholder_start not in raw:
            return raw

        chain = chain + (ident,)

        def replace(match: re.Match) -> str:
            try:
                return self._expand(match["name"], origin, external, pattern, chain)
            except LookupError:
                return match.group(0)

        return pattern.sub(replace, raw)
