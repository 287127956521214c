"""
iniweave Values - best-effort conversion between key text and Python values.

Values are always strings at rest. Typed views are derived on demand:

    ok, port = try_parse("8080", int)          # (True, 8080)
    ok, flag = try_parse("Yes", bool)          # (False, None)
    mappings.add("yes", True)
    ok, flag = try_parse("Yes", bool, mappings)  # (True, True)

Grammar is invariant (no locale):
    int        [+-]?digits
    float      Python float literal, no underscores (inf/nan allowed)
    Decimal    decimal literal, no underscores
    bool       true / false, any case
    datetime   ISO-8601 (datetime.fromisoformat)
    date/time  ISO-8601
    timedelta  [-][d.]hh:mm[:ss[.fraction]]  or a whole number of days
    Enum       member name
    str        always succeeds

Arrays use braces: "{1, 2, 3}".
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Iterable

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_DURATION_RE = re.compile(
    r"(?P<sign>-)?(?:(?P<days>[0-9]+)\.)?"
    r"(?P<hours>[0-9]{1,2}):(?P<minutes>[0-9]{2})"
    r"(?::(?P<seconds>[0-9]{2})(?:\.(?P<fraction>[0-9]{1,7}))?)?\Z"
)

ARRAY_START = "{"
ARRAY_END = "}"
ARRAY_SEPARATOR = ","


# =============================================================================
# Per-kind parsers (raise on bad input; try_parse turns that into False)
# =============================================================================

def _parse_str(text: str) -> str:
    return text


def _parse_int(text: str) -> int:
    text = text.strip()
    if not _INT_RE.match(text):
        raise ValueError(text)
    return int(text)


def _parse_float(text: str) -> float:
    text = text.strip()
    if "_" in text:
        raise ValueError(text)
    return float(text)


def _parse_decimal(text: str) -> Decimal:
    text = text.strip()
    if "_" in text:
        raise ValueError(text)
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(text) from None


def _parse_bool(text: str) -> bool:
    folded = text.strip().casefold()
    if folded == "true":
        return True
    if folded == "false":
        return False
    raise ValueError(text)


def _parse_datetime(text: str) -> datetime:
    return datetime.fromisoformat(text.strip())


def _parse_date(text: str) -> date:
    return date.fromisoformat(text.strip())


def _parse_time(text: str) -> time:
    return time.fromisoformat(text.strip())


def _parse_timedelta(text: str) -> timedelta:
    text = text.strip()
    if _INT_RE.match(text):
        return timedelta(days=int(text))

    match = _DURATION_RE.match(text)
    if not match:
        raise ValueError(text)
    hours = int(match["hours"])
    minutes = int(match["minutes"])
    seconds = int(match["seconds"] or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(text)
    fraction = match["fraction"] or ""
    micros = int(fraction.ljust(6, "0")[:6]) if fraction else 0

    result = timedelta(
        days=int(match["days"] or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=micros,
    )
    return -result if match["sign"] else result


_PARSERS: dict[type, Callable[[str], Any]] = {
    str: _parse_str,
    int: _parse_int,
    float: _parse_float,
    Decimal: _parse_decimal,
    bool: _parse_bool,
    datetime: _parse_datetime,
    date: _parse_date,
    time: _parse_time,
    timedelta: _parse_timedelta,
}

SUPPORTED_KINDS = frozenset(_PARSERS)


def is_supported_kind(kind: type) -> bool:
    """True for the built-in kinds and any Enum subclass."""
    return kind in _PARSERS or (isinstance(kind, type) and issubclass(kind, Enum))


def _parser_for(kind: type) -> Callable[[str], Any]:
    parser = _PARSERS.get(kind)
    if parser is not None:
        return parser
    if isinstance(kind, type) and issubclass(kind, Enum):
        def _parse_enum(text: str) -> Enum:
            try:
                return kind[text.strip()]
            except KeyError:
                raise ValueError(text) from None
        return _parse_enum
    raise TypeError(f"Unsupported value kind: {kind!r}")


# =============================================================================
# Alias table
# =============================================================================

class ValueMappings:
    """Case-insensitive table of literal text -> typed value.

    Aliases are consulted before a kind's own grammar, and only match when
    the stored value's type is exactly the requested kind (so an alias to
    ``True`` never satisfies ``int``).
    """

    def __init__(self) -> None:
        self._mappings: dict[str, tuple[str, Any]] = {}

    def add(self, text: str, value: Any) -> None:
        if not isinstance(text, str):
            raise TypeError("Alias text must be a string")
        if not is_supported_kind(type(value)):
            raise ValueError(f"Unsupported alias value type: {type(value).__name__}")
        folded = text.casefold()
        if folded in self._mappings:
            raise ValueError(f"Alias already defined: {text!r}")
        self._mappings[folded] = (text, value)

    def remove(self, text: str) -> bool:
        return self._mappings.pop(text.casefold(), None) is not None

    def try_get(self, text: str | None, kind: type) -> tuple[bool, Any]:
        if not text:
            return False, None
        entry = self._mappings.get(text.strip().casefold())
        if entry is not None and type(entry[1]) is kind:
            return True, entry[1]
        return False, None

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and text.casefold() in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self):
        return (original for original, _ in self._mappings.values())

    def __repr__(self) -> str:
        return f"ValueMappings({dict(self._mappings.values())!r})"


# =============================================================================
# Parsing
# =============================================================================

def try_parse(text: str | None, kind: type, mappings: ValueMappings | None = None) -> tuple[bool, Any]:
    """Convert text to ``kind``. Returns (success, value); never raises for bad text.

    Raises TypeError only when ``kind`` itself is unsupported.
    """
    parser = _parser_for(kind)
    if text is None:
        return False, None

    if mappings is not None:
        found, value = mappings.try_get(text, kind)
        if found:
            return True, value

    try:
        return True, parser(text)
    except (ValueError, OverflowError):
        return False, None


def parse_array(text: str | None) -> list[str] | None:
    """Split ``{a, b, c}`` into its items. Returns None if text is not an array."""
    if text is None:
        return None
    stripped = text.strip()
    if len(stripped) < 2 or not (stripped.startswith(ARRAY_START) and stripped.endswith(ARRAY_END)):
        return None
    inner = stripped[1:-1]
    if not inner.strip():
        return []
    return [item.strip() for item in inner.split(ARRAY_SEPARATOR)]


def try_parse_array(text: str | None, kind: type, mappings: ValueMappings | None = None) -> tuple[bool, list | None]:
    """Convert an array value. Succeeds only if every item converts."""
    _parser_for(kind)
    items = parse_array(text)
    if items is None:
        return False, None

    result = []
    for item in items:
        ok, value = try_parse(item, kind, mappings)
        if not ok:
            return False, None
        result.append(value)
    return True, result


# =============================================================================
# Formatting (inverse of parsing)
# =============================================================================

def format_duration(value: timedelta) -> str:
    micros = value // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    days, micros = divmod(micros, 86_400_000_000)
    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    seconds, micros = divmod(micros, 1_000_000)

    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if days:
        text = f"{days}.{text}"
    if micros:
        text += f".{micros:06d}"
    return sign + text


def format_array(items: Iterable[Any]) -> str:
    return ARRAY_START + ", ".join(format_value(item) for item in items) + ARRAY_END


def format_value(value: Any) -> str:
    """Render a Python value in the grammar try_parse() reads back."""
    if value is None:
        return ""
    # Before str: a str-mixin Enum is written by member name
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, str):
        return str.__str__(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return format_array(value)
    return str(value)
