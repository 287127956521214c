"""
iniweave Conformance Tests

Shared text vectors in tests/conformance/vectors.json:
  - roundtrip: parse then serialize must reproduce the input byte for byte
  - parse_errors: malformed input must fail with the right error and line
"""

import json
from pathlib import Path

import pytest

from iniweave import errors
from iniweave.converters import dialect_from_dict
from iniweave.document import IniDocument
from iniweave.reader import IniReader
from iniweave.writer import IniWriter


VECTORS_PATH = Path(__file__).parent / "conformance" / "vectors.json"

with open(VECTORS_PATH, encoding="utf-8") as _f:
    _VECTORS = json.load(_f)

ROUNDTRIP_CASES = _VECTORS["roundtrip"]["cases"]
ERROR_CASES = _VECTORS["parse_errors"]["cases"]


def _dialect(case):
    return dialect_from_dict(case.get("dialect", {}))


# ================================================================
# Round-Trip Tests
# ================================================================

class TestRoundTrip:

    @pytest.mark.parametrize("case", ROUNDTRIP_CASES, ids=[c["desc"] for c in ROUNDTRIP_CASES])
    def test_text_roundtrip(self, case):
        dialect = _dialect(case)
        doc = IniReader.parse_text(case["text"], dialect)
        assert IniWriter.render(doc) == case["text"], case["desc"]

    @pytest.mark.parametrize("case", ROUNDTRIP_CASES, ids=[c["desc"] for c in ROUNDTRIP_CASES])
    def test_bytes_roundtrip(self, case):
        dialect = _dialect(case)
        data = case["text"].encode("utf-8")
        doc = IniDocument.from_bytes(data, dialect)
        assert doc.to_bytes() == data

    @pytest.mark.parametrize("case", ROUNDTRIP_CASES, ids=[c["desc"] for c in ROUNDTRIP_CASES])
    def test_idempotent(self, case):
        dialect = _dialect(case)
        once = IniWriter.render(IniReader.parse_text(case["text"], dialect))
        twice = IniWriter.render(IniReader.parse_text(once, dialect))
        assert once == twice


# ================================================================
# Parse Error Tests
# ================================================================

class TestParseErrors:

    @pytest.mark.parametrize("case", ERROR_CASES, ids=[c["desc"] for c in ERROR_CASES])
    def test_error_vector(self, case):
        error_type = getattr(errors, case["error"])
        with pytest.raises(error_type) as exc:
            IniReader.parse_text(case["text"], _dialect(case))
        assert exc.value.line == case["line"]

    def test_errors_are_value_errors(self):
        # Callers that only know ValueError still catch every parse failure
        for case in ERROR_CASES:
            with pytest.raises(ValueError):
                IniReader.parse_text(case["text"], _dialect(case))


# ================================================================
# Lossy Inputs (normalized on first write, stable afterwards)
# ================================================================

class TestNormalization:

    @pytest.mark.parametrize("text, expected", [
        ("[S]\nk=v", "[S]\nk=v\n"),
        ("[S]  \nk=v   \n", "[S]\nk=v\n"),
        ("[S]\n\tk=v\n", "[S]\n k=v\n"),
        ("[S]\n   \nk=v\n", "[S]\n\nk=v\n"),
        (";a\n\n;b\n[S]\n", ";a\n;b\n[S]\n"),
        ("[S]\nk = v\n", "[S]\nk=v\n"),
        ("[S]\na=1\na=2\n", "[S]\na=2\n"),
    ])
    def test_normalized_once(self, text, expected):
        once = IniWriter.render(IniReader.parse_text(text))
        assert once == expected
        assert IniWriter.render(IniReader.parse_text(once)) == once
