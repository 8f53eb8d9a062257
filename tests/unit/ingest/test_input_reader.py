"""Unit tests for source file parsing."""

from __future__ import annotations

import pytest

from core.errors import OdmInputError
from ingest.input_reader import parse_source_file


def test_json_array_yields_one_record_per_element() -> None:
    """Top-level arrays in .json files are split into records."""
    parsed = parse_source_file("users.json", b'[{"id": 1}, {"id": 2}]')

    assert parsed.values == ({"id": 1}, {"id": 2})


def test_json_object_is_a_single_record() -> None:
    """A .json object is one record."""
    parsed = parse_source_file("user.json", b'{"id": 1}')

    assert parsed.values == ({"id": 1},)


def test_malformed_json_line_becomes_record_error() -> None:
    """Bad lines are reported with their line number and skipped."""
    parsed = parse_source_file("users.jsonl", b'{"id": 1}\n{oops\n\n{"id": 3}\n')

    assert (len(parsed.values), [error.line_number for error in parsed.errors]) == (2, [2])


def test_jsonl_without_valid_lines_raises() -> None:
    """A JSON lines file with no valid line fails as a whole."""
    with pytest.raises(OdmInputError):
        parse_source_file("users.jsonl", b"{oops\nnope\n")


def test_invalid_json_document_raises() -> None:
    """Broken .json documents fail the file."""
    with pytest.raises(OdmInputError):
        parse_source_file("user.json", b'{"id": ')


def test_fingerprint_depends_on_content_only() -> None:
    """Identical bytes under different paths share a fingerprint."""
    left = parse_source_file("a.json", b'{"id": 1}')
    right = parse_source_file("b.json", b'{"id": 1}')

    assert left.fingerprint == right.fingerprint
