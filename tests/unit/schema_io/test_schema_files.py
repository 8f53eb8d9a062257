"""Unit tests for schema file loading and rendering."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import OdmInputError
from core.schema import Schema, SchemaField
from schema_io.schema_files import load_schema_file, render_schema, schema_file_name
from tests.fixture_paths import fixture_path


def test_load_json_schema_file() -> None:
    """JSON Schema files load in declaration order."""
    schema = load_schema_file(str(fixture_path("schemas/contract.schema.json")))

    assert schema.paths == ("user_id", "full_name", "email_address")


def test_load_schema_document_file(tmp_path: Path) -> None:
    """YAML schema documents written by the tool load back."""
    schema = Schema(fields=(SchemaField(path="id", types=("integer",), required=True),))
    path = tmp_path / "schema.yaml"
    path.write_text(render_schema(schema, "yaml"), encoding="utf-8")

    assert load_schema_file(str(path)) == schema


def test_missing_schema_file_raises(tmp_path: Path) -> None:
    """A missing schema path is an input error."""
    with pytest.raises(OdmInputError):
        load_schema_file(str(tmp_path / "missing.json"))


def test_schema_file_name_for_json_schema() -> None:
    """JSON Schema exports use a .schema.json suffix."""
    assert schema_file_name("json-schema") == "schema.schema.json"
