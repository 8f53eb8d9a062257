"""Schema file loading and export rendering.

Target schemas may be JSON Schema files or schema documents written by
this tool in JSON or YAML.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from core.errors import OdmInputError, OdmValidationError
from core.logging_config import get_logger
from core.schema import Schema
from core.types import SUPPORTED_OUTPUT_FORMATS, OutputFormat
from schema_io.document import (
    dump_document,
    load_document,
    schema_from_document,
    schema_to_document,
)
from schema_io.json_schema import parse_json_schema, render_json_schema

_LOGGER = get_logger(__name__)


def load_schema_file(schema_path: str) -> Schema:
    """Load a target or source schema from disk.

    Args:
        schema_path: Path to a JSON Schema file or a schema document.

    Returns:
        Parsed schema.

    Raises:
        OdmInputError: If the file is missing or cannot be parsed.
    """
    path = Path(schema_path).expanduser()
    if not path.is_file():
        raise OdmInputError(
            f"Schema file does not exist at {path}. Provide an existing schema file."
        )
    document = load_document(path)
    if not isinstance(document, Mapping):
        raise OdmInputError(f"Invalid schema file {path}: expected an object at the top level.")
    if "fields" in document:
        return schema_from_document(document, source=str(path))
    schema, errors = parse_json_schema(json.dumps(document))
    for error in errors:
        _LOGGER.warning("json_schema_parse_issue", path=str(path), issue=error)
    return schema


def render_schema(schema: Schema, output_format: OutputFormat) -> str:
    """Render a schema in an export format.

    Raises:
        OdmValidationError: If the format is not supported.
    """
    if output_format == "json-schema":
        return render_json_schema(schema)
    if output_format == "json" or output_format == "yaml":
        return dump_document(schema_to_document(schema), output_format)
    supported = ", ".join(SUPPORTED_OUTPUT_FORMATS)
    raise OdmValidationError(
        f"Unsupported output format '{output_format}'. Use one of: {supported}."
    )


def schema_file_name(output_format: OutputFormat) -> str:
    """Return the export file name for a schema in ``output_format``."""
    if output_format == "json-schema":
        return "schema.schema.json"
    return f"schema.{output_format}"
