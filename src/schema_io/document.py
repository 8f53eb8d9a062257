"""Structured documents for schemas and mapping results.

Documents keep declaration order so the same schema always serializes
to the same JSON or YAML text.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml

from core.errors import OdmInputError, OdmValidationError
from core.schema import Schema, SchemaField
from mapping.types import FieldGap, FieldMapping, MappingResult

DocumentFormat = Literal["json", "yaml"]


def schema_to_document(schema: Schema) -> dict[str, Any]:
    """Serialize a schema into a JSON-safe document."""
    document: dict[str, Any] = {}
    if schema.title:
        document["title"] = schema.title
    document["record_count"] = schema.record_count
    document["min_frequency"] = schema.min_frequency
    document["max_depth"] = schema.max_depth
    document["fields"] = [_field_to_document(schema_field) for schema_field in schema.fields]
    return document


def schema_from_document(document: Mapping[str, Any], source: str = "document") -> Schema:
    """Deserialize a schema document.

    Args:
        document: Mapping produced by :func:`schema_to_document`.
        source: Description of where the document came from, for errors.

    Returns:
        Parsed schema.

    Raises:
        OdmInputError: If the document shape is invalid.
    """
    raw_fields = document.get("fields")
    if not isinstance(raw_fields, list):
        raise OdmInputError(
            f"Invalid schema document from {source}: expected a 'fields' list. "
            "Export the schema again or fix the document."
        )
    fields = tuple(_field_from_document(raw_field, source) for raw_field in raw_fields)
    try:
        return Schema(
            fields=fields,
            record_count=int(document.get("record_count", 0)),
            min_frequency=float(document.get("min_frequency", 0.0)),
            max_depth=int(document.get("max_depth", 10)),
            title=document.get("title"),
        )
    except (TypeError, ValueError) as error:
        raise OdmInputError(
            f"Invalid schema document from {source}: {error}. Fix the schema header values."
        ) from error


def mapping_result_to_document(result: MappingResult) -> dict[str, Any]:
    """Serialize a mapping result into a JSON-safe document."""
    return {
        "compatibility_score": round(result.compatibility_score, 6),
        "is_complete": result.is_complete,
        "target_field_count": result.target_field_count,
        "mappings": [
            {
                "target": mapping.target_path,
                "source": mapping.source_path,
                "kind": mapping.kind,
                "confidence": round(mapping.confidence, 6),
                "similarity": round(mapping.similarity, 6),
                "coerced": mapping.coerced,
            }
            for mapping in result.mappings
        ],
        "gaps": [
            {
                "target": gap.target_path,
                "required": gap.required,
                "types": list(gap.types),
                "suggestions": list(gap.suggestions),
                "suggested_default": gap.suggested_default,
            }
            for gap in result.gaps
        ],
        "extras": list(result.extras),
    }


def mapping_result_from_document(
    document: Mapping[str, Any], source: str = "document"
) -> MappingResult:
    """Deserialize a mapping result document.

    Raises:
        OdmInputError: If the document shape is invalid.
    """
    try:
        mappings = tuple(
            FieldMapping(
                target_path=str(row["target"]),
                source_path=row.get("source"),
                kind=row["kind"],
                confidence=float(row["confidence"]),
                similarity=float(row.get("similarity", 0.0)),
                coerced=bool(row.get("coerced", False)),
            )
            for row in document["mappings"]
        )
        gaps = tuple(
            FieldGap(
                target_path=str(row["target"]),
                required=bool(row["required"]),
                types=tuple(row.get("types", ())),
                suggestions=tuple(row.get("suggestions", ())),
                suggested_default=row.get("suggested_default"),
            )
            for row in document["gaps"]
        )
        extras = tuple(str(path) for path in document["extras"])
    except (KeyError, TypeError, ValueError) as error:
        raise OdmInputError(
            f"Invalid mapping document from {source}: {error}. Run the map stage again."
        ) from error
    return MappingResult(mappings=mappings, extras=extras, gaps=gaps)


def dump_document(document: Mapping[str, Any], document_format: DocumentFormat) -> str:
    """Render a document as JSON or YAML text.

    Raises:
        OdmValidationError: If the format is not supported.
    """
    if document_format == "json":
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    if document_format == "yaml":
        return str(yaml.safe_dump(dict(document), sort_keys=False, allow_unicode=True))
    raise OdmValidationError(
        f"Unsupported document format '{document_format}'. Use json or yaml."
    )


def load_document(path: Path) -> Any:
    """Load a JSON or YAML document from disk, choosing the parser by extension.

    Raises:
        OdmInputError: If the file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise OdmInputError(
            f"Failed to read {path}: {error}. Check the path and file permissions."
        ) from error
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as error:
        raise OdmInputError(
            f"Failed to parse {path}: {error}. Fix the syntax and retry."
        ) from error


def _field_to_document(schema_field: SchemaField) -> dict[str, Any]:
    document: dict[str, Any] = {
        "path": schema_field.path,
        "types": list(schema_field.types),
        "nullable": schema_field.nullable,
        "required": schema_field.required,
        "occurrences": schema_field.occurrences,
        "frequency": schema_field.frequency,
    }
    if schema_field.format is not None:
        document["format"] = schema_field.format
    if schema_field.description is not None:
        document["description"] = schema_field.description
    if schema_field.examples:
        document["examples"] = list(schema_field.examples)
    if schema_field.minimum is not None:
        document["minimum"] = schema_field.minimum
    if schema_field.maximum is not None:
        document["maximum"] = schema_field.maximum
    if schema_field.opaque:
        document["opaque"] = True
    return document


def _field_from_document(raw_field: object, source: str) -> SchemaField:
    if not isinstance(raw_field, Mapping) or not isinstance(raw_field.get("path"), str):
        raise OdmInputError(
            f"Invalid field entry in schema document from {source}: "
            "expected an object with a string 'path'."
        )
    raw_types = raw_field.get("types", [])
    if not isinstance(raw_types, list) or not all(isinstance(name, str) for name in raw_types):
        raise OdmInputError(
            f"Invalid 'types' for field {raw_field['path']} in {source}: expected a list of names."
        )
    return SchemaField(
        path=raw_field["path"],
        types=tuple(raw_types),
        nullable=bool(raw_field.get("nullable", False)),
        required=bool(raw_field.get("required", False)),
        format=raw_field.get("format"),
        occurrences=int(raw_field.get("occurrences", 0)),
        frequency=float(raw_field.get("frequency", 0.0)),
        description=raw_field.get("description"),
        examples=tuple(raw_field.get("examples", ())),
        minimum=raw_field.get("minimum"),
        maximum=raw_field.get("maximum"),
        opaque=bool(raw_field.get("opaque", False)),
    )
