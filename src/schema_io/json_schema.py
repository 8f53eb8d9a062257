"""JSON Schema codec.

This module renders canonical schemas as draft 2020-12 JSON Schema
documents and parses such documents back. Parsing reports unsupported
constructs as non-fatal errors and keeps going.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from core.constants import ARRAY_SEGMENT, JSON_SCHEMA_DIALECT
from core.errors import OdmInputError
from core.field_path import array_path, join_path, parent_path, split_path
from core.schema import Schema, SchemaField, order_types

_KNOWN_TYPES = frozenset({"boolean", "integer", "number", "string", "array", "object", "null"})


def render_json_schema(schema: Schema) -> str:
    """Render a schema as JSON Schema text.

    Args:
        schema: Canonical schema.

    Returns:
        Pretty-printed JSON Schema document ending with a newline.
    """
    root: dict[str, Any] = {"$schema": JSON_SCHEMA_DIALECT}
    if schema.title:
        root["title"] = schema.title
    root["type"] = "object"
    nodes: dict[str, dict[str, Any]] = {"": root}
    for schema_field in schema.fields:
        parent = _ensure_node(nodes, parent_path(schema_field.path))
        node = _field_node(schema_field)
        nodes[schema_field.path] = node
        if schema_field.path.endswith(ARRAY_SEGMENT):
            parent["items"] = node
            continue
        name = split_path(schema_field.path)[-1].name
        parent.setdefault("properties", {})[name] = node
        if schema_field.required:
            parent.setdefault("required", []).append(name)
    return json.dumps(root, indent=2, ensure_ascii=False) + "\n"


def parse_json_schema(text: str, dialect: str | None = None) -> tuple[Schema, list[str]]:
    """Parse JSON Schema text into a canonical schema.

    Parsed fields have ``frequency`` 1.0 when required and 0.0 otherwise,
    with a schema threshold of 1.0, so required flags stay consistent.

    Args:
        text: JSON Schema document.
        dialect: Expected ``$schema`` URI; a mismatch is reported, not fatal.

    Returns:
        Parsed schema and the list of non-fatal parse errors.

    Raises:
        OdmInputError: If the text is not a JSON object.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as error:
        raise OdmInputError(
            f"Failed to parse JSON Schema: {error.msg} at line {error.lineno}. "
            "Fix the JSON syntax and retry."
        ) from error
    if not isinstance(document, Mapping):
        raise OdmInputError("Invalid JSON Schema: expected a top-level object.")
    errors: list[str] = []
    declared_dialect = document.get("$schema")
    if dialect is not None and declared_dialect not in (None, dialect):
        errors.append(f"$schema {declared_dialect!r} does not match expected {dialect!r}")
    fields: list[SchemaField] = []
    _walk_properties(document, "", fields, errors)
    title = document.get("title")
    schema = Schema(
        fields=tuple(fields),
        record_count=0,
        min_frequency=1.0,
        title=title if isinstance(title, str) else None,
    )
    return schema, errors


def _ensure_node(nodes: dict[str, dict[str, Any]], path: str) -> dict[str, Any]:
    if path in nodes:
        return nodes[path]
    parent = _ensure_node(nodes, parent_path(path))
    if path.endswith(ARRAY_SEGMENT):
        parent.setdefault("type", "array")
        node = parent.setdefault("items", {})
    else:
        node = parent.setdefault("properties", {}).setdefault(split_path(path)[-1].name, {})
    node.setdefault("type", "object")
    nodes[path] = node
    return node


def _field_node(schema_field: SchemaField) -> dict[str, Any]:
    type_names = list(schema_field.types)
    if schema_field.nullable:
        type_names.append("null")
    node: dict[str, Any] = {}
    if len(type_names) == 1:
        node["type"] = type_names[0]
    elif type_names:
        node["type"] = type_names
    if schema_field.format is not None:
        node["format"] = schema_field.format
    if schema_field.description is not None:
        node["description"] = schema_field.description
    if schema_field.examples:
        node["examples"] = list(schema_field.examples)
    if schema_field.minimum is not None:
        node["minimum"] = schema_field.minimum
    if schema_field.maximum is not None:
        node["maximum"] = schema_field.maximum
    return node


def _walk_properties(
    node: Mapping[str, Any], path: str, fields: list[SchemaField], errors: list[str]
) -> None:
    properties = node.get("properties", {})
    if not isinstance(properties, Mapping):
        errors.append(f"'properties' at {path or '<root>'} is not an object")
        return
    required_names = node.get("required", [])
    if not isinstance(required_names, list):
        errors.append(f"'required' at {path or '<root>'} is not a list")
        required_names = []
    for name, child in properties.items():
        child_path = join_path(path, str(name))
        if not isinstance(child, Mapping):
            errors.append(f"property {child_path} is not an object")
            continue
        _walk_field(child, child_path, name in required_names, fields, errors)


def _walk_field(
    node: Mapping[str, Any],
    path: str,
    required: bool,
    fields: list[SchemaField],
    errors: list[str],
) -> None:
    if "$ref" in node:
        errors.append(f"unsupported $ref at {path}")
    type_names = _collect_types(node, path, errors)
    nullable = "null" in type_names
    type_names.discard("null")
    raw_examples = node.get("examples")
    fields.append(
        SchemaField(
            path=path,
            types=order_types(type_names),
            nullable=nullable,
            required=required,
            format=node.get("format") if isinstance(node.get("format"), str) else None,
            frequency=1.0 if required else 0.0,
            description=(
                node.get("description") if isinstance(node.get("description"), str) else None
            ),
            examples=tuple(raw_examples) if isinstance(raw_examples, list) else (),
            minimum=_number_or_none(node.get("minimum")),
            maximum=_number_or_none(node.get("maximum")),
        )
    )
    if "object" in type_names:
        _walk_properties(node, path, fields, errors)
    items = node.get("items")
    if "array" in type_names and isinstance(items, Mapping):
        _walk_field(items, array_path(path), True, fields, errors)


def _collect_types(node: Mapping[str, Any], path: str, errors: list[str]) -> set[str]:
    raw_type = node.get("type")
    names: set[str] = set()
    if isinstance(raw_type, str):
        names.add(raw_type)
    elif isinstance(raw_type, list):
        names.update(name for name in raw_type if isinstance(name, str))
    elif raw_type is None:
        for keyword in ("anyOf", "oneOf"):
            branches = node.get(keyword)
            if isinstance(branches, list):
                for branch in branches:
                    if isinstance(branch, Mapping):
                        names.update(_collect_types(branch, path, errors))
        if not names and "properties" in node:
            names.add("object")
        if not names and "items" in node:
            names.add("array")
    unknown = names - _KNOWN_TYPES
    for name in sorted(unknown):
        errors.append(f"unknown type {name!r} at {path}")
    return names & _KNOWN_TYPES


def _number_or_none(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)
