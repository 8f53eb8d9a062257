"""Transformation script rendering.

This module renders a mapping result into a SQL query, a jq filter, or a
standalone Python script. Rendering is a pure function of its inputs:
the same mapping and script kind always produce byte-identical text.
"""

from __future__ import annotations

import json
from string import Template

from core.errors import OdmValidationError
from core.field_path import split_path
from core.types import SUPPORTED_TRANSFORM_KINDS, TransformKind
from mapping.types import FieldGap, FieldMapping, MappingResult

_SQL_TEMPLATE = Template(
    """-- Transform ${source_name} -> ${target_name}
-- Compatibility: ${score}% (${matched}/${total} target fields mapped)
INSERT INTO ${target_table} (${columns})
SELECT
${projections}
FROM ${source_table};
${notes}"""
)
_SQL_EMPTY_TEMPLATE = Template(
    """-- Transform ${source_name} -> ${target_name}
-- Compatibility: ${score}% (${matched}/${total} target fields mapped)
-- No target field could be mapped, so there is nothing to insert.
${notes}"""
)
_JQ_TEMPLATE = Template(
    """# Transform ${source_name} -> ${target_name}
# Compatibility: ${score}% (${matched}/${total} target fields mapped)
${notes}{
${projections}
}
"""
)
_PYTHON_TEMPLATE = Template(
    '''"""Transform ${source_name} records into ${target_name} records.

Compatibility: ${score}% (${matched}/${total} target fields mapped).
Reads JSON lines on stdin and writes transformed JSON lines on stdout.
"""

import json
import sys


def _get(record, path):
    values = [record]
    for segment in path:
        if segment is None:
            values = [item for value in values if isinstance(value, list) for item in value]
        else:
            values = [value.get(segment) for value in values if isinstance(value, dict)]
    if len(values) == 1:
        return values[0]
    return values or None


def transform(record):
    output = {}
${assignments}
    return output


def main():
    for line in sys.stdin:
        if line.strip():
            print(json.dumps(transform(json.loads(line)), sort_keys=True))


if __name__ == "__main__":
    main()
'''
)


def render_transform(
    result: MappingResult,
    kind: TransformKind,
    source_name: str = "source",
    target_name: str = "target",
) -> str:
    """Render a transformation script for a mapping result.

    Args:
        result: Mapping result to render.
        kind: Script kind: ``sql``, ``jq``, or ``python``.
        source_name: Source dataset or table name.
        target_name: Target dataset or table name.

    Returns:
        Script text ending with a newline.

    Raises:
        OdmValidationError: If ``kind`` is not supported.
    """
    if kind == "sql":
        return _render_sql(result, source_name, target_name)
    if kind == "jq":
        return _render_jq(result, source_name, target_name)
    if kind == "python":
        return _render_python(result, source_name, target_name)
    supported = ", ".join(SUPPORTED_TRANSFORM_KINDS)
    raise OdmValidationError(f"Unsupported transform kind '{kind}'. Use one of: {supported}.")


def transform_file_name(kind: TransformKind) -> str:
    """Return the artifact file name for a script kind."""
    extensions = {"sql": "sql", "jq": "jq", "python": "py"}
    return f"transform.{extensions[kind]}"


def _render_sql(result: MappingResult, source_name: str, target_name: str) -> str:
    matched = result.matched
    projections = []
    for position, mapping in enumerate(matched):
        separator = "," if position < len(matched) - 1 else ""
        expression = _sql_reference(mapping.source_path or "")
        projections.append(
            f"    {expression} AS {_sql_identifier(mapping.target_path)}{separator}"
            f"  -- {_describe(mapping)}"
        )
    notes = [f"-- {_describe_gap(gap)}" for gap in result.gaps]
    notes.extend(f"-- extra: {extra} is not mapped" for extra in result.extras)
    if not projections:
        return _SQL_EMPTY_TEMPLATE.substitute(
            _header_fields(result, source_name, target_name),
            notes="".join(f"{line}\n" for line in notes),
        )
    return _SQL_TEMPLATE.substitute(
        _header_fields(result, source_name, target_name),
        target_table=_sql_identifier(target_name),
        source_table=_sql_identifier(source_name),
        columns=", ".join(_sql_identifier(mapping.target_path) for mapping in matched),
        projections="\n".join(projections),
        notes="".join(f"{line}\n" for line in notes),
    )


def _render_jq(result: MappingResult, source_name: str, target_name: str) -> str:
    matched = result.matched
    projections = []
    for position, mapping in enumerate(matched):
        separator = "," if position < len(matched) - 1 else ""
        projections.append(
            f"  {json.dumps(mapping.target_path)}: {_jq_reference(mapping.source_path or '')}"
            f"{separator}"
        )
    notes = [f"# {_describe_gap(gap)}" for gap in result.gaps]
    notes.extend(f"# extra: {extra} is not mapped" for extra in result.extras)
    return _JQ_TEMPLATE.substitute(
        _header_fields(result, source_name, target_name),
        projections="\n".join(projections),
        notes="".join(f"{line}\n" for line in notes),
    )


def _render_python(result: MappingResult, source_name: str, target_name: str) -> str:
    assignments = []
    for mapping in result.mappings:
        if mapping.is_matched:
            segments = _python_segments(mapping.source_path or "")
            assignments.append(
                f"    output[{json.dumps(mapping.target_path)}] = _get(record, {segments})"
                f"  # {_describe(mapping)}"
            )
    for gap in result.gaps:
        assignments.append(f"    # {_describe_gap(gap)}")
        assignments.append(
            f"    # output[{json.dumps(gap.target_path)}] = {json.dumps(gap.suggested_default)}"
        )
    if not assignments:
        assignments.append("    pass")
    return _PYTHON_TEMPLATE.substitute(
        _header_fields(result, source_name, target_name),
        assignments="\n".join(assignments),
    )


def _header_fields(result: MappingResult, source_name: str, target_name: str) -> dict[str, str]:
    return {
        "source_name": source_name,
        "target_name": target_name,
        "score": f"{result.compatibility_score * 100:.1f}",
        "matched": str(len(result.matched)),
        "total": str(result.target_field_count),
    }


def _describe(mapping: FieldMapping) -> str:
    note = f"{mapping.kind} match, confidence {mapping.confidence * 100:.0f}%"
    if mapping.coerced:
        note += ", numeric coercion"
    return note


def _describe_gap(gap: FieldGap) -> str:
    requirement = "required" if gap.required else "optional"
    types = "|".join(gap.types) or "any"
    note = f"gap: {gap.target_path} ({types}, {requirement}) has no source field"
    if gap.suggestions:
        note += f"; closest: {', '.join(gap.suggestions)}"
    return note


def _sql_identifier(name: str) -> str:
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def _sql_reference(path: str) -> str:
    segments = split_path(path)
    parts: list[str] = []
    for segment in segments:
        if segment.is_array and parts:
            parts[-1] = f"{parts[-1]}[*]"
        elif not segment.is_array:
            parts.append(_sql_identifier(segment.name))
    return ".".join(parts)


def _jq_reference(path: str) -> str:
    reference = ""
    for segment in split_path(path):
        if segment.is_array:
            reference += "[]"
        elif segment.name.isidentifier():
            reference += f".{segment.name}"
        else:
            reference += f".[{json.dumps(segment.name)}]"
    return reference or "."


def _python_segments(path: str) -> str:
    literals = [
        "None" if segment.is_array else json.dumps(segment.name) for segment in split_path(path)
    ]
    return "[" + ", ".join(literals) + "]"
