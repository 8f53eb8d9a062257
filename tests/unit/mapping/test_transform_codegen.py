"""Unit tests for transform script rendering."""

from __future__ import annotations

import pytest

from core.errors import OdmValidationError
from mapping.transform_codegen import render_transform, transform_file_name
from mapping.types import FieldGap, FieldMapping, MappingResult

_RESULT = MappingResult(
    mappings=(
        FieldMapping("email_address", "email", "fuzzy", 0.75, similarity=0.75),
        FieldMapping("city", "address.city", "direct", 1.0, similarity=1.0),
        FieldMapping("user_id", None, "unmatched", 0.0),
    ),
    extras=("id",),
    gaps=(FieldGap("user_id", True, ("integer",), suggestions=("id",), suggested_default=0),),
)


def test_sql_projects_matched_fields() -> None:
    """SQL output selects each matched source path under its target name."""
    script = render_transform(_RESULT, "sql", "users", "contract")

    assert '"address"."city" AS "city"' in script


def test_sql_comments_gaps() -> None:
    """Each gap becomes a commented placeholder."""
    script = render_transform(_RESULT, "sql", "users", "contract")

    assert "-- gap: user_id (integer, required) has no source field; closest: id" in script


def test_jq_uses_path_references() -> None:
    """jq output references nested fields with dots."""
    script = render_transform(_RESULT, "jq")

    assert '"city": .address.city' in script


def test_python_script_assigns_matched_fields() -> None:
    """Python output reads source paths through the path helper."""
    script = render_transform(_RESULT, "python")

    assert 'output["email_address"] = _get(record, ["email"])' in script


def test_rendering_is_byte_stable() -> None:
    """The same mapping renders identical text every time."""
    assert render_transform(_RESULT, "python") == render_transform(_RESULT, "python")


def test_unknown_kind_is_rejected() -> None:
    """Only sql, jq, and python are supported."""
    with pytest.raises(OdmValidationError):
        render_transform(_RESULT, "xslt")  # type: ignore[arg-type]


def test_transform_file_name_uses_kind_extension() -> None:
    """Python scripts get a .py extension."""
    assert transform_file_name("python") == "transform.py"


def test_sql_without_matches_is_comment_only() -> None:
    """An all-gap mapping renders no INSERT statement."""
    result = MappingResult(
        mappings=(FieldMapping("user_id", None, "unmatched", 0.0),),
        extras=(),
        gaps=(FieldGap("user_id", True, ("integer",), suggested_default=0),),
    )

    script = render_transform(result, "sql", "users", "contract")

    assert all(line.startswith("--") for line in script.splitlines())


def test_quoted_and_array_paths_render_per_segment() -> None:
    """Dotted keys stay one segment and array markers are not property names."""
    result = MappingResult(
        mappings=(
            FieldMapping("code", '["a.b"]', "direct", 1.0, similarity=1.0),
            FieldMapping("tags", "tags[]", "direct", 1.0, similarity=1.0),
        ),
        extras=(),
        gaps=(),
    )

    jq_script = render_transform(result, "jq")
    python_script = render_transform(result, "python")

    assert (
        '"code": .["a.b"]' in jq_script,
        'output["tags"] = _get(record, ["tags", None])' in python_script,
    ) == (True, True)
