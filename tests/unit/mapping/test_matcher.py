"""Unit tests for schema mapping."""

from __future__ import annotations

import pytest

from core.errors import OdmValidationError
from core.schema import Schema, SchemaField
from mapping.matcher import map_schemas, type_compatibility
from mapping.types import MappingOptions


def _schema(*fields: tuple[str, str], required: bool = False) -> Schema:
    return Schema(
        fields=tuple(
            SchemaField(path=path, types=(kind,), required=required) for path, kind in fields
        )
    )


_SOURCE = _schema(("id", "integer"), ("name", "string"), ("email", "string"))
_TARGET = _schema(
    ("user_id", "integer"), ("full_name", "string"), ("email_address", "string"), required=True
)
_OPTIONS = MappingOptions(fuzzy=True, min_similarity=0.6)


def test_email_maps_fuzzily_to_email_address() -> None:
    """Substring similarity matches email to email_address."""
    result = map_schemas(_SOURCE, _TARGET, _OPTIONS)
    row = next(mapping for mapping in result.mappings if mapping.target_path == "email_address")

    assert (row.source_path, row.kind) == ("email", "fuzzy")


def test_short_name_below_threshold_becomes_gap_and_extra() -> None:
    """id does not reach user_id, leaving one gap and one extra."""
    result = map_schemas(_SOURCE, _TARGET, _OPTIONS)

    assert ([gap.target_path for gap in result.gaps], result.extras) == (["user_id"], ("id",))


def test_gap_lists_suggestions_and_default() -> None:
    """Gaps carry close extras and a type-based default."""
    result = map_schemas(_SOURCE, _TARGET, _OPTIONS)
    gap = result.gaps[0]

    assert (gap.suggestions, gap.suggested_default) == (("id",), 0)


def test_required_gap_makes_result_incomplete() -> None:
    """A required unmatched target field blocks completeness."""
    result = map_schemas(_SOURCE, _TARGET, _OPTIONS)

    assert result.is_complete is False


def test_compatibility_score_weights_confidence() -> None:
    """Score is the summed confidence over all target fields."""
    result = map_schemas(_SOURCE, _TARGET, _OPTIONS)
    expected = sum(mapping.confidence for mapping in result.matched) / 3

    assert result.compatibility_score == pytest.approx(expected)


def test_exact_paths_match_directly() -> None:
    """Equal paths map with full confidence."""
    result = map_schemas(_SOURCE, _schema(("email", "string")))

    assert (result.mappings[0].kind, result.mappings[0].confidence) == ("direct", 1.0)


def test_unique_leaf_names_match_directly() -> None:
    """A nested source field matches a flat target with the same leaf name."""
    source = _schema(("customer.email", "string"), ("id", "integer"))

    result = map_schemas(source, _schema(("email", "string")))

    assert result.mappings[0].source_path == "customer.email"


def test_integer_to_number_is_coerced_with_penalty() -> None:
    """Integer sources map onto number targets as coerced matches."""
    result = map_schemas(_schema(("amount", "integer")), _schema(("amount", "number")))

    assert result.mappings[0].coerced and result.mappings[0].confidence == pytest.approx(0.85)


def test_incompatible_types_do_not_match() -> None:
    """A string source never fills an integer target."""
    result = map_schemas(_schema(("count", "string")), _schema(("count", "integer")))

    assert result.mappings[0].kind == "unmatched"


def test_case_insensitive_exact_matching() -> None:
    """Case folding applies when requested."""
    options = MappingOptions(case_insensitive=True, fuzzy=False)

    result = map_schemas(_schema(("UserName", "string")), _schema(("username", "string")), options)

    assert result.mappings[0].kind == "direct"


def test_mapping_is_deterministic() -> None:
    """Repeated mapping produces identical results."""
    assert map_schemas(_SOURCE, _TARGET, _OPTIONS) == map_schemas(_SOURCE, _TARGET, _OPTIONS)


def test_empty_target_is_rejected() -> None:
    """Mapping onto an empty schema is a validation error."""
    with pytest.raises(OdmValidationError):
        map_schemas(_SOURCE, Schema(fields=()))


def test_type_compatibility_classifies_widening() -> None:
    """Integer into number is coercible, not the same."""
    assert type_compatibility(("integer",), ("number",)) == "coercible"
