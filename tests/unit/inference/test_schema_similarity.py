"""Unit tests for schema similarity and grouping."""

from __future__ import annotations

import pytest

from core.errors import OdmValidationError
from core.schema import Schema, SchemaField
from inference.schema_similarity import group_similar_schemas, schema_similarity


def _schema(*fields: tuple[str, str]) -> Schema:
    return Schema(fields=tuple(SchemaField(path=path, types=(kind,)) for path, kind in fields))


def test_identical_schemas_score_one() -> None:
    """Same paths with same types are fully similar."""
    schema = _schema(("id", "integer"), ("name", "string"))

    assert schema_similarity(schema, schema) == pytest.approx(1.0)


def test_type_disagreement_lowers_score() -> None:
    """Shared paths with different types lose the type share."""
    left = _schema(("id", "integer"))
    right = _schema(("id", "string"))

    assert schema_similarity(left, right) == pytest.approx(0.6)


def test_group_similar_schemas_groups_by_threshold() -> None:
    """Schemas above the threshold share a group."""
    users = _schema(("id", "integer"), ("name", "string"))
    users_again = _schema(("id", "integer"), ("name", "string"), ("email", "string"))
    orders = _schema(("sku", "string"), ("quantity", "integer"))

    groups = group_similar_schemas([users, orders, users_again], threshold=0.7)

    assert groups == [[0, 2], [1]]


def test_group_similar_schemas_rejects_bad_threshold() -> None:
    """Thresholds outside [0, 1] are rejected."""
    with pytest.raises(OdmValidationError):
        group_similar_schemas([], threshold=2.0)
