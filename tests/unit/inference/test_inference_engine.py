"""Unit tests for schema inference."""

from __future__ import annotations

import random

import pytest

from core.errors import OdmValidationError
from core.types import InferenceOptions
from inference.engine import infer, infer_schema, validate_inference_options


def test_inclusive_threshold_marks_half_present_field_required() -> None:
    """A field present in half the records is required at min frequency 0.5."""
    records = [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob", "email": "bob@x.com"}]

    schema = infer_schema(records, InferenceOptions(min_frequency=0.5)).schema

    assert [field.required for field in schema.fields] == [True, True, True]


def test_field_below_threshold_is_optional() -> None:
    """Presence below the threshold leaves the field optional."""
    records = [{"id": 1}, {"id": 2}, {"id": 3, "note": "x"}]

    schema = infer(records, min_frequency=0.5)

    assert schema.field("note").required is False


def test_nested_frequency_is_relative_to_parent_objects() -> None:
    """Nested presence is measured against the enclosing object count."""
    records = [{"customer": {"name": "a", "vip": True}}, {"customer": {"name": "b"}}, {}]

    schema = infer(records)

    assert schema.field("customer.vip").frequency == 0.5


def test_integer_and_float_widen_to_number() -> None:
    """Mixed integer and float values infer as number."""
    schema = infer([{"amount": 1}, {"amount": 2.5}])

    assert schema.field("amount").types == ("number",)


def test_null_values_make_field_nullable() -> None:
    """Observed nulls set the nullable flag without adding a type."""
    schema = infer([{"email": None}, {"email": "a@example.org"}])

    assert (schema.field("email").types, schema.field("email").nullable) == (("string",), True)


def test_array_elements_become_child_paths() -> None:
    """Array element values are profiled under ``[]``."""
    schema = infer([{"tags": ["a", "b"]}])

    assert schema.paths == ("tags", "tags[]")


def test_format_needs_ninety_percent_agreement() -> None:
    """A format is reported only when nine in ten strings match."""
    emails = [{"contact": f"user{index}@example.org"} for index in range(8)]
    records = emails + [{"contact": "n/a"}, {"contact": "unknown"}]

    schema = infer(records)

    assert schema.field("contact").format is None


def test_non_object_records_are_skipped_and_counted() -> None:
    """Top-level scalars and arrays are skipped."""
    result = infer_schema([1, [2], {"id": 3}], InferenceOptions())

    assert (result.records_sampled, result.records_skipped) == (1, 2)


def test_sample_shortfall_is_reported() -> None:
    """Requesting more records than exist reports the shortfall."""
    result = infer_schema([{"id": 1}, {"id": 2}], InferenceOptions(sample_size=5))

    assert result.sample_shortfall == 3


def test_depth_limit_keeps_deep_values_opaque() -> None:
    """Fields at the depth limit are opaque and have no children."""
    schema = infer([{"a": {"b": 1}}], max_depth=1)

    assert (schema.paths, schema.field("a").opaque) == (("a",), True)


def test_inference_ignores_record_order() -> None:
    """Record order does not change the inferred schema."""
    records = [
        {"id": 1, "name": "Alice", "tags": ["x"]},
        {"id": 2.0, "name": None},
        {"id": 3, "address": {"city": "Oslo", "zip": "0150"}},
        {"id": 4, "name": "Dan", "tags": []},
    ]
    options = InferenceOptions(min_frequency=0.5)

    forward = infer_schema(records, options, max_workers=2).schema
    backward = infer_schema(list(reversed(records)), options, max_workers=3).schema

    assert forward == backward


def test_validate_inference_options_rejects_out_of_range_frequency() -> None:
    """Min frequency must lie in [0, 1]."""
    with pytest.raises(OdmValidationError):
        validate_inference_options(InferenceOptions(min_frequency=1.5))


def test_field_statistics_report_depth_and_kind_distribution() -> None:
    """Statistics cover the deepest path and value kinds across all fields."""
    records = [{"id": 1, "address": {"city": "Oslo"}}, {"id": None}]

    result = infer_schema(records, InferenceOptions())

    assert (result.max_depth_seen, dict(result.kind_distribution)) == (
        2,
        {"int": 1, "null": 1, "object": 1, "string": 1},
    )


def test_dotted_keys_and_nested_paths_stay_distinct_in_any_order() -> None:
    """A literal ``a.b`` key and a nested ``a.b`` path infer two stable fields."""
    records = [{"a.b": 1}, {"a": {"b": "x"}}]

    forward = infer_schema(records, InferenceOptions()).schema
    backward = infer_schema(list(reversed(records)), InferenceOptions()).schema

    assert (forward == backward, [(f.path, f.types) for f in forward.fields]) == (
        True,
        [("a", ("object",)), ("a.b", ("string",)), ('["a.b"]', ("integer",))],
    )


def test_sharded_inference_matches_after_shuffling() -> None:
    """Inference spanning several shards is independent of record order."""
    records: list[dict[str, object]] = []
    for index in range(2500):
        record: dict[str, object] = {"id": index, "name": f"user{index}"}
        if index % 3 == 0:
            record["email"] = f"user{index}@example.org"
        if index % 5 == 0:
            record["score"] = index / 7
        records.append(record)
    shuffled = list(records)
    random.Random(7).shuffle(shuffled)
    options = InferenceOptions(min_frequency=0.3)

    ordered = infer_schema(records, options, max_workers=4)
    reordered = infer_schema(shuffled, options, max_workers=2)

    assert (ordered.schema, ordered.records_sampled) == (reordered.schema, 2500)
