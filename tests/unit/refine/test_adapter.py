"""Unit tests for merging refinement proposals."""

from __future__ import annotations

from core.schema import Schema, SchemaField
from refine.adapter import apply_refinement

_ORIGINAL = Schema(
    fields=(
        SchemaField(path="id", types=("integer",), required=True, frequency=1.0),
        SchemaField(path="email", types=("string",), frequency=0.5),
    ),
    min_frequency=0.5,
)


def test_descriptions_and_formats_are_merged() -> None:
    """Additive metadata from the proposal is kept."""
    proposal = Schema(
        fields=(
            SchemaField(path="id", types=("integer",), description="User id"),
            SchemaField(path="email", types=("string",), format="email"),
        )
    )

    refined, warnings = apply_refinement(_ORIGINAL, proposal)

    assert (refined.fields[0].description, refined.fields[1].format, warnings) == (
        "User id",
        "email",
        [],
    )


def test_statistics_survive_refinement() -> None:
    """Required flags and frequencies come from the original schema."""
    proposal = Schema(fields=(SchemaField(path="id", types=("integer",)),))

    refined, _ = apply_refinement(_ORIGINAL, proposal)

    assert refined.fields[0] == _ORIGINAL.fields[0]


def test_dropped_fields_are_kept_with_warning() -> None:
    """Fields missing from the proposal stay and are reported."""
    proposal = Schema(fields=(SchemaField(path="id", types=("integer",)),))

    refined, warnings = apply_refinement(_ORIGINAL, proposal)

    assert (refined.paths, warnings) == (
        ("id", "email"),
        ["refinement dropped field email; kept original"],
    )


def test_retyped_fields_keep_original_type() -> None:
    """Type changes are rejected."""
    proposal = Schema(
        fields=(
            SchemaField(path="id", types=("string",)),
            SchemaField(path="email", types=("string",)),
        )
    )

    refined, warnings = apply_refinement(_ORIGINAL, proposal)

    assert (refined.fields[0].types, len(warnings)) == (("integer",), 1)


def test_unknown_fields_are_ignored() -> None:
    """Fields invented by the model are not added."""
    proposal = Schema(
        fields=(
            SchemaField(path="id", types=("integer",)),
            SchemaField(path="email", types=("string",)),
            SchemaField(path="age", types=("integer",)),
        )
    )

    refined, warnings = apply_refinement(_ORIGINAL, proposal)

    assert (refined.paths, warnings) == (
        ("id", "email"),
        ["refinement added unknown field age; ignored"],
    )


def test_rejected_retype_also_discards_proposed_format() -> None:
    """A format tied to a rejected type change is not applied."""
    proposal = Schema(
        fields=(
            SchemaField(path="id", types=("string",), format="uuid"),
            SchemaField(path="email", types=("string",)),
        )
    )

    refined, _ = apply_refinement(_ORIGINAL, proposal)

    assert (refined.fields[0].types, refined.fields[0].format) == (("integer",), None)
