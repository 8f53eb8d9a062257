"""Refinement adapter contract and refined-schema validation.

A refiner proposes an improved schema. Only additive metadata is taken
from the proposal; renamed, dropped, or retyped fields are rejected
with warnings and the original field is kept.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Protocol, Sequence

from core.schema import Schema, SchemaField


@dataclass(frozen=True)
class RefinedSchema:
    """Result of a successful refinement.

    Attributes:
        schema: Refined schema with the original field set.
        model: Model that produced the proposal.
        warnings: Proposal changes that were rejected.
    """

    schema: Schema
    model: str
    warnings: tuple[str, ...] = ()


class SchemaRefiner(Protocol):
    """Backend able to refine a schema.

    Implementations raise ``OdmRefinementUnavailableError`` when the
    backend cannot produce a schema.
    """

    def refine(
        self,
        schema: Schema,
        doc_context: str | None = None,
        temperature: float = ...,
        samples: Sequence[Any] = (),
    ) -> RefinedSchema: ...


def apply_refinement(original: Schema, proposal: Schema) -> tuple[Schema, list[str]]:
    """Merge the additive parts of a proposal into the original schema.

    Args:
        original: Inferred schema.
        proposal: Schema proposed by the refinement backend.

    Returns:
        Refined schema and the list of rejected changes.
    """
    warnings: list[str] = []
    proposed_by_path = {proposed.path: proposed for proposed in proposal.fields}
    refined_fields: list[SchemaField] = []
    for schema_field in original.fields:
        proposed = proposed_by_path.get(schema_field.path)
        if proposed is None:
            warnings.append(f"refinement dropped field {schema_field.path}; kept original")
            refined_fields.append(schema_field)
            continue
        if proposed.types and not _types_compatible(schema_field.types, proposed.types):
            warnings.append(
                f"refinement changed type of {schema_field.path} from "
                f"{list(schema_field.types)} to {list(proposed.types)}; kept original type"
            )
            proposed = replace(proposed, format=None)
        refined_fields.append(_merge_metadata(schema_field, proposed))
    original_paths = set(original.paths)
    for proposed in proposal.fields:
        if proposed.path not in original_paths:
            warnings.append(f"refinement added unknown field {proposed.path}; ignored")
    return replace(original, fields=tuple(refined_fields)), warnings


def _merge_metadata(schema_field: SchemaField, proposed: SchemaField) -> SchemaField:
    return replace(
        schema_field,
        description=proposed.description or schema_field.description,
        format=proposed.format or schema_field.format,
        examples=schema_field.examples or proposed.examples,
    )


def _types_compatible(original: tuple[str, ...], proposed: tuple[str, ...]) -> bool:
    """Allow equal types and narrowing number to integer."""
    widened = {"number" if name == "integer" else name for name in proposed}
    original_widened = {"number" if name == "integer" else name for name in original}
    return widened <= original_widened
