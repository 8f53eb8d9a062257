"""Similarity between inferred schemas.

Used to spot sources that share a shape, for example the same feed
exported with a few extra columns.
"""

from __future__ import annotations

from typing import Sequence

from core.constants import SCHEMA_SIMILARITY_NAME_WEIGHT, SCHEMA_SIMILARITY_TYPE_WEIGHT
from core.errors import OdmValidationError
from core.schema import Schema


def schema_similarity(left: Schema, right: Schema) -> float:
    """Score how alike two schemas are.

    The score blends the Jaccard index of field paths with the share of
    shared paths whose types agree.

    Args:
        left: First schema.
        right: Second schema.

    Returns:
        Similarity in [0, 1].
    """
    left_paths = set(left.paths)
    right_paths = set(right.paths)
    if not left_paths and not right_paths:
        return 1.0
    common = left_paths & right_paths
    jaccard = len(common) / len(left_paths | right_paths)
    if not common:
        return SCHEMA_SIMILARITY_NAME_WEIGHT * jaccard
    matching_types = 0
    for path in common:
        left_field = left.field(path)
        right_field = right.field(path)
        if left_field is not None and right_field is not None:
            if set(left_field.types) == set(right_field.types):
                matching_types += 1
    type_score = matching_types / len(common)
    return SCHEMA_SIMILARITY_NAME_WEIGHT * jaccard + SCHEMA_SIMILARITY_TYPE_WEIGHT * type_score


def group_similar_schemas(schemas: Sequence[Schema], threshold: float) -> list[list[int]]:
    """Group schema indexes whose similarity to a group's first member clears ``threshold``.

    Args:
        schemas: Schemas to group.
        threshold: Minimum similarity in [0, 1].

    Returns:
        Groups of indexes into ``schemas``, in first-seen order.

    Raises:
        OdmValidationError: If threshold is outside [0, 1].
    """
    if not 0.0 <= threshold <= 1.0:
        raise OdmValidationError(
            f"Invalid similarity threshold {threshold}: expected a value in [0, 1]."
        )
    groups: list[list[int]] = []
    assigned: set[int] = set()
    for index, schema in enumerate(schemas):
        if index in assigned:
            continue
        group = [index]
        assigned.add(index)
        for other_index in range(index + 1, len(schemas)):
            if other_index in assigned:
                continue
            if schema_similarity(schema, schemas[other_index]) >= threshold:
                group.append(other_index)
                assigned.add(other_index)
        groups.append(group)
    return groups
