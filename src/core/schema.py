"""Canonical schema model.

A schema is an ordered list of fields keyed by path. Inferred schemas
carry the statistics that justify each field's required flag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.constants import DEFAULT_MAX_DEPTH, REQUIRED_THRESHOLD_INCLUSIVE

SCHEMA_TYPE_ORDER = ("boolean", "integer", "number", "string", "array", "object")


@dataclass(frozen=True)
class SchemaField:
    """One field of a canonical schema.

    Attributes:
        path: Structural path, e.g. ``orders[].sku``.
        types: Non-null JSON Schema type names in canonical order.
        nullable: Whether ``null`` is an accepted value.
        required: Whether the field must be present.
        format: Detected or declared string format.
        occurrences: Observed value count during inference.
        frequency: Presence ratio within the enclosing object.
        description: Human-readable field description.
        examples: Representative example values.
        minimum: Smallest observed or declared numeric value.
        maximum: Largest observed or declared numeric value.
        opaque: Whether nested content was cut off at the depth limit.
    """

    path: str
    types: tuple[str, ...]
    nullable: bool = False
    required: bool = False
    format: str | None = None
    occurrences: int = 0
    frequency: float = 0.0
    description: str | None = None
    examples: tuple[Any, ...] = ()
    minimum: float | None = None
    maximum: float | None = None
    opaque: bool = False


@dataclass(frozen=True)
class Schema:
    """Ordered canonical schema.

    Attributes:
        fields: Fields in declaration order.
        record_count: Records sampled to infer the schema.
        min_frequency: Threshold used to derive required flags.
        max_depth: Depth limit used during inference.
        title: Optional schema title.
    """

    fields: tuple[SchemaField, ...]
    record_count: int = 0
    min_frequency: float = 0.0
    max_depth: int = DEFAULT_MAX_DEPTH
    title: str | None = None

    @property
    def paths(self) -> tuple[str, ...]:
        """Field paths in declaration order."""
        return tuple(schema_field.path for schema_field in self.fields)

    def field(self, path: str) -> SchemaField | None:
        """Return the field at ``path`` if declared."""
        for schema_field in self.fields:
            if schema_field.path == path:
                return schema_field
        return None

    def is_empty(self) -> bool:
        """Return whether the schema declares no fields."""
        return len(self.fields) == 0


def meets_min_frequency(frequency: float, min_frequency: float) -> bool:
    """Return whether a presence ratio qualifies a field as required."""
    if REQUIRED_THRESHOLD_INCLUSIVE:
        return frequency >= min_frequency
    return frequency > min_frequency


def order_types(type_names: set[str] | frozenset[str]) -> tuple[str, ...]:
    """Order JSON Schema type names canonically, unknown names last."""
    known = [name for name in SCHEMA_TYPE_ORDER if name in type_names]
    unknown = sorted(name for name in type_names if name not in SCHEMA_TYPE_ORDER)
    return tuple(known + unknown)
