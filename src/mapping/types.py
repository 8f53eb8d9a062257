"""Mapping result models.

This module defines the field-level mapping rows and the aggregate
result. The compatibility score is computed from the rows on demand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from core.constants import DEFAULT_MIN_SIMILARITY

MatchKind = Literal["direct", "fuzzy", "unmatched"]


@dataclass(frozen=True)
class MappingOptions:
    """Matching options.

    Attributes:
        fuzzy: Whether name-similarity matching runs after exact matching.
        min_similarity: Lowest similarity accepted for a fuzzy match.
        case_insensitive: Whether exact matching ignores case.
    """

    fuzzy: bool = True
    min_similarity: float = DEFAULT_MIN_SIMILARITY
    case_insensitive: bool = False


@dataclass(frozen=True)
class FieldMapping:
    """Mapping row for one target field.

    Attributes:
        target_path: Target field path.
        source_path: Matched source path, ``None`` for gaps.
        kind: How the match was made.
        confidence: Match confidence in [0, 1]; ``0.0`` for gaps.
        similarity: Name similarity score behind the match.
        coerced: Whether values need integer/number coercion.
    """

    target_path: str
    source_path: str | None
    kind: MatchKind
    confidence: float
    similarity: float = 0.0
    coerced: bool = False

    @property
    def is_matched(self) -> bool:
        return self.kind != "unmatched" and self.source_path is not None


@dataclass(frozen=True)
class FieldGap:
    """Target field with no source.

    Attributes:
        target_path: Unmatched target path.
        required: Whether the target requires the field.
        types: Target types.
        suggestions: Closest unmatched source paths, best first.
        suggested_default: Type-appropriate default value.
    """

    target_path: str
    required: bool
    types: tuple[str, ...]
    suggestions: tuple[str, ...] = ()
    suggested_default: Any = None


@dataclass(frozen=True)
class MappingResult:
    """Outcome of mapping a source schema onto a target schema.

    Attributes:
        mappings: One row per target field, in target declaration order.
        extras: Unmatched source paths, in source declaration order.
        gaps: Unmatched target fields, in target declaration order.
    """

    mappings: tuple[FieldMapping, ...]
    extras: tuple[str, ...]
    gaps: tuple[FieldGap, ...]

    @property
    def target_field_count(self) -> int:
        return len(self.mappings)

    @property
    def matched(self) -> tuple[FieldMapping, ...]:
        """Rows with a source field, in target order."""
        return tuple(mapping for mapping in self.mappings if mapping.is_matched)

    @property
    def compatibility_score(self) -> float:
        """Sum of matched confidences divided by the target field count."""
        if not self.mappings:
            return 0.0
        total = sum(mapping.confidence for mapping in self.mappings if mapping.is_matched)
        return total / len(self.mappings)

    @property
    def is_complete(self) -> bool:
        """Whether every required target field has a source."""
        return not any(gap.required for gap in self.gaps)
