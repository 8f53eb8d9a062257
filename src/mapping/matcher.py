"""Schema-to-schema field matching.

Matching runs in three passes: exact path match, unique leaf-name match,
then greedy fuzzy matching by name similarity. Fields whose types cannot
be coerced into each other are never matched.
"""

from __future__ import annotations

from typing import Any, Literal

from core.constants import (
    COERCION_PENALTY,
    GAP_SUGGESTION_MIN_SIMILARITY,
    MAX_GAP_SUGGESTIONS,
)
from core.errors import OdmValidationError
from core.field_path import leaf_name
from core.logging_config import get_logger
from core.schema import Schema, SchemaField
from mapping.name_similarity import name_similarity
from mapping.types import FieldGap, FieldMapping, MappingOptions, MappingResult

_LOGGER = get_logger(__name__)
TypeCompatibility = Literal["same", "coercible", "incompatible"]
_DEFAULT_VALUES: dict[str, Any] = {
    "string": "",
    "integer": 0,
    "number": 0.0,
    "boolean": False,
    "array": [],
    "object": {},
}


def map_schemas(
    source: Schema,
    target: Schema,
    options: MappingOptions | None = None,
) -> MappingResult:
    """Map source fields onto target fields.

    Args:
        source: Schema of the incoming data.
        target: Schema of the data contract.
        options: Matching options; defaults apply when omitted.

    Returns:
        Mapping result with one row per target field.

    Raises:
        OdmValidationError: If options or schemas are invalid.
    """
    options = options or MappingOptions()
    validate_mapping_inputs(source, target, options)
    matches: dict[int, FieldMapping] = {}
    used_sources: set[int] = set()
    _match_exact_paths(source, target, options, matches, used_sources)
    _match_unique_leaf_names(source, target, options, matches, used_sources)
    if options.fuzzy:
        _match_fuzzy(source, target, options, matches, used_sources)
    extras = tuple(
        source_field.path
        for index, source_field in enumerate(source.fields)
        if index not in used_sources
    )
    mappings: list[FieldMapping] = []
    gaps: list[FieldGap] = []
    for index, target_field in enumerate(target.fields):
        if index in matches:
            mappings.append(matches[index])
            continue
        mappings.append(
            FieldMapping(
                target_path=target_field.path,
                source_path=None,
                kind="unmatched",
                confidence=0.0,
            )
        )
        gaps.append(_build_gap(target_field, extras))
    result = MappingResult(mappings=tuple(mappings), extras=extras, gaps=tuple(gaps))
    _LOGGER.info(
        "mapping_completed",
        matched=len(result.matched),
        gaps=len(result.gaps),
        extras=len(result.extras),
        compatibility=round(result.compatibility_score, 4),
    )
    return result


def validate_mapping_inputs(source: Schema, target: Schema, options: MappingOptions) -> None:
    """Reject invalid mapping inputs before matching.

    Raises:
        OdmValidationError: If the threshold is out of range or a schema is empty.
    """
    if not 0.0 <= options.min_similarity <= 1.0:
        raise OdmValidationError(
            f"Invalid min similarity {options.min_similarity}: expected a value in [0, 1]."
        )
    if source.is_empty():
        raise OdmValidationError(
            "Cannot map an empty source schema. Infer or load a schema with fields first."
        )
    if target.is_empty():
        raise OdmValidationError(
            "Cannot map onto an empty target schema. Provide a target schema with fields."
        )


def type_compatibility(
    source_types: tuple[str, ...], target_types: tuple[str, ...]
) -> TypeCompatibility:
    """Classify whether source values fit the target types.

    Args:
        source_types: Non-null source type names.
        target_types: Non-null target type names.

    Returns:
        ``same`` when values fit as-is, ``coercible`` when integer/number
        coercion is needed, ``incompatible`` otherwise.
    """
    source_set = set(source_types)
    target_set = set(target_types)
    if not source_set or not target_set or source_set <= target_set:
        return "same"
    widened_source = {_widen(name) for name in source_set}
    widened_target = {_widen(name) for name in target_set}
    if widened_source <= widened_target:
        return "coercible"
    return "incompatible"


def suggest_default(target_field: SchemaField) -> Any:
    """Return a type-appropriate default for an unmatched target field."""
    if target_field.nullable or not target_field.types:
        return None
    return _DEFAULT_VALUES.get(target_field.types[0])


def _match_exact_paths(
    source: Schema,
    target: Schema,
    options: MappingOptions,
    matches: dict[int, FieldMapping],
    used_sources: set[int],
) -> None:
    source_index: dict[str, int] = {}
    for index, source_field in enumerate(source.fields):
        source_index.setdefault(_key(source_field.path, options), index)
    for target_position, target_field in enumerate(target.fields):
        source_position = source_index.get(_key(target_field.path, options))
        if source_position is None or source_position in used_sources:
            continue
        _accept_direct(source, target, source_position, target_position, matches, used_sources)


def _match_unique_leaf_names(
    source: Schema,
    target: Schema,
    options: MappingOptions,
    matches: dict[int, FieldMapping],
    used_sources: set[int],
) -> None:
    source_leaves = _leaf_positions(source, options, used_sources)
    target_leaves = _leaf_positions(target, options, set(matches))
    for leaf, target_positions in target_leaves.items():
        source_positions = source_leaves.get(leaf, [])
        if len(source_positions) != 1 or len(target_positions) != 1:
            continue
        _accept_direct(
            source, target, source_positions[0], target_positions[0], matches, used_sources
        )


def _accept_direct(
    source: Schema,
    target: Schema,
    source_position: int,
    target_position: int,
    matches: dict[int, FieldMapping],
    used_sources: set[int],
) -> None:
    source_field = source.fields[source_position]
    target_field = target.fields[target_position]
    compatibility = type_compatibility(source_field.types, target_field.types)
    if compatibility == "incompatible":
        return
    coerced = compatibility == "coercible"
    matches[target_position] = FieldMapping(
        target_path=target_field.path,
        source_path=source_field.path,
        kind="direct",
        confidence=1.0 - COERCION_PENALTY if coerced else 1.0,
        similarity=1.0,
        coerced=coerced,
    )
    used_sources.add(source_position)


def _match_fuzzy(
    source: Schema,
    target: Schema,
    options: MappingOptions,
    matches: dict[int, FieldMapping],
    used_sources: set[int],
) -> None:
    candidates: list[tuple[float, int, int, bool]] = []
    for source_position, source_field in enumerate(source.fields):
        if source_position in used_sources:
            continue
        for target_position, target_field in enumerate(target.fields):
            if target_position in matches:
                continue
            compatibility = type_compatibility(source_field.types, target_field.types)
            if compatibility == "incompatible":
                continue
            score = _pair_score(source_field.path, target_field.path)
            if score >= options.min_similarity:
                candidates.append(
                    (score, source_position, target_position, compatibility == "coercible")
                )
    candidates.sort(key=lambda candidate: (-candidate[0], candidate[1], candidate[2]))
    for score, source_position, target_position, coerced in candidates:
        if source_position in used_sources or target_position in matches:
            continue
        confidence = max(0.0, score - COERCION_PENALTY) if coerced else score
        matches[target_position] = FieldMapping(
            target_path=target.fields[target_position].path,
            source_path=source.fields[source_position].path,
            kind="fuzzy",
            confidence=confidence,
            similarity=score,
            coerced=coerced,
        )
        used_sources.add(source_position)


def _build_gap(target_field: SchemaField, extras: tuple[str, ...]) -> FieldGap:
    scored = [
        (_pair_score(extra, target_field.path), position, extra)
        for position, extra in enumerate(extras)
    ]
    ranked = sorted(
        (item for item in scored if item[0] >= GAP_SUGGESTION_MIN_SIMILARITY),
        key=lambda item: (-item[0], item[1]),
    )
    return FieldGap(
        target_path=target_field.path,
        required=target_field.required,
        types=target_field.types,
        suggestions=tuple(extra for _, _, extra in ranked[:MAX_GAP_SUGGESTIONS]),
        suggested_default=suggest_default(target_field),
    )


def _pair_score(source_path: str, target_path: str) -> float:
    return max(
        name_similarity(source_path, target_path),
        name_similarity(leaf_name(source_path), leaf_name(target_path)),
    )


def _leaf_positions(
    schema: Schema, options: MappingOptions, excluded: set[int]
) -> dict[str, list[int]]:
    positions: dict[str, list[int]] = {}
    for position, schema_field in enumerate(schema.fields):
        if position in excluded:
            continue
        positions.setdefault(_key(leaf_name(schema_field.path), options), []).append(position)
    return positions


def _key(name: str, options: MappingOptions) -> str:
    return name.casefold() if options.case_insensitive else name


def _widen(type_name: str) -> str:
    return "number" if type_name == "integer" else type_name
