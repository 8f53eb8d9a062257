"""Schema inference over staged records.

This module samples records, profiles them in parallel shards, merges
the partial profiles, and finalizes the result into a canonical schema.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import reduce
import json
from itertools import islice
from typing import Iterable, Iterator, Mapping

from core.constants import (
    DEFAULT_MAX_WORKERS,
    FORMAT_CONFIDENCE_THRESHOLD,
    INFERENCE_CHUNK_SIZE,
)
from core.errors import OdmValidationError
from core.field_path import is_array_path, path_sort_key
from core.json_value import kind_of
from core.logging_config import get_logger
from core.schema import Schema, SchemaField, meets_min_frequency, order_types
from core.types import InferenceOptions
from inference.formats import format_rank
from inference.profile import (
    ROOT_PATH,
    FieldProfile,
    ProfileSettings,
    merge_profiles,
    profile_records,
)

_LOGGER = get_logger(__name__)
_KIND_TO_SCHEMA_TYPE = {
    "bool": "boolean",
    "int": "integer",
    "float": "number",
    "string": "string",
    "array": "array",
    "object": "object",
}


@dataclass(frozen=True)
class InferenceResult:
    """Inferred schema plus sampling statistics.

    Attributes:
        schema: Canonical schema.
        records_sampled: Object records profiled.
        records_skipped: Sampled records skipped because they were not objects.
        sample_shortfall: Requested records that were not available.
        max_depth_seen: Deepest field path observed, in segments.
        kind_distribution: Field value observations per JSON kind.
    """

    schema: Schema
    records_sampled: int
    records_skipped: int
    sample_shortfall: int
    max_depth_seen: int = 0
    kind_distribution: Mapping[str, int] = field(default_factory=dict)


def infer(
    records: Iterable[object],
    sample_size: int = 0,
    min_frequency: float = 0.0,
    max_depth: int = 10,
    detect_formats: bool = True,
) -> Schema:
    """Infer a schema from decoded JSON records.

    Args:
        records: Record values, typically read from the staging store.
        sample_size: Maximum records to sample; ``0`` samples everything.
        min_frequency: Presence ratio at which a field becomes required.
        max_depth: Deepest path walked; deeper values stay opaque.
        detect_formats: Whether string format detectors run.

    Returns:
        Canonical schema.
    """
    options = InferenceOptions(
        sample_size=sample_size,
        min_frequency=min_frequency,
        max_depth=max_depth,
        detect_formats=detect_formats,
    )
    return infer_schema(records, options).schema


def infer_schema(
    records: Iterable[object],
    options: InferenceOptions,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> InferenceResult:
    """Infer a schema and report sampling statistics.

    Args:
        records: Record values to sample from.
        options: Inference options.
        max_workers: Concurrent profiling shards.

    Returns:
        Inference result with schema and statistics.

    Raises:
        OdmValidationError: If options are out of range.
    """
    validate_inference_options(options)
    settings = ProfileSettings(
        max_depth=options.max_depth,
        detect_formats=options.detect_formats,
        max_examples=options.max_examples,
    )
    sampled = _sample(records, options.sample_size)
    skipped = 0
    partials: list[Future[FieldProfile]] = []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        for chunk in _chunks(sampled, INFERENCE_CHUNK_SIZE):
            objects = [value for value in chunk if kind_of(value) == "object"]
            skipped += len(chunk) - len(objects)
            partials.append(executor.submit(profile_records, objects, settings))
        profiles = [future.result() for future in partials]
    root = reduce(
        lambda left, right: merge_profiles(left, right, settings.max_examples),
        profiles,
        FieldProfile(path=ROOT_PATH),
    )
    records_sampled = root.object_count
    requested = options.sample_size
    shortfall = max(0, requested - (records_sampled + skipped)) if requested > 0 else 0
    if shortfall:
        _LOGGER.info(
            "inference_sample_shortfall",
            requested=requested,
            available=requested - shortfall,
        )
    if skipped:
        _LOGGER.warning("inference_records_skipped", skipped=skipped, reason="not a JSON object")
    schema = build_schema(root, options)
    _LOGGER.info(
        "inference_completed",
        records_sampled=records_sampled,
        field_count=len(schema.fields),
    )
    return InferenceResult(
        schema=schema,
        records_sampled=records_sampled,
        records_skipped=skipped,
        sample_shortfall=shortfall,
        max_depth_seen=_max_depth(root),
        kind_distribution=_kind_distribution(root),
    )


def validate_inference_options(options: InferenceOptions) -> None:
    """Reject out-of-range inference options before any record is read.

    Raises:
        OdmValidationError: If any option is out of range.
    """
    if options.sample_size < 0:
        raise OdmValidationError(
            f"Invalid sample size {options.sample_size}: expected 0 (all) or a positive count."
        )
    if not 0.0 <= options.min_frequency <= 1.0:
        raise OdmValidationError(
            f"Invalid min frequency {options.min_frequency}: expected a value in [0, 1]."
        )
    if options.max_depth < 1:
        raise OdmValidationError(
            f"Invalid max depth {options.max_depth}: expected a positive integer."
        )
    if options.max_examples < 0:
        raise OdmValidationError(
            f"Invalid max examples {options.max_examples}: expected 0 or a positive count."
        )


def build_schema(root: FieldProfile, options: InferenceOptions) -> Schema:
    """Finalize a merged root profile into a schema.

    Args:
        root: Merged profile of all sampled records.
        options: Inference options carrying the thresholds.

    Returns:
        Schema with fields in structural path order.
    """
    fields: list[SchemaField] = []
    _collect_fields(root, options, fields)
    fields.sort(key=lambda schema_field: path_sort_key(schema_field.path))
    return Schema(
        fields=tuple(fields),
        record_count=root.object_count,
        min_frequency=options.min_frequency,
        max_depth=options.max_depth,
    )


def _collect_fields(
    parent: FieldProfile, options: InferenceOptions, fields: list[SchemaField]
) -> None:
    for child in parent.children.values():
        if is_array_path(child.path):
            frequency = 1.0
        else:
            frequency = child.occurrences / parent.object_count if parent.object_count else 0.0
        fields.append(_finalize_field(child, frequency, options))
        _collect_fields(child, options, fields)


def _finalize_field(
    profile: FieldProfile, frequency: float, options: InferenceOptions
) -> SchemaField:
    type_names = {
        _KIND_TO_SCHEMA_TYPE[kind] for kind in profile.kinds if kind != "null"
    }
    if {"integer", "number"} <= type_names:
        type_names.discard("integer")
    return SchemaField(
        path=profile.path,
        types=order_types(type_names),
        nullable=profile.null_count > 0,
        required=meets_min_frequency(frequency, options.min_frequency),
        format=_select_format(profile) if options.detect_formats else None,
        occurrences=profile.occurrences,
        frequency=frequency,
        examples=tuple(json.loads(example) for example in profile.examples),
        minimum=profile.minimum,
        maximum=profile.maximum,
        opaque=profile.truncated,
    )


def _select_format(profile: FieldProfile) -> str | None:
    if profile.string_count == 0:
        return None
    qualifying = [
        (count, format_name)
        for format_name, count in profile.format_counts.items()
        if count / profile.string_count >= FORMAT_CONFIDENCE_THRESHOLD
    ]
    if not qualifying:
        return None
    qualifying.sort(key=lambda item: (-item[0], format_rank(item[1])))
    return qualifying[0][1]


def _max_depth(profile: FieldProfile, depth: int = 0) -> int:
    return max(
        (_max_depth(child, depth + 1) for child in profile.children.values()), default=depth
    )


def _kind_distribution(root: FieldProfile) -> dict[str, int]:
    totals: dict[str, int] = {}
    pending = list(root.children.values())
    while pending:
        profile = pending.pop()
        for kind, count in profile.kind_counts.items():
            totals[kind] = totals.get(kind, 0) + count
        pending.extend(profile.children.values())
    return dict(sorted(totals.items()))


def _sample(records: Iterable[object], sample_size: int) -> Iterator[object]:
    iterator = iter(records)
    if sample_size > 0:
        return islice(iterator, sample_size)
    return iterator


def _chunks(values: Iterator[object], size: int) -> Iterator[list[object]]:
    while True:
        chunk = list(islice(values, size))
        if not chunk:
            return
        yield chunk
