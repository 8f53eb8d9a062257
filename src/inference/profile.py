"""Per-path field profiles and their merge.

A profile summarizes every value observed at one path. Profiles built
from disjoint record sets merge associatively and commutatively, so
shards can be profiled in any order and reduced at the end.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import json
import math
from typing import Iterable, Mapping

from core.constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_EXAMPLES
from core.field_path import array_path, join_path
from core.json_value import SCALAR_KINDS, JsonKind, kind_of
from inference.formats import detect_format

ROOT_PATH = ""


@dataclass(frozen=True)
class ProfileSettings:
    """Knobs applied while profiling values.

    Attributes:
        max_depth: Deepest path walked below the record root.
        detect_formats: Whether string format detectors run.
        max_examples: Example values kept per path.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    detect_formats: bool = True
    max_examples: int = DEFAULT_MAX_EXAMPLES


@dataclass(frozen=True)
class FieldProfile:
    """Statistical summary of the values seen at one path.

    Attributes:
        path: Structural path of the profiled values.
        occurrences: Number of values observed, nulls included.
        kind_counts: Observations per JSON kind.
        format_counts: String values per detected format.
        minimum: Smallest finite numeric value.
        maximum: Largest finite numeric value.
        examples: Smallest scalar values by canonical JSON text.
        truncated: Whether nested content was cut off at the depth limit.
        children: Child profiles keyed by their paths.
    """

    path: str
    occurrences: int = 0
    kind_counts: Mapping[JsonKind, int] = field(default_factory=dict)
    format_counts: Mapping[str, int] = field(default_factory=dict)
    minimum: float | None = None
    maximum: float | None = None
    examples: tuple[str, ...] = ()
    truncated: bool = False
    children: Mapping[str, "FieldProfile"] = field(default_factory=dict)

    @property
    def kinds(self) -> frozenset[JsonKind]:
        """Set of JSON kinds observed at this path."""
        return frozenset(kind for kind, count in self.kind_counts.items() if count > 0)

    @property
    def null_count(self) -> int:
        return self.kind_counts.get("null", 0)

    @property
    def string_count(self) -> int:
        return self.kind_counts.get("string", 0)

    @property
    def object_count(self) -> int:
        return self.kind_counts.get("object", 0)


def profile_record(value: object, settings: ProfileSettings) -> FieldProfile:
    """Profile one record rooted at the empty path."""
    return profile_value(ROOT_PATH, value, 0, settings)


def profile_records(values: Iterable[object], settings: ProfileSettings) -> FieldProfile:
    """Profile many records and reduce them into one root profile."""
    merged = FieldProfile(path=ROOT_PATH)
    for value in values:
        merged = merge_profiles(merged, profile_record(value, settings), settings.max_examples)
    return merged


def profile_value(path: str, value: object, depth: int, settings: ProfileSettings) -> FieldProfile:
    """Build the profile of a single value.

    Args:
        path: Path of ``value``.
        value: Decoded JSON value.
        depth: Number of segments in ``path``.
        settings: Profiling knobs.

    Returns:
        Profile holding exactly one observation.
    """
    kind = kind_of(value)
    base = FieldProfile(path=path, occurrences=1, kind_counts={kind: 1})
    if kind == "null":
        return base
    if kind == "bool" or kind == "int" or kind == "float":
        return _profile_scalar(base, value, kind, settings)
    if kind == "string":
        return _profile_string(base, str(value), settings)
    if kind == "array":
        return _profile_array(base, value, depth, settings)
    if kind == "object":
        return _profile_object(base, value, depth, settings)
    raise ValueError(f"Unhandled JSON kind {kind} at {path}")


def merge_profiles(
    left: FieldProfile,
    right: FieldProfile,
    max_examples: int = DEFAULT_MAX_EXAMPLES,
) -> FieldProfile:
    """Merge two profiles of the same path.

    Args:
        left: First profile.
        right: Second profile.
        max_examples: Bound on retained example values.

    Returns:
        Profile equivalent to observing both inputs.

    Raises:
        ValueError: If the profiles describe different paths.
    """
    if left.path != right.path:
        raise ValueError(f"Cannot merge profiles of {left.path!r} and {right.path!r}")
    children = dict(left.children)
    for name, child in right.children.items():
        children[name] = (
            merge_profiles(children[name], child, max_examples) if name in children else child
        )
    return FieldProfile(
        path=left.path,
        occurrences=left.occurrences + right.occurrences,
        kind_counts=_sum_counts(left.kind_counts, right.kind_counts),
        format_counts=_sum_counts(left.format_counts, right.format_counts),
        minimum=_pick(min, left.minimum, right.minimum),
        maximum=_pick(max, left.maximum, right.maximum),
        examples=tuple(sorted(set(left.examples) | set(right.examples)))[:max_examples],
        truncated=left.truncated or right.truncated,
        children=children,
    )


def _profile_scalar(
    base: FieldProfile, value: object, kind: JsonKind, settings: ProfileSettings
) -> FieldProfile:
    minimum = maximum = None
    if kind != "bool":
        numeric = float(value)  # type: ignore[arg-type]
        if math.isfinite(numeric):
            minimum = maximum = numeric
    return FieldProfile(
        path=base.path,
        occurrences=1,
        kind_counts=base.kind_counts,
        minimum=minimum,
        maximum=maximum,
        examples=_examples_for(value, kind, settings),
    )


def _profile_string(base: FieldProfile, value: str, settings: ProfileSettings) -> FieldProfile:
    format_counts: dict[str, int] = {}
    if settings.detect_formats:
        format_name = detect_format(value)
        if format_name is not None:
            format_counts[format_name] = 1
    return FieldProfile(
        path=base.path,
        occurrences=1,
        kind_counts=base.kind_counts,
        format_counts=format_counts,
        examples=_examples_for(value, "string", settings),
    )


def _profile_array(
    base: FieldProfile, value: object, depth: int, settings: ProfileSettings
) -> FieldProfile:
    if depth >= settings.max_depth:
        return FieldProfile(
            path=base.path, occurrences=1, kind_counts=base.kind_counts, truncated=True
        )
    element_path = array_path(base.path)
    elements: FieldProfile | None = None
    for element in value:  # type: ignore[attr-defined]
        element_profile = profile_value(element_path, element, depth + 1, settings)
        elements = (
            element_profile
            if elements is None
            else merge_profiles(elements, element_profile, settings.max_examples)
        )
    children = {} if elements is None else {element_path: elements}
    return FieldProfile(
        path=base.path, occurrences=1, kind_counts=base.kind_counts, children=children
    )


def _profile_object(
    base: FieldProfile, value: object, depth: int, settings: ProfileSettings
) -> FieldProfile:
    if depth >= settings.max_depth:
        return FieldProfile(
            path=base.path, occurrences=1, kind_counts=base.kind_counts, truncated=True
        )
    children: dict[str, FieldProfile] = {}
    for name, child in value.items():  # type: ignore[attr-defined]
        child_path = join_path(base.path, str(name))
        children[child_path] = profile_value(child_path, child, depth + 1, settings)
    return FieldProfile(
        path=base.path, occurrences=1, kind_counts=base.kind_counts, children=children
    )


def _examples_for(value: object, kind: JsonKind, settings: ProfileSettings) -> tuple[str, ...]:
    if settings.max_examples <= 0 or kind not in SCALAR_KINDS:
        return ()
    if kind == "float" and not math.isfinite(float(value)):  # type: ignore[arg-type]
        return ()
    return (json.dumps(value, sort_keys=True),)


def _sum_counts(left: Mapping, right: Mapping) -> dict:
    total = Counter(left)
    total.update(right)
    return dict(total)


def _pick(chooser, left: float | None, right: float | None) -> float | None:
    if left is None:
        return right
    if right is None:
        return left
    return chooser(left, right)
