"""Unit tests for field profiles and their merge."""

from __future__ import annotations

import pytest

from inference.profile import ProfileSettings, merge_profiles, profile_record, profile_records

_SETTINGS = ProfileSettings(max_examples=3)
_RECORDS = (
    {"id": 1, "name": "Alice", "tags": ["a", "b"]},
    {"id": 2.5, "name": None, "address": {"city": "Oslo"}},
    {"id": 3, "email": "c@example.org", "tags": []},
)


def _profiles():
    return [profile_record(record, _SETTINGS) for record in _RECORDS]


def test_merge_is_associative() -> None:
    """Grouping of merges does not change the result."""
    first, second, third = _profiles()

    left = merge_profiles(merge_profiles(first, second, 3), third, 3)
    right = merge_profiles(first, merge_profiles(second, third, 3), 3)

    assert left == right


def test_merge_is_commutative() -> None:
    """Merge order does not change the result."""
    first, second, _ = _profiles()

    assert merge_profiles(first, second, 3) == merge_profiles(second, first, 3)


def test_merge_rejects_different_paths() -> None:
    """Profiles of different paths cannot merge."""
    first, _, _ = _profiles()
    child = first.children["id"]

    with pytest.raises(ValueError):
        merge_profiles(first, child)


def test_profile_counts_kinds_and_nulls() -> None:
    """Kind counts include nulls observed at a path."""
    root = profile_records(_RECORDS, _SETTINGS)
    name = root.children["name"]

    assert (name.occurrences, name.null_count, name.string_count) == (2, 1, 1)


def test_profile_tracks_numeric_range() -> None:
    """Integers and floats share one numeric range."""
    root = profile_records(_RECORDS, _SETTINGS)
    identifier = root.children["id"]

    assert (identifier.minimum, identifier.maximum) == (1.0, 3.0)


def test_examples_are_bounded_and_sorted() -> None:
    """Examples keep the smallest canonical texts up to the bound."""
    records = [{"code": value} for value in ("d", "b", "e", "a", "c")]

    root = profile_records(records, _SETTINGS)

    assert root.children["code"].examples == ('"a"', '"b"', '"c"')


def test_depth_limit_marks_profile_truncated() -> None:
    """Values deeper than the limit are not walked."""
    root = profile_record({"a": {"b": {"c": 1}}}, ProfileSettings(max_depth=2))

    assert root.children["a"].children["a.b"].truncated is True
