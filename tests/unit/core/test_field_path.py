"""Unit tests for field path helpers."""

from __future__ import annotations

import pytest

from core.errors import OdmValidationError
from core.field_path import (
    ARRAY_ELEMENT,
    PathSegment,
    join_path,
    leaf_name,
    parent_path,
    path_sort_key,
    split_path,
)


def test_split_path_separates_array_segments() -> None:
    """Array markers become their own segments."""
    assert split_path("orders[].items[].sku") == (
        PathSegment("orders"),
        ARRAY_ELEMENT,
        PathSegment("items"),
        ARRAY_ELEMENT,
        PathSegment("sku"),
    )


def test_parent_path_of_array_elements_is_the_array() -> None:
    """The parent of ``a[]`` is ``a``."""
    assert parent_path("tags[]") == "tags"


def test_parent_path_of_nested_property() -> None:
    """Nested properties resolve to their enclosing object."""
    assert parent_path("customer.address.city") == "customer.address"


def test_leaf_name_ignores_array_markers() -> None:
    """Leaf names skip trailing ``[]`` segments."""
    assert leaf_name("orders[].tags[]") == "tags"


def test_join_path_at_root_returns_name() -> None:
    """Top-level properties have no leading dot."""
    assert join_path("", "id") == "id"


def test_dotted_names_are_quoted_apart_from_nested_paths() -> None:
    """A key containing a dot does not collide with a nested property."""
    assert (join_path("", "a.b"), join_path("a", "b")) == ('["a.b"]', "a.b")


def test_quoted_names_round_trip_through_split() -> None:
    """Bracket-quoted names decode back to the raw property name."""
    path = join_path(join_path("meta", "x[]"), "y")

    assert (path, split_path(path)) == (
        'meta["x[]"].y',
        (PathSegment("meta"), PathSegment("x[]"), PathSegment("y")),
    )


def test_parent_and_leaf_of_quoted_name() -> None:
    """Path helpers treat a quoted name as one segment."""
    path = join_path("a", "b.c")

    assert (parent_path(path), leaf_name(path)) == ("a", "b.c")


def test_property_named_like_array_marker_is_not_an_array() -> None:
    """A key spelled ``[]`` stays a property segment."""
    assert split_path(join_path("tags", "[]")) == (PathSegment("tags"), PathSegment("[]"))


def test_sort_key_orders_parents_first_and_distinguishes_quoted_names() -> None:
    """Sorting is total and parent-first even for quoted names."""
    paths = ["a.b", '["a.b"]', "a", "a[]"]

    assert sorted(paths, key=path_sort_key) == ["a", "a[]", "a.b", '["a.b"]']


def test_malformed_paths_are_validation_errors() -> None:
    """A stray bracket is rejected rather than misread."""
    with pytest.raises(OdmValidationError):
        split_path("a]b")
