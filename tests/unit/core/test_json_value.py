"""Unit tests for JSON kind classification."""

from __future__ import annotations

import pytest

from core.errors import OdmInputError
from core.json_value import kind_of


def test_kind_of_distinguishes_bool_from_int() -> None:
    """Booleans are never classified as integers."""
    assert (kind_of(True), kind_of(1), kind_of(1.5)) == ("bool", "int", "float")


def test_kind_of_classifies_containers() -> None:
    """Lists are arrays and dicts are objects."""
    assert (kind_of([1]), kind_of({"a": 1}), kind_of(None)) == ("array", "object", "null")


def test_kind_of_rejects_non_json_values() -> None:
    """Values that JSON cannot represent are input errors."""
    with pytest.raises(OdmInputError):
        kind_of(object())
