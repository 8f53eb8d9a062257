"""Closed classification of decoded JSON values.

This module maps Python values produced by ``json.loads`` onto a fixed
set of JSON kinds so profilers handle every kind explicitly.
"""

from __future__ import annotations

from typing import Literal, Mapping

from core.errors import OdmInputError

JsonKind = Literal["null", "bool", "int", "float", "string", "array", "object"]
JSON_KINDS: tuple[JsonKind, ...] = ("null", "bool", "int", "float", "string", "array", "object")
SCALAR_KINDS: frozenset[JsonKind] = frozenset({"bool", "int", "float", "string"})


def kind_of(value: object) -> JsonKind:
    """Classify a decoded JSON value.

    Args:
        value: Value produced by a JSON decoder.

    Returns:
        The JSON kind of ``value``.

    Raises:
        OdmInputError: If the value is not representable as JSON.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    raise OdmInputError(
        f"Unsupported value of type {type(value).__name__} in JSON record. "
        "Stage only values decoded from JSON text."
    )
