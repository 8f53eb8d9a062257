"""Field-name similarity scoring.

Scores are the larger of a normalized Levenshtein similarity and a
token containment score, so ``email`` stays close to ``email_address``
while very short names like ``id`` never ride on containment alone.
"""

from __future__ import annotations

import re

from core.constants import (
    CONTAINMENT_BASE_SCORE,
    CONTAINMENT_LENGTH_WEIGHT,
    MIN_CONTAINMENT_LENGTH,
)

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_TOKEN_SEPARATORS = re.compile(r"[._\-\[\]\s]+")


def levenshtein_distance(left: str, right: str) -> int:
    """Return the edit distance between two strings."""
    if len(left) < len(right):
        left, right = right, left
    previous = list(range(len(right) + 1))
    for row, left_char in enumerate(left, 1):
        current = [row]
        for column, right_char in enumerate(right, 1):
            substitution = previous[column - 1] + (left_char != right_char)
            current.append(min(previous[column] + 1, current[column - 1] + 1, substitution))
        previous = current
    return previous[-1]


def name_similarity(source_name: str, target_name: str) -> float:
    """Score two field names in [0, 1].

    Args:
        source_name: Source field name or path.
        target_name: Target field name or path.

    Returns:
        Similarity score, ``1.0`` for case-insensitively equal names.
    """
    left = source_name.lower()
    right = target_name.lower()
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    edit_similarity = 1.0 - levenshtein_distance(left, right) / max(len(left), len(right))
    return max(edit_similarity, _containment_score(source_name, target_name))


def tokenize_name(name: str) -> tuple[str, ...]:
    """Split a name into lowercase tokens on separators and camelCase boundaries."""
    spaced = _CAMEL_BOUNDARY.sub(r"\1_\2", name)
    return tuple(token for token in _TOKEN_SEPARATORS.split(spaced.lower()) if token)


def _containment_score(source_name: str, target_name: str) -> float:
    shorter, longer = sorted((source_name, target_name), key=len)
    if len(shorter) < MIN_CONTAINMENT_LENGTH or len(shorter) == len(longer):
        return 0.0
    if not _contains_run(tokenize_name(longer), tokenize_name(shorter)):
        return 0.0
    return CONTAINMENT_BASE_SCORE + CONTAINMENT_LENGTH_WEIGHT * len(shorter) / len(longer)


def _contains_run(tokens: tuple[str, ...], run: tuple[str, ...]) -> bool:
    if not run or len(run) > len(tokens):
        return False
    last_start = len(tokens) - len(run)
    return any(tokens[start : start + len(run)] == run for start in range(last_start + 1))
