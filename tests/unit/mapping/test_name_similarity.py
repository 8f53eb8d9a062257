"""Unit tests for field-name similarity."""

from __future__ import annotations

import pytest

from mapping.name_similarity import levenshtein_distance, name_similarity, tokenize_name


def test_levenshtein_distance_counts_edits() -> None:
    """Classic kitten/sitting distance is three."""
    assert levenshtein_distance("kitten", "sitting") == 3


def test_equal_names_ignore_case() -> None:
    """Case-insensitively equal names score one."""
    assert name_similarity("Email", "email") == 1.0


def test_token_containment_lifts_score() -> None:
    """A whole-token prefix scores above plain edit similarity."""
    assert name_similarity("email", "email_address") == pytest.approx(0.6 + 0.4 * 5 / 13)


def test_short_names_do_not_use_containment() -> None:
    """Two-letter names fall back to edit similarity."""
    assert name_similarity("id", "user_id") == pytest.approx(1 - 5 / 7)


def test_tokenize_name_splits_camel_case() -> None:
    """camelCase boundaries split tokens."""
    assert tokenize_name("emailAddress") == ("email", "address")
