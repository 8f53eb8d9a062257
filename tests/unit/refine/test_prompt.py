"""Unit tests for refinement prompts and reply parsing."""

from __future__ import annotations

from refine.prompt import build_refinement_prompt, extract_json_object, truncate_documentation


def test_prompt_includes_documentation() -> None:
    """Documentation text is embedded in the prompt."""
    prompt = build_refinement_prompt('{"type": "object"}\n', doc_context="Users of the shop.")

    assert "Documentation:\nUsers of the shop." in prompt


def test_prompt_caps_sample_records() -> None:
    """At most five samples are shown to the model."""
    prompt = build_refinement_prompt("{}", samples=[{"id": index} for index in range(7)])

    assert ("Sample 5:" in prompt, "Sample 6:" in prompt) == (True, False)


def test_truncation_cuts_at_paragraph_boundary() -> None:
    """Long documentation is cut at the last paragraph break."""
    text = "First paragraph.\n\n" + "x" * 100

    assert truncate_documentation(text, max_chars=30) == (
        "First paragraph.\n\n[Documentation truncated]"
    )


def test_short_documentation_is_unchanged() -> None:
    """Text under the limit is returned as-is."""
    assert truncate_documentation("short", max_chars=30) == "short"


def test_extract_json_object_from_fenced_reply() -> None:
    """Objects wrapped in prose and fences are recovered."""
    reply = 'Here you go:\n```json\n{"a": {"b": "}"}}\n```'

    assert extract_json_object(reply) == {"a": {"b": "}"}}


def test_extract_json_object_without_object() -> None:
    """Replies without an object yield None."""
    assert extract_json_object("I cannot help with that.") is None
