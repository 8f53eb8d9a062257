"""Prompt construction and response parsing for schema refinement.

The model receives the inferred schema as JSON Schema plus optional
documentation and sample records, and must answer with one JSON object.
"""

from __future__ import annotations

import json
from string import Template
from typing import Any, Sequence

MAX_DOCUMENTATION_CHARS = 8000
MAX_PROMPT_SAMPLES = 5
_TRUNCATION_MARKER = "\n\n[Documentation truncated]"

_REFINEMENT_TEMPLATE = Template(
    """You are a data modeling expert refining an automatically inferred JSON Schema.

Rules:
1. Keep every field and every field name exactly as given.
2. Do not change field types.
3. Only add descriptions, format hints, and example values.

Input schema:
$schema
$documentation$samples
Answer with a single JSON Schema object and nothing else.
"""
)


def build_refinement_prompt(
    schema_json: str,
    doc_context: str | None = None,
    samples: Sequence[Any] = (),
) -> str:
    """Build the refinement prompt.

    Args:
        schema_json: Inferred schema rendered as JSON Schema.
        doc_context: Optional free-text documentation about the data.
        samples: Optional sample records; at most five are included.

    Returns:
        Prompt text.
    """
    documentation = ""
    if doc_context:
        documentation = f"\nDocumentation:\n{truncate_documentation(doc_context)}\n"
    sample_section = ""
    if samples:
        lines = [
            f"Sample {index}: {json.dumps(sample, sort_keys=True)}"
            for index, sample in enumerate(samples[:MAX_PROMPT_SAMPLES], 1)
        ]
        sample_section = "\nSample records:\n" + "\n".join(lines) + "\n"
    return _REFINEMENT_TEMPLATE.substitute(
        schema=schema_json.rstrip("\n"),
        documentation=documentation,
        samples=sample_section,
    )


def truncate_documentation(text: str, max_chars: int = MAX_DOCUMENTATION_CHARS) -> str:
    """Cut documentation at a paragraph, sentence, or word boundary."""
    if len(text) <= max_chars:
        return text
    head = text[:max_chars]
    for boundary in ("\n\n", ". ", " "):
        position = head.rfind(boundary)
        if position > max_chars // 2:
            return head[:position].rstrip() + _TRUNCATION_MARKER
    return head + _TRUNCATION_MARKER


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first JSON object in a model reply, or ``None``.

    Replies may wrap the object in prose or markdown fences, so the first
    balanced ``{...}`` span is tried when the whole text is not JSON.
    """
    text = text.strip()
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed
    span = _first_object_span(text)
    if span is None:
        return None
    try:
        candidate = json.loads(span)
    except json.JSONDecodeError:
        return None
    return candidate if isinstance(candidate, dict) else None


def _first_object_span(text: str) -> str | None:
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None
