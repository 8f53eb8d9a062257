"""Integration tests for the ingest, infer, map, and export flow."""

from __future__ import annotations

from dataclasses import replace
import json
from pathlib import Path
import shutil

import pytest

from core.config import OdmConfig
from pipeline.client import OdmClient
from pipeline.options import PipelineOptions
from tests.fixture_paths import fixture_path


def _client(tmp_path: Path) -> OdmClient:
    config = replace(OdmConfig.from_env(), data_root=tmp_path / "data", llm_url=None)
    return OdmClient(config)


def test_half_present_field_is_required_at_threshold(tmp_path: Path) -> None:
    """A field present in half the records is required at min frequency 0.5."""
    source = tmp_path / "source"
    source.mkdir()
    shutil.copy(fixture_path("users/alice.json"), source)
    shutil.copy(fixture_path("users/bob.json"), source)
    options = PipelineOptions(name="pair", source=str(source), min_frequency=0.5)

    report = _client(tmp_path).run(options, ["ingest", "infer"])
    email = report.schema.field("email")  # type: ignore[union-attr]

    assert (email.required, email.frequency, email.format) == (  # type: ignore[union-attr]
        True,
        0.5,
        "email",
    )


def test_mapping_against_contract_reports_gap(tmp_path: Path) -> None:
    """Inferred users map onto the contract with one required gap."""
    options = PipelineOptions(
        name="users",
        source=str(fixture_path("users")),
        target_schema=str(fixture_path("schemas/contract.schema.json")),
        min_similarity=0.6,
    )

    mapping = _client(tmp_path).run(options).mapping
    assert mapping is not None
    matched = {row.target_path: row.source_path for row in mapping.matched}

    assert (matched, [gap.target_path for gap in mapping.gaps], mapping.extras) == (
        {"full_name": "name", "email_address": "email"},
        ["user_id"],
        ("id",),
    )


def test_export_publishes_schema_mapping_and_transform(tmp_path: Path) -> None:
    """Export writes every artifact to the requested directory."""
    output = tmp_path / "published"
    options = PipelineOptions(
        name="users",
        source=str(fixture_path("users")),
        target_schema=str(fixture_path("schemas/contract.schema.json")),
        min_similarity=0.6,
        transform_kind="python",
        output_format="json-schema",
        output=str(output),
    )

    _client(tmp_path).run(options)
    exported_schema = json.loads((output / "schema.schema.json").read_text(encoding="utf-8"))

    assert (sorted(path.name for path in output.iterdir()), exported_schema["type"]) == (
        ["mapping.json", "schema.schema.json", "transform.py"],
        "object",
    )


def test_second_run_of_same_source_stages_nothing_new(tmp_path: Path) -> None:
    """Dedup keeps a repeated run from staging duplicate records."""
    client = _client(tmp_path)
    options = PipelineOptions(name="users", source=str(fixture_path("users")))
    client.run(options, ["ingest"])

    report = client.run(options, ["ingest"])
    assert report.ingest is not None

    assert (report.ingest.records_ingested, client.partition_counts()) == (0, {"default": 4})


@pytest.mark.parametrize("output_format", ["json", "yaml", "json-schema"])
def test_export_formats_render(tmp_path: Path, output_format: str) -> None:
    """Every export format produces a non-empty schema file."""
    options = PipelineOptions(
        name="users",
        source=str(fixture_path("users")),
        output_format=output_format,  # type: ignore[arg-type]
    )

    report = _client(tmp_path).run(options)

    assert Path(report.exported[0]).read_text(encoding="utf-8").strip() != ""
