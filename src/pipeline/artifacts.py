"""Intermediate stage artifacts for resumable runs.

Schemas and mapping results produced by completed stages are kept under
``<data_root>/runs/<pipeline>/artifacts`` so a resumed run can continue
from the stage after the last completed one.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal

from core.constants import ARTIFACTS_DIR_NAME
from core.errors import OdmResourceError
from core.schema import Schema
from mapping.types import MappingResult
from schema_io.document import (
    load_document,
    mapping_result_from_document,
    mapping_result_to_document,
    schema_from_document,
    schema_to_document,
)

SchemaArtifact = Literal["schema", "refined_schema"]
_MAPPING_FILE_NAME = "mapping.json"


class RunArtifacts:
    """Read and write stage artifacts of one pipeline."""

    def __init__(self, run_dir: Path) -> None:
        self._directory = run_dir / ARTIFACTS_DIR_NAME

    def save_schema(self, kind: SchemaArtifact, schema: Schema) -> None:
        self._write(f"{kind}.json", schema_to_document(schema))

    def load_schema(self, kind: SchemaArtifact) -> Schema | None:
        path = self._directory / f"{kind}.json"
        if not path.exists():
            return None
        return schema_from_document(load_document(path), source=str(path))

    def save_mapping(self, result: MappingResult) -> None:
        self._write(_MAPPING_FILE_NAME, mapping_result_to_document(result))

    def load_mapping(self) -> MappingResult | None:
        path = self._directory / _MAPPING_FILE_NAME
        if not path.exists():
            return None
        return mapping_result_from_document(load_document(path), source=str(path))

    def _write(self, file_name: str, document: dict[str, object]) -> None:
        path = self._directory / file_name
        temp_path = path.with_suffix(".json.tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as error:
            raise OdmResourceError(
                f"Failed to write run artifact {path}: {error}. "
                "Check write permissions for the data root."
            ) from error
