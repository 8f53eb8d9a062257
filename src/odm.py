"""Public SDK surface for odm.

This module provides a stable import path for pipeline users.
It re-exports the primary client and typed option models.
"""

from __future__ import annotations

from core.config import OdmConfig
from core.errors import OdmError
from core.schema import Schema, SchemaField
from core.types import InferenceOptions, IngestOptions, IngestReport
from inference.engine import infer, infer_schema
from inference.schema_similarity import group_similar_schemas, schema_similarity
from mapping.matcher import map_schemas
from mapping.transform_codegen import render_transform
from mapping.types import MappingOptions, MappingResult
from pipeline.client import OdmClient
from pipeline.options import PipelineOptions
from pipeline.orchestrator import PipelineReport
from pipeline.pipeline_spec import load_pipeline_spec
from schema_io.json_schema import parse_json_schema, render_json_schema

__all__ = [
    "InferenceOptions",
    "IngestOptions",
    "IngestReport",
    "MappingOptions",
    "MappingResult",
    "OdmClient",
    "OdmConfig",
    "OdmError",
    "PipelineOptions",
    "PipelineReport",
    "Schema",
    "SchemaField",
    "group_similar_schemas",
    "infer",
    "infer_schema",
    "load_pipeline_spec",
    "map_schemas",
    "parse_json_schema",
    "render_json_schema",
    "render_transform",
    "schema_similarity",
]
