"""Core constants used across pipeline modules.

This module centralizes defaults, file names, and tuning constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".odm")
STAGING_DIR_NAME = "staging"
RUNS_DIR_NAME = "runs"
ARTIFACTS_DIR_NAME = "artifacts"
EXPORT_DIR_NAME = "export"
BATCH_CATALOG_FILE_NAME = "batches.json"
FILE_HASHES_FILE_NAME = "file_hashes.jsonl"
RECORDS_DIR_NAME = "records"
LANCE_DIR_NAME = "data.lance"
CHECKPOINT_FILE_NAME = "checkpoint.json"
HASH_ALGORITHM = "sha256"

EXIT_OK = 0
EXIT_GENERAL_ERROR = 1
EXIT_INVALID_ARGUMENTS = 2
EXIT_DEPENDENCY_UNAVAILABLE = 3

DEFAULT_PIPELINE_NAME = "default"
DEFAULT_PARTITION_KEY = "default"
DEFAULT_SOURCE_PATTERN = "**/*.json*"
SUPPORTED_SOURCE_EXTENSIONS = (".json", ".jsonl", ".ndjson")
JSON_LINES_EXTENSIONS = (".jsonl", ".ndjson")
DEFAULT_INGEST_BATCH_SIZE = 100
DEFAULT_MAX_WORKERS = 4
DEFAULT_DEDUP_STRATEGY = "both"

DEFAULT_SAMPLE_SIZE = 0
DEFAULT_MIN_FREQUENCY = 0.0
DEFAULT_MAX_DEPTH = 10
DEFAULT_MAX_EXAMPLES = 5
INFERENCE_CHUNK_SIZE = 1000
FORMAT_CONFIDENCE_THRESHOLD = 0.9
REQUIRED_THRESHOLD_INCLUSIVE = True
ARRAY_SEGMENT = "[]"

DEFAULT_MIN_SIMILARITY = 0.7
COERCION_PENALTY = 0.15
MIN_CONTAINMENT_LENGTH = 3
CONTAINMENT_BASE_SCORE = 0.6
CONTAINMENT_LENGTH_WEIGHT = 0.4
MAX_GAP_SUGGESTIONS = 3
GAP_SUGGESTION_MIN_SIMILARITY = 0.25
SCHEMA_SIMILARITY_NAME_WEIGHT = 0.6
SCHEMA_SIMILARITY_TYPE_WEIGHT = 0.4
DEFAULT_TRANSFORM_KIND = "sql"

DEFAULT_NETWORK_TIMEOUT_SECONDS = 10.0
DEFAULT_NETWORK_RETRIES = 2
RETRY_BACKOFF_SECONDS = 0.5
DEFAULT_LLM_MODEL = "llama3.2"
DEFAULT_LLM_TEMPERATURE = 0.3

JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
DEFAULT_OUTPUT_FORMAT = "json"
