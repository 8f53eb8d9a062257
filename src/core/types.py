"""Shared typed models.

This module defines immutable data models used by ingest, store,
pipeline, and SDK layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Literal

from core.constants import (
    DEFAULT_INGEST_BATCH_SIZE,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_EXAMPLES,
    DEFAULT_MIN_FREQUENCY,
    DEFAULT_PARTITION_KEY,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SOURCE_PATTERN,
)
from core.errors import OdmResourceError

DedupStrategy = Literal["none", "path", "content", "both"]
SUPPORTED_DEDUP_STRATEGIES: tuple[DedupStrategy, ...] = ("none", "path", "content", "both")
BatchStatus = Literal["pending", "committed", "failed"]
TransformKind = Literal["sql", "jq", "python"]
SUPPORTED_TRANSFORM_KINDS: tuple[TransformKind, ...] = ("sql", "jq", "python")
OutputFormat = Literal["json", "yaml", "json-schema"]
SUPPORTED_OUTPUT_FORMATS: tuple[OutputFormat, ...] = ("json", "yaml", "json-schema")

_ALLOWED_BATCH_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"committed", "failed"}),
    "committed": frozenset(),
    "failed": frozenset(),
}


@dataclass(frozen=True)
class RecordDraft:
    """Parsed record waiting for a staging batch.

    Attributes:
        source_path: File path or URI the record was read from.
        record_index: Zero-based position of the record within its file.
        content_fingerprint: Content hash of the whole source file.
        value: Decoded JSON value.
    """

    source_path: str
    record_index: int
    content_fingerprint: str
    value: Any


@dataclass(frozen=True)
class RawRecord:
    """Immutable staged record.

    Attributes:
        record_id: Store-assigned sequential identifier.
        batch_id: Batch that staged the record.
        partition_key: Caller-supplied grouping label.
        source_path: File path or URI the record was read from.
        record_index: Zero-based position within the source file.
        content_fingerprint: Content hash of the whole source file.
        ingested_at: UTC staging timestamp.
        value: Decoded JSON value.
    """

    record_id: int
    batch_id: int
    partition_key: str
    source_path: str
    record_index: int
    content_fingerprint: str
    ingested_at: datetime
    value: Any


@dataclass(frozen=True)
class Batch:
    """Staging batch bookkeeping row.

    Attributes:
        batch_id: Store-assigned sequential identifier.
        run_id: Pipeline run that created the batch.
        partition_key: Caller-supplied grouping label.
        status: Lifecycle status; only moves forward.
        files: Source files staged by the batch.
        first_record_id: First record id in the batch range, if any.
        last_record_id: Last record id in the batch range, if any.
        record_count: Number of staged records.
        created_at: UTC creation timestamp.
        updated_at: UTC timestamp of the last status change.
        error: Failure description for failed batches.
    """

    batch_id: int
    run_id: str
    partition_key: str
    status: BatchStatus
    files: tuple[str, ...]
    created_at: datetime
    updated_at: datetime
    first_record_id: int | None = None
    last_record_id: int | None = None
    record_count: int = 0
    error: str | None = None

    def with_status(
        self, status: BatchStatus, updated_at: datetime, error: str | None = None
    ) -> "Batch":
        """Return a copy moved to ``status``.

        Raises:
            OdmResourceError: If the transition would move status backwards.
        """
        if status not in _ALLOWED_BATCH_TRANSITIONS[self.status]:
            raise OdmResourceError(
                f"Invalid status transition for batch {self.batch_id}: "
                f"{self.status} -> {status}. Batches only move from pending to a terminal state."
            )
        return replace(self, status=status, updated_at=updated_at, error=error)


@dataclass(frozen=True)
class FileIngestError:
    """Per-file or per-record ingest failure.

    Attributes:
        path: File path or URI that failed.
        message: Actionable failure description.
        line_number: One-based line for record-level JSONL errors.
    """

    path: str
    message: str
    line_number: int | None = None


@dataclass(frozen=True)
class IngestOptions:
    """Ingest stage options.

    Attributes:
        source: Local file, directory, or ``s3://`` prefix.
        pattern: Glob pattern applied under ``source``.
        partition_key: Label attached to every staged record.
        batch_size: Number of files per staging batch.
        dedup: File-level deduplication strategy.
    """

    source: str
    pattern: str = DEFAULT_SOURCE_PATTERN
    partition_key: str = DEFAULT_PARTITION_KEY
    batch_size: int = DEFAULT_INGEST_BATCH_SIZE
    dedup: DedupStrategy = "both"


@dataclass(frozen=True)
class IngestReport:
    """Summary of one ingest invocation.

    Attributes:
        run_id: Pipeline run identifier.
        files_discovered: Files yielded by discovery.
        files_ingested: Files whose records were committed.
        files_skipped: Files skipped by resume or deduplication.
        files_failed: Files that could not be read or parsed.
        records_ingested: Records committed in this invocation.
        record_errors: Malformed records skipped inside otherwise readable files.
        batch_ids: Committed batch ids in commit order.
        recovered_batch_ids: Pending batches discarded before ingest began.
        errors: Per-item failure detail.
    """

    run_id: str
    files_discovered: int = 0
    files_ingested: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    records_ingested: int = 0
    record_errors: int = 0
    batch_ids: tuple[int, ...] = ()
    recovered_batch_ids: tuple[int, ...] = ()
    errors: tuple[FileIngestError, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InferenceOptions:
    """Schema inference options.

    Attributes:
        sample_size: Maximum records to sample; ``0`` samples everything.
        min_frequency: Presence ratio at which a field becomes required.
        max_depth: Deepest path walked; deeper values stay opaque.
        detect_formats: Whether string format detectors run.
        max_examples: Example values kept per field.
    """

    sample_size: int = DEFAULT_SAMPLE_SIZE
    min_frequency: float = DEFAULT_MIN_FREQUENCY
    max_depth: int = DEFAULT_MAX_DEPTH
    detect_formats: bool = True
    max_examples: int = DEFAULT_MAX_EXAMPLES
