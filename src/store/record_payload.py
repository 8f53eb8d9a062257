"""Shared JSON serialization for staged records and batches.

This module centralizes RawRecord and Batch payload conversion.
It is reused by the staging store files and the Lance mirror.
"""

from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path
from typing import Any, Iterator

from core.errors import OdmResourceError
from core.types import Batch, RawRecord


def raw_record_to_payload(record: RawRecord) -> dict[str, object]:
    """Serialize a RawRecord into a JSON-safe payload.

    Args:
        record: Staged record.

    Returns:
        Dictionary payload for JSON encoding.
    """
    return {
        "record_id": record.record_id,
        "batch_id": record.batch_id,
        "partition_key": record.partition_key,
        "source_path": record.source_path,
        "record_index": record.record_index,
        "content_fingerprint": record.content_fingerprint,
        "ingested_at": record.ingested_at.isoformat(),
        "value": record.value,
    }


def raw_record_from_payload(payload: dict[str, Any]) -> RawRecord:
    """Deserialize a JSON payload into a RawRecord.

    Args:
        payload: Serialized record payload.

    Returns:
        Parsed record.
    """
    return RawRecord(
        record_id=int(payload["record_id"]),
        batch_id=int(payload["batch_id"]),
        partition_key=str(payload["partition_key"]),
        source_path=str(payload["source_path"]),
        record_index=int(payload["record_index"]),
        content_fingerprint=str(payload["content_fingerprint"]),
        ingested_at=datetime.fromisoformat(str(payload["ingested_at"])),
        value=payload.get("value"),
    )


def batch_to_payload(batch: Batch) -> dict[str, object]:
    """Serialize a Batch into a JSON-safe payload."""
    return {
        "batch_id": batch.batch_id,
        "run_id": batch.run_id,
        "partition_key": batch.partition_key,
        "status": batch.status,
        "files": list(batch.files),
        "first_record_id": batch.first_record_id,
        "last_record_id": batch.last_record_id,
        "record_count": batch.record_count,
        "created_at": batch.created_at.isoformat(),
        "updated_at": batch.updated_at.isoformat(),
        "error": batch.error,
    }


def batch_from_payload(payload: dict[str, Any]) -> Batch:
    """Deserialize a JSON payload into a Batch."""
    return Batch(
        batch_id=int(payload["batch_id"]),
        run_id=str(payload["run_id"]),
        partition_key=str(payload["partition_key"]),
        status=payload["status"],
        files=tuple(str(path) for path in payload.get("files", [])),
        first_record_id=payload.get("first_record_id"),
        last_record_id=payload.get("last_record_id"),
        record_count=int(payload.get("record_count", 0)),
        created_at=datetime.fromisoformat(str(payload["created_at"])),
        updated_at=datetime.fromisoformat(str(payload["updated_at"])),
        error=payload.get("error"),
    )


def iter_raw_records_jsonl(records_path: Path) -> Iterator[RawRecord]:
    """Stream staged records from a JSONL file.

    Raises:
        OdmResourceError: If the file is missing or a line is invalid.
    """
    try:
        handle = records_path.open("r", encoding="utf-8")
    except OSError as error:
        raise OdmResourceError(
            f"Failed to open staged records at {records_path}: {error}. "
            "The staging store may be damaged; re-run ingest."
        ) from error
    with handle:
        for line_number, line in enumerate(handle, 1):
            if not line.strip():
                continue
            try:
                yield raw_record_from_payload(json.loads(line))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as error:
                raise OdmResourceError(
                    f"Failed to parse staged record at {records_path}:{line_number}: {error}. "
                    "The staging store may be damaged; re-run ingest."
                ) from error
