"""Lance mirror of committed staging records.

Committed batches are appended to an Apache Lance dataset so that
read-only inspection queries can use Lance filter expressions.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

from core.errors import OdmDependencyError, OdmInputError, OdmResourceError
from core.logging_config import get_logger
from core.types import RawRecord

_LOGGER = get_logger(__name__)


def append_to_lance(lance_dir: Path, records: Sequence[RawRecord]) -> bool:
    """Append staged records to the Lance mirror.

    Args:
        lance_dir: Lance dataset directory.
        records: Records of one committed batch.

    Returns:
        ``True`` when the mirror was written, ``False`` when Lance is unavailable.

    Raises:
        OdmResourceError: If the Lance write fails.
    """
    try:
        import lance
        import pyarrow as pa
    except ImportError:
        _LOGGER.warning("lance_mirror_unavailable", path=str(lance_dir))
        return False
    if not records:
        return True
    table = pa.table(
        {
            "record_id": pa.array([record.record_id for record in records], type=pa.int64()),
            "batch_id": pa.array([record.batch_id for record in records], type=pa.int64()),
            "partition_key": [record.partition_key for record in records],
            "source_path": [record.source_path for record in records],
            "record_index": pa.array([record.record_index for record in records], type=pa.int64()),
            "content_fingerprint": [record.content_fingerprint for record in records],
            "ingested_at": [record.ingested_at.isoformat() for record in records],
            "value_json": [json.dumps(record.value, sort_keys=True) for record in records],
        }
    )
    lance_uri = str(lance_dir)
    mode = "append" if lance_dir.exists() else "create"
    try:
        lance.write_dataset(table, lance_uri, mode=mode)
    except Exception as error:
        raise OdmResourceError(
            f"Failed to write Lance mirror at {lance_uri}: {error}. "
            "Validate lance/pyarrow compatibility and retry ingest."
        ) from error
    return True


def query_lance(
    lance_dir: Path, statement: str, committed_batch_ids: set[int]
) -> list[dict[str, Any]]:
    """Run a read-only filter expression against the Lance mirror.

    Args:
        lance_dir: Lance dataset directory.
        statement: Lance/SQL filter expression, e.g. ``partition_key = 'a'``.
        committed_batch_ids: Batches whose rows may be returned.

    Returns:
        Matching rows with the decoded ``value`` column, ordered by record id.

    Raises:
        OdmDependencyError: If lance is not installed.
        OdmInputError: If the filter expression is rejected.
    """
    try:
        import lance
    except ImportError as error:
        raise OdmDependencyError(
            "Staging queries require pylance, but it is not installed. "
            "Install pylance to query staged records."
        ) from error
    if not lance_dir.exists():
        return []
    try:
        rows = lance.dataset(str(lance_dir)).to_table(filter=statement or None).to_pylist()
    except Exception as error:
        raise OdmInputError(
            f"Failed to run staging query '{statement}': {error}. "
            "Use a Lance filter expression over the staged columns."
        ) from error
    results = []
    for row in sorted(rows, key=lambda item: item["record_id"]):
        if row["batch_id"] not in committed_batch_ids:
            continue
        value_json = row.pop("value_json")
        row["value"] = json.loads(value_json)
        results.append(row)
    return results
