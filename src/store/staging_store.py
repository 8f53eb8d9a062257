"""Staging store contract and file-backed implementation.

Raw records are staged in batches. Each batch writes its records to
``records/<batch_id>.jsonl`` and its bookkeeping row to a JSON catalog,
and every committed batch is mirrored to a Lance dataset for queries.
Readers only ever see records of committed batches.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import json
import os
from pathlib import Path
import threading
from typing import Any, Iterator, Protocol, Sequence

from core.constants import (
    BATCH_CATALOG_FILE_NAME,
    FILE_HASHES_FILE_NAME,
    LANCE_DIR_NAME,
    RECORDS_DIR_NAME,
    STAGING_DIR_NAME,
)
from core.errors import OdmResourceError
from core.logging_config import get_logger
from core.types import Batch, BatchStatus, RawRecord, RecordDraft
from store.lance_mirror import append_to_lance, query_lance
from store.record_payload import (
    batch_from_payload,
    batch_to_payload,
    iter_raw_records_jsonl,
    raw_record_to_payload,
)

_LOGGER = get_logger(__name__)
_RECOVERED_BATCH_ERROR = "Batch was pending when a previous run stopped; records discarded."


class StagingStore(Protocol):
    """Operations the pipeline needs from a staging store."""

    def begin_batch(self, partition_key: str, run_id: str, files: Sequence[str]) -> Batch: ...

    def append_records(self, batch_id: int, drafts: Sequence[RecordDraft]) -> Batch: ...

    def record_file_hash(self, path: str, fingerprint: str, batch_id: int) -> None: ...

    def commit_batch(self, batch_id: int) -> Batch: ...

    def fail_batch(self, batch_id: int, error: str) -> Batch: ...

    def list_batches(self, status: BatchStatus | None = None) -> list[Batch]: ...

    def recover_pending(self) -> list[int]: ...

    def read_records(
        self, partition_key: str | None = None, sample_size: int | None = None
    ) -> Iterator[RawRecord]: ...

    def known_paths(self) -> set[str]: ...

    def known_fingerprints(self) -> set[str]: ...

    def committed_files(self, run_id: str) -> set[str]: ...

    def query(self, statement: str) -> list[dict[str, Any]]: ...

    def partition_counts(self) -> dict[str, int]: ...


class FileStagingStore:
    """Staging store persisted under ``<data_root>/staging``.

    Directories are created on the first write, so read-only use
    (dry runs, listing an empty store) leaves the disk untouched.
    All mutations are serialized by an internal lock.
    """

    def __init__(self, data_root: Path) -> None:
        self._root = data_root / STAGING_DIR_NAME
        self._catalog_path = self._root / BATCH_CATALOG_FILE_NAME
        self._hashes_path = self._root / FILE_HASHES_FILE_NAME
        self._records_dir = self._root / RECORDS_DIR_NAME
        self._lance_dir = self._root / LANCE_DIR_NAME
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self._root

    def begin_batch(self, partition_key: str, run_id: str, files: Sequence[str]) -> Batch:
        """Create a pending batch.

        Args:
            partition_key: Label attached to every record of the batch.
            run_id: Pipeline run creating the batch.
            files: Source files the batch will stage.

        Returns:
            The new pending batch.
        """
        with self._lock:
            catalog = self._read_catalog()
            now = _utc_now()
            batch = Batch(
                batch_id=int(catalog["next_batch_id"]),
                run_id=run_id,
                partition_key=partition_key,
                status="pending",
                files=tuple(files),
                created_at=now,
                updated_at=now,
            )
            catalog["next_batch_id"] = batch.batch_id + 1
            catalog["batches"].append(batch_to_payload(batch))
            self._write_catalog(catalog)
            return batch

    def append_records(self, batch_id: int, drafts: Sequence[RecordDraft]) -> Batch:
        """Assign record ids to drafts and stage them in a pending batch.

        Raises:
            OdmResourceError: If the batch is not pending or the write fails.
        """
        with self._lock:
            catalog = self._read_catalog()
            batch = _pending_batch(catalog, batch_id)
            if not drafts:
                return batch
            first_id = int(catalog["next_record_id"])
            ingested_at = _utc_now()
            records = [
                RawRecord(
                    record_id=first_id + offset,
                    batch_id=batch_id,
                    partition_key=batch.partition_key,
                    source_path=draft.source_path,
                    record_index=draft.record_index,
                    content_fingerprint=draft.content_fingerprint,
                    ingested_at=ingested_at,
                    value=draft.value,
                )
                for offset, draft in enumerate(drafts)
            ]
            self._append_lines(
                self._records_path(batch_id),
                [json.dumps(raw_record_to_payload(record), sort_keys=True) for record in records],
            )
            last_id = records[-1].record_id
            updated = replace(
                batch,
                updated_at=ingested_at,
                first_record_id=batch.first_record_id or first_id,
                last_record_id=last_id,
                record_count=batch.record_count + len(records),
            )
            catalog["next_record_id"] = last_id + 1
            _replace_batch(catalog, updated)
            self._write_catalog(catalog)
            return updated

    def record_file_hash(self, path: str, fingerprint: str, batch_id: int) -> None:
        """Record a staged file's content fingerprint under ``batch_id``."""
        line = json.dumps(
            {"path": path, "fingerprint": fingerprint, "batch_id": batch_id}, sort_keys=True
        )
        with self._lock:
            self._append_lines(self._hashes_path, [line])

    def commit_batch(self, batch_id: int) -> Batch:
        """Mirror a pending batch to Lance and mark it committed.

        Raises:
            OdmResourceError: If the batch is not pending or the mirror write fails.
        """
        with self._lock:
            catalog = self._read_catalog()
            batch = _pending_batch(catalog, batch_id)
            records = list(self._iter_batch_records(batch))
            lance_written = append_to_lance(self._lance_dir, records)
            committed = batch.with_status("committed", _utc_now())
            _replace_batch(catalog, committed)
            self._write_catalog(catalog)
        _LOGGER.info(
            "batch_committed",
            batch_id=batch_id,
            record_count=committed.record_count,
            file_count=len(committed.files),
            lance_written=lance_written,
        )
        return committed

    def fail_batch(self, batch_id: int, error: str) -> Batch:
        """Mark a pending batch failed and discard its staged records."""
        with self._lock:
            catalog = self._read_catalog()
            batch = _pending_batch(catalog, batch_id)
            failed = batch.with_status("failed", _utc_now(), error=error)
            _replace_batch(catalog, failed)
            self._write_catalog(catalog)
            records_path = self._records_path(batch_id)
            try:
                records_path.unlink(missing_ok=True)
            except OSError as os_error:
                raise OdmResourceError(
                    f"Failed to discard records of batch {batch_id} at {records_path}: "
                    f"{os_error}. Remove the file manually."
                ) from os_error
        _LOGGER.warning("batch_failed", batch_id=batch_id, error=error)
        return failed

    def list_batches(self, status: BatchStatus | None = None) -> list[Batch]:
        """List batches in id order, optionally filtered by status."""
        with self._lock:
            catalog = self._read_catalog()
        batches = [batch_from_payload(payload) for payload in catalog["batches"]]
        if status is not None:
            batches = [batch for batch in batches if batch.status == status]
        return sorted(batches, key=lambda batch: batch.batch_id)

    def recover_pending(self) -> list[int]:
        """Fail every pending batch left behind by an interrupted run.

        Returns:
            Ids of the recovered batches.
        """
        with self._lock:
            pending = self.list_batches("pending")
            for batch in pending:
                self.fail_batch(batch.batch_id, _RECOVERED_BATCH_ERROR)
        recovered = [batch.batch_id for batch in pending]
        if recovered:
            _LOGGER.warning("pending_batches_recovered", batch_ids=recovered)
        return recovered

    def read_records(
        self, partition_key: str | None = None, sample_size: int | None = None
    ) -> Iterator[RawRecord]:
        """Stream committed records in record id order.

        Args:
            partition_key: Optional partition filter.
            sample_size: Maximum records to yield; ``None`` or ``0`` yields all.

        Yields:
            Committed staged records.
        """
        yielded = 0
        for batch in self.list_batches("committed"):
            if partition_key is not None and batch.partition_key != partition_key:
                continue
            for record in self._iter_batch_records(batch):
                if sample_size and yielded >= sample_size:
                    return
                yielded += 1
                yield record

    def known_paths(self) -> set[str]:
        """Return source paths staged by committed batches."""
        return {entry["path"] for entry in self._committed_hash_entries()}

    def known_fingerprints(self) -> set[str]:
        """Return content fingerprints staged by committed batches."""
        return {entry["fingerprint"] for entry in self._committed_hash_entries()}

    def committed_files(self, run_id: str) -> set[str]:
        """Return files staged by committed batches of ``run_id``."""
        return {
            path
            for batch in self.list_batches("committed")
            if batch.run_id == run_id
            for path in batch.files
        }

    def query(self, statement: str) -> list[dict[str, Any]]:
        """Run a read-only filter expression over committed records.

        Args:
            statement: Lance filter expression, e.g. ``partition_key = 'orders'``.

        Returns:
            Matching rows ordered by record id.
        """
        committed_ids = {batch.batch_id for batch in self.list_batches("committed")}
        return query_lance(self._lance_dir, statement, committed_ids)

    def partition_counts(self) -> dict[str, int]:
        """Return committed record counts keyed by partition."""
        counts: dict[str, int] = {}
        for batch in self.list_batches("committed"):
            counts[batch.partition_key] = counts.get(batch.partition_key, 0) + batch.record_count
        return dict(sorted(counts.items()))

    def _records_path(self, batch_id: int) -> Path:
        return self._records_dir / f"{batch_id}.jsonl"

    def _iter_batch_records(self, batch: Batch) -> Iterator[RawRecord]:
        if batch.record_count == 0:
            return iter(())
        return iter_raw_records_jsonl(self._records_path(batch.batch_id))

    def _committed_hash_entries(self) -> list[dict[str, Any]]:
        committed_ids = {batch.batch_id for batch in self.list_batches("committed")}
        with self._lock:
            if not self._hashes_path.exists():
                return []
            try:
                lines = self._hashes_path.read_text(encoding="utf-8").splitlines()
            except OSError as error:
                raise OdmResourceError(
                    f"Failed to read file hashes at {self._hashes_path}: {error}. "
                    "Check file permissions."
                ) from error
        entries = []
        for line in lines:
            if not line.strip():
                continue
            entry = json.loads(line)
            if entry["batch_id"] in committed_ids:
                entries.append(entry)
        return entries

    def _read_catalog(self) -> dict[str, Any]:
        if not self._catalog_path.exists():
            return {"next_batch_id": 1, "next_record_id": 1, "batches": []}
        try:
            payload = json.loads(self._catalog_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            raise OdmResourceError(
                f"Failed to read batch catalog at {self._catalog_path}: {error}. "
                "Restore the staging directory or remove it to start over."
            ) from error
        if not isinstance(payload, dict) or not isinstance(payload.get("batches"), list):
            raise OdmResourceError(
                f"Invalid batch catalog at {self._catalog_path}: expected an object "
                "with a 'batches' list. Restore the staging directory."
            )
        return payload

    def _write_catalog(self, catalog: dict[str, Any]) -> None:
        temp_path = self._catalog_path.with_suffix(".json.tmp")
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(catalog, indent=2) + "\n", encoding="utf-8")
            os.replace(temp_path, self._catalog_path)
        except OSError as error:
            raise OdmResourceError(
                f"Failed to write batch catalog at {self._catalog_path}: {error}. "
                "Check write permissions and available disk space."
            ) from error

    def _append_lines(self, path: Path, lines: Sequence[str]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                for line in lines:
                    handle.write(line + "\n")
        except OSError as error:
            raise OdmResourceError(
                f"Failed to write staging file {path}: {error}. "
                "Check write permissions and available disk space."
            ) from error


def _pending_batch(catalog: dict[str, Any], batch_id: int) -> Batch:
    for payload in catalog["batches"]:
        if int(payload["batch_id"]) == batch_id:
            batch = batch_from_payload(payload)
            if batch.status != "pending":
                raise OdmResourceError(
                    f"Batch {batch_id} is {batch.status}; only pending batches accept changes."
                )
            return batch
    raise OdmResourceError(f"Batch {batch_id} does not exist in the staging store.")


def _replace_batch(catalog: dict[str, Any], batch: Batch) -> None:
    catalog["batches"] = [
        batch_to_payload(batch) if int(payload["batch_id"]) == batch.batch_id else payload
        for payload in catalog["batches"]
    ]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
