"""Unit tests for the file-backed staging store."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import OdmResourceError
from core.types import RecordDraft
from store.staging_store import FileStagingStore


def _drafts(path: str, *values: dict[str, object]) -> list[RecordDraft]:
    return [
        RecordDraft(
            source_path=path,
            record_index=index,
            content_fingerprint=f"hash-{path}",
            value=value,
        )
        for index, value in enumerate(values)
    ]


def _staged_batch(store: FileStagingStore, path: str, partition_key: str = "users") -> int:
    batch = store.begin_batch(partition_key, "run-1", [path])
    store.append_records(batch.batch_id, _drafts(path, {"id": 1}, {"id": 2}))
    store.record_file_hash(path, f"hash-{path}", batch.batch_id)
    return batch.batch_id


def test_begin_batch_starts_pending(tmp_path: Path) -> None:
    """New batches are pending and numbered from one."""
    store = FileStagingStore(tmp_path)

    batch = store.begin_batch("users", "run-1", ["a.json"])

    assert (batch.batch_id, batch.status) == (1, "pending")


def test_append_assigns_sequential_record_ids(tmp_path: Path) -> None:
    """Record ids are contiguous within a batch."""
    store = FileStagingStore(tmp_path)
    batch = store.begin_batch("users", "run-1", ["a.json"])

    updated = store.append_records(batch.batch_id, _drafts("a.json", {"id": 1}, {"id": 2}))

    assert (updated.first_record_id, updated.last_record_id, updated.record_count) == (1, 2, 2)


def test_commit_makes_records_readable(tmp_path: Path) -> None:
    """Committed records are visible to readers."""
    store = FileStagingStore(tmp_path)
    store.commit_batch(_staged_batch(store, "a.json"))

    values = [record.value for record in store.read_records()]

    assert values == [{"id": 1}, {"id": 2}]


def test_pending_records_are_invisible(tmp_path: Path) -> None:
    """Readers never see records of pending batches."""
    store = FileStagingStore(tmp_path)
    _staged_batch(store, "a.json")

    assert list(store.read_records()) == []


def test_committed_batch_rejects_further_changes(tmp_path: Path) -> None:
    """Only pending batches can change status."""
    store = FileStagingStore(tmp_path)
    batch_id = _staged_batch(store, "a.json")
    store.commit_batch(batch_id)

    with pytest.raises(OdmResourceError):
        store.fail_batch(batch_id, "late failure")


def test_fail_batch_discards_records(tmp_path: Path) -> None:
    """Failed batches keep their row but lose their staged records."""
    store = FileStagingStore(tmp_path)
    batch_id = _staged_batch(store, "a.json")

    failed = store.fail_batch(batch_id, "boom")

    assert (failed.status, (store.root / "records" / f"{batch_id}.jsonl").exists()) == (
        "failed",
        False,
    )


def test_recover_pending_fails_leftover_batches(tmp_path: Path) -> None:
    """Pending batches from an interrupted run are failed on recovery."""
    store = FileStagingStore(tmp_path)
    batch_id = _staged_batch(store, "a.json")

    recovered = FileStagingStore(tmp_path).recover_pending()

    assert (recovered, store.list_batches("failed")[0].batch_id) == ([batch_id], batch_id)


def test_known_fingerprints_cover_committed_batches_only(tmp_path: Path) -> None:
    """Fingerprints of failed batches do not count as known."""
    store = FileStagingStore(tmp_path)
    store.commit_batch(_staged_batch(store, "a.json"))
    store.fail_batch(_staged_batch(store, "b.json"), "boom")

    assert store.known_fingerprints() == {"hash-a.json"}


def test_read_records_honors_sample_size(tmp_path: Path) -> None:
    """Sampling stops after the requested number of records."""
    store = FileStagingStore(tmp_path)
    store.commit_batch(_staged_batch(store, "a.json"))

    assert len(list(store.read_records(sample_size=1))) == 1


def test_partition_counts_sum_committed_records(tmp_path: Path) -> None:
    """Counts group committed records by partition key."""
    store = FileStagingStore(tmp_path)
    store.commit_batch(_staged_batch(store, "a.json", partition_key="users"))
    store.commit_batch(_staged_batch(store, "b.json", partition_key="orders"))

    assert store.partition_counts() == {"orders": 2, "users": 2}


def test_committed_files_are_scoped_to_run(tmp_path: Path) -> None:
    """Only files of the requested run are returned."""
    store = FileStagingStore(tmp_path)
    store.commit_batch(_staged_batch(store, "a.json"))

    assert (store.committed_files("run-1"), store.committed_files("run-2")) == ({"a.json"}, set())


def test_query_filters_committed_rows(tmp_path: Path) -> None:
    """Filter expressions run against the Lance mirror."""
    store = FileStagingStore(tmp_path)
    store.commit_batch(_staged_batch(store, "a.json", partition_key="users"))
    store.commit_batch(_staged_batch(store, "b.json", partition_key="orders"))

    rows = store.query("partition_key = 'orders'")

    assert [row["source_path"] for row in rows] == ["b.json", "b.json"]


def test_read_only_use_leaves_disk_untouched(tmp_path: Path) -> None:
    """Listing an empty store creates no directories."""
    store = FileStagingStore(tmp_path)

    store.list_batches()

    assert store.root.exists() is False
