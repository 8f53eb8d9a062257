"""Unit tests for pipeline checkpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from core.errors import OdmResourceError
from pipeline.checkpoint import Checkpoint, CheckpointStore, StageRecord, can_transition

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _checkpoint() -> Checkpoint:
    return Checkpoint(
        run_id="run-1",
        pipeline_name="users",
        config_fingerprint="abc",
        created_at=_NOW,
        updated_at=_NOW,
    )


def _record(stage: str, status: str = "completed", error: str | None = None) -> StageRecord:
    return StageRecord(
        stage=stage,
        status=status,  # type: ignore[arg-type]
        started_at=_NOW,
        finished_at=_NOW,
        duration_seconds=0.5,
        outcome="ok" if status == "completed" else status,
        summary={"records_ingested": 4},
        error=error,
    )


def test_states_move_forward() -> None:
    """A fresh run may start ingesting."""
    assert can_transition("not_started", "ingesting") is True


def test_states_do_not_move_backward() -> None:
    """A running pipeline cannot return to an earlier stage."""
    assert can_transition("inferring", "ingesting") is False


def test_failed_runs_may_reenter_a_stage() -> None:
    """Resume moves a failed run back into a stage."""
    assert can_transition("failed", "ingesting") is True


def test_completed_is_terminal() -> None:
    """Nothing leaves the completed state."""
    assert can_transition("completed", "failed") is False


def test_invalid_transition_raises() -> None:
    """Disallowed transitions are resource errors."""
    checkpoint = _checkpoint().transition("mapping", _NOW)

    with pytest.raises(OdmResourceError):
        checkpoint.transition("inferring", _NOW)


def test_completed_stage_records_mark_stage_done() -> None:
    """Completed stage records add to the completed stage list."""
    checkpoint = _checkpoint().with_stage_record(_record("ingest"))

    assert checkpoint.has_completed("ingest") is True


def test_failure_moves_run_to_failed() -> None:
    """A failed stage record fails the run with its error."""
    checkpoint = _checkpoint().transition("ingesting", _NOW)

    failed = checkpoint.with_failure(_record("ingest", "failed", error="disk full"))

    assert (failed.state, failed.error, failed.completed_stages) == ("failed", "disk full", ())


def test_store_restores_saved_checkpoint(tmp_path: Path) -> None:
    """Saved checkpoints load back unchanged."""
    store = CheckpointStore(tmp_path, "users")
    checkpoint = _checkpoint().transition("ingesting", _NOW).with_stage_record(_record("ingest"))
    store.save(checkpoint)

    assert store.load() == checkpoint


def test_store_without_checkpoint_loads_none(tmp_path: Path) -> None:
    """A pipeline that never ran has no checkpoint."""
    assert CheckpointStore(tmp_path, "users").load() is None


def test_corrupt_checkpoint_raises(tmp_path: Path) -> None:
    """Unreadable checkpoint files are resource errors."""
    store = CheckpointStore(tmp_path, "users")
    store.run_dir.mkdir(parents=True)
    (store.run_dir / "checkpoint.json").write_text("{broken", encoding="utf-8")

    with pytest.raises(OdmResourceError):
        store.load()


def test_failed_runs_cannot_complete_without_rerunning_a_stage() -> None:
    """A failed run must re-enter a stage before it can complete."""
    failed = _checkpoint().transition("ingesting", _NOW).with_failure(
        _record("ingest", "failed", error="disk full")
    )

    with pytest.raises(OdmResourceError):
        failed.transition("completed", _NOW)


def test_reopened_run_keeps_completed_stages() -> None:
    """Reopening a completed run lets later stages start again."""
    completed = (
        _checkpoint()
        .transition("ingesting", _NOW)
        .with_stage_record(_record("ingest"))
        .transition("completed", _NOW)
    )

    reopened = completed.reopen(_NOW).transition("inferring", _NOW)

    assert (reopened.state, reopened.completed_stages) == ("inferring", ("ingest",))


def test_only_completed_runs_reopen() -> None:
    """Runs still in progress cannot be reopened."""
    with pytest.raises(OdmResourceError):
        _checkpoint().transition("ingesting", _NOW).reopen(_NOW)
