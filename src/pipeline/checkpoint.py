"""Persisted pipeline state machine.

A checkpoint records the run's current state, the stages it completed,
and one record per executed or skipped stage. Resume reads this data
instead of replaying execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
import json
import os
from pathlib import Path
from typing import Any, Literal

from core.constants import CHECKPOINT_FILE_NAME, RUNS_DIR_NAME
from core.errors import OdmResourceError

PipelineState = Literal[
    "not_started",
    "ingesting",
    "inferring",
    "refining",
    "mapping",
    "exporting",
    "completed",
    "failed",
]
StageStatus = Literal["completed", "skipped", "failed"]

STAGE_STATES: dict[str, PipelineState] = {
    "ingest": "ingesting",
    "infer": "inferring",
    "refine": "refining",
    "map": "mapping",
    "export": "exporting",
}
_STATE_RANK: dict[str, int] = {
    "not_started": 0,
    "ingesting": 1,
    "inferring": 2,
    "refining": 3,
    "mapping": 4,
    "exporting": 5,
    "completed": 6,
}


@dataclass(frozen=True)
class StageRecord:
    """Outcome of one stage in a run.

    Attributes:
        stage: Stage name.
        status: ``completed``, ``skipped``, or ``failed``.
        started_at: UTC start time.
        finished_at: UTC finish time.
        duration_seconds: Wall-clock duration.
        outcome: Short result label such as ``ok`` or ``degraded``.
        summary: Stage-specific result summary.
        error: Failure message for failed stages.
    """

    stage: str
    status: StageStatus
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
    outcome: str
    summary: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


@dataclass(frozen=True)
class Checkpoint:
    """Persisted progress of one pipeline run."""

    run_id: str
    pipeline_name: str
    config_fingerprint: str
    created_at: datetime
    updated_at: datetime
    state: PipelineState = "not_started"
    completed_stages: tuple[str, ...] = ()
    stage_records: tuple[StageRecord, ...] = ()
    error: str | None = None

    def has_completed(self, stage: str) -> bool:
        return stage in self.completed_stages

    def transition(self, state: PipelineState, at: datetime) -> "Checkpoint":
        """Return a copy moved to ``state``.

        ``failed`` is reachable from any non-terminal state, a failed run may
        only re-enter a stage on resume, and otherwise states only move forward.

        Raises:
            OdmResourceError: If the transition is not allowed.
        """
        if not can_transition(self.state, state):
            raise OdmResourceError(
                f"Invalid pipeline transition for run {self.run_id}: {self.state} -> {state}."
            )
        error = self.error if state == "failed" else None
        return replace(self, state=state, updated_at=at, error=error)

    def reopen(self, at: datetime) -> "Checkpoint":
        """Return a copy of a completed run that can run further stages.

        Completed stages stay recorded, so a resumed run only executes the
        stages it never finished.

        Raises:
            OdmResourceError: If the run is not completed.
        """
        if self.state != "completed":
            raise OdmResourceError(
                f"Cannot reopen run {self.run_id} in state {self.state}; only completed runs "
                "can be reopened."
            )
        return replace(self, state="not_started", updated_at=at)

    def with_stage_record(self, record: StageRecord) -> "Checkpoint":
        """Append a stage record, marking completed stages."""
        completed = self.completed_stages
        if record.status == "completed" and record.stage not in completed:
            completed = completed + (record.stage,)
        return replace(
            self,
            completed_stages=completed,
            stage_records=self.stage_records + (record,),
            updated_at=record.finished_at,
        )

    def with_failure(self, record: StageRecord) -> "Checkpoint":
        """Record a failed stage and move to ``failed``."""
        recorded = self.with_stage_record(record)
        failed = recorded.transition("failed", record.finished_at)
        return replace(failed, error=record.error)


def can_transition(current: PipelineState, target: PipelineState) -> bool:
    """Return whether the state machine allows ``current -> target``."""
    if current == "completed":
        return False
    if target == "failed":
        return current != "failed"
    if current == "failed":
        return target in STAGE_STATES.values()
    return _STATE_RANK[target] >= _STATE_RANK[current] and target != "not_started"


class CheckpointStore:
    """Checkpoint file at ``<data_root>/runs/<pipeline>/checkpoint.json``.

    The directory is created on the first save.
    """

    def __init__(self, data_root: Path, pipeline_name: str) -> None:
        self._run_dir = data_root / RUNS_DIR_NAME / pipeline_name
        self._path = self._run_dir / CHECKPOINT_FILE_NAME

    @property
    def run_dir(self) -> Path:
        return self._run_dir

    def load(self) -> Checkpoint | None:
        """Read the checkpoint if one exists.

        Raises:
            OdmResourceError: If the checkpoint file is unreadable.
        """
        if not self._path.exists():
            return None
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
            return _checkpoint_from_payload(payload)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as error:
            raise OdmResourceError(
                f"Failed to read checkpoint at {self._path}: {error}. "
                "Delete the checkpoint and run without --resume."
            ) from error

    def save(self, checkpoint: Checkpoint) -> None:
        """Write the checkpoint atomically.

        Raises:
            OdmResourceError: If the file cannot be written.
        """
        temp_path = self._path.with_suffix(".json.tmp")
        text = json.dumps(_checkpoint_to_payload(checkpoint), indent=2) + "\n"
        try:
            self._run_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(text, encoding="utf-8")
            os.replace(temp_path, self._path)
        except OSError as error:
            raise OdmResourceError(
                f"Failed to write checkpoint at {self._path}: {error}. "
                "Check write permissions for the data root."
            ) from error

    def clear(self) -> None:
        """Remove the checkpoint file."""
        try:
            self._path.unlink(missing_ok=True)
        except OSError as error:
            raise OdmResourceError(
                f"Failed to remove checkpoint at {self._path}: {error}."
            ) from error


def _checkpoint_to_payload(checkpoint: Checkpoint) -> dict[str, Any]:
    return {
        "run_id": checkpoint.run_id,
        "pipeline_name": checkpoint.pipeline_name,
        "config_fingerprint": checkpoint.config_fingerprint,
        "state": checkpoint.state,
        "completed_stages": list(checkpoint.completed_stages),
        "stage_records": [_record_to_payload(record) for record in checkpoint.stage_records],
        "created_at": checkpoint.created_at.isoformat(),
        "updated_at": checkpoint.updated_at.isoformat(),
        "error": checkpoint.error,
    }


def _checkpoint_from_payload(payload: dict[str, Any]) -> Checkpoint:
    return Checkpoint(
        run_id=str(payload["run_id"]),
        pipeline_name=str(payload["pipeline_name"]),
        config_fingerprint=str(payload["config_fingerprint"]),
        state=payload["state"],
        completed_stages=tuple(str(stage) for stage in payload["completed_stages"]),
        stage_records=tuple(_record_from_payload(item) for item in payload["stage_records"]),
        created_at=datetime.fromisoformat(str(payload["created_at"])),
        updated_at=datetime.fromisoformat(str(payload["updated_at"])),
        error=payload.get("error"),
    )


def _record_to_payload(record: StageRecord) -> dict[str, Any]:
    return {
        "stage": record.stage,
        "status": record.status,
        "started_at": record.started_at.isoformat(),
        "finished_at": record.finished_at.isoformat(),
        "duration_seconds": record.duration_seconds,
        "outcome": record.outcome,
        "summary": record.summary,
        "error": record.error,
    }


def _record_from_payload(payload: dict[str, Any]) -> StageRecord:
    return StageRecord(
        stage=str(payload["stage"]),
        status=payload["status"],
        started_at=datetime.fromisoformat(str(payload["started_at"])),
        finished_at=datetime.fromisoformat(str(payload["finished_at"])),
        duration_seconds=float(payload["duration_seconds"]),
        outcome=str(payload["outcome"]),
        summary=dict(payload.get("summary", {})),
        error=payload.get("error"),
    )
